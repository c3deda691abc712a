"""llm-auth Auth Module

자격증명 탐색, 저장, OAuth 라이프사이클.

Example:
    from llm_auth.auth import CredentialStore, OpenAIProvider

    store = CredentialStore()
    provider = OpenAIProvider()
    credential = await provider.authorize()
    await store.set(provider.name, credential)
"""

from llm_auth.auth.credential import (
    Credential,
    CredentialKind,
    DiscoveredCredential,
    DiscoverySource,
    SecretShape,
    classify_secret,
)
from llm_auth.auth.exceptions import (
    AuthenticationError,
    CredentialNotFoundError,
    DeviceFlowTimeoutError,
    OAuthError,
    OAuthExchangeFailedError,
    ProviderNotRegisteredError,
    RetryLimitExceededError,
    SecretUnresolvedError,
)
from llm_auth.auth.providers.base import BaseProvider, ConnectionOptions
from llm_auth.auth.secrets import EnvSecret, PlainSecret, SecretResolver, StoredSecret
from llm_auth.auth.storage.credential_store import CredentialStore

__all__ = [
    # Core
    "Credential",
    "CredentialKind",
    "DiscoveredCredential",
    "DiscoverySource",
    "SecretShape",
    "classify_secret",
    "CredentialStore",
    "BaseProvider",
    "ConnectionOptions",
    # Secrets
    "SecretResolver",
    "PlainSecret",
    "EnvSecret",
    "StoredSecret",
    # Exceptions
    "AuthenticationError",
    "SecretUnresolvedError",
    "CredentialNotFoundError",
    "ProviderNotRegisteredError",
    "RetryLimitExceededError",
    "DeviceFlowTimeoutError",
    "OAuthError",
    "OAuthExchangeFailedError",
]
