"""llm-auth - LLM provider credential discovery and OAuth lifecycle."""

from llm_auth.auth import Credential, CredentialKind, CredentialStore
from llm_auth.provider import (
    AuthSource,
    ProviderAuthResolver,
    ProviderCatalog,
    ProviderConfig,
)

__version__ = "0.1.0"

__all__ = [
    "Credential",
    "CredentialKind",
    "CredentialStore",
    "ProviderAuthResolver",
    "ProviderCatalog",
    "ProviderConfig",
    "AuthSource",
]
