"""Credential storage"""

from llm_auth.auth.storage.backends import (
    FileStorage,
    KeyringStorage,
    MemoryStorage,
    StorageAdapter,
    default_storage,
)
from llm_auth.auth.storage.credential_store import STORE_KEY, CredentialStore

__all__ = [
    "CredentialStore",
    "STORE_KEY",
    "StorageAdapter",
    "MemoryStorage",
    "FileStorage",
    "KeyringStorage",
    "default_storage",
]
