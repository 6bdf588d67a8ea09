"""
Shared infrastructure: app state, events, caching, paths and credential storage.
"""

from bulgur_sync.core.cache import CacheEntry, CacheKey, LRUCache
from bulgur_sync.core.credential_store import (
    CredentialStore,
    FileCredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
)
from bulgur_sync.core.events import (
    ErrorReported,
    Event,
    EventBus,
    FolderChanged,
    NavigateToLogin,
    SessionChanged,
    UploadProgress,
)
from bulgur_sync.core.state import AppState

__all__ = [
    "AppState",
    "CacheEntry",
    "CacheKey",
    "CredentialStore",
    "ErrorReported",
    "Event",
    "EventBus",
    "FileCredentialStore",
    "KeyringCredentialStore",
    "FolderChanged",
    "LRUCache",
    "MemoryCredentialStore",
    "NavigateToLogin",
    "SessionChanged",
    "UploadProgress",
]
