"""
Bulgur Sync.

An async client-side sync layer for Bulgur Cloud storage servers: session
lifecycle with transparent token refresh, cached folder listings kept fresh
after every change, and bounded-concurrency uploads with per-file progress.

Example:
    ```python
    from bulgur_sync import BulgurClient, KeyringCredentialStore, SessionState

    async with BulgurClient(credential_store=KeyringCredentialStore()) as client:
        client.subscribe(lambda event: print(event))

        if await client.initialize() is not SessionState.AUTHENTICATED:
            await client.login("testuser", "password", "https://bulgur.example")

        entries = await client.list_folder("testuser")
        await client.upload("testuser", ["notes.txt", "photo.jpg"])
    ```
"""

from bulgur_sync.client import BulgurClient
from bulgur_sync.config import BulgurSyncConfig
from bulgur_sync.core.credential_store import (
    CredentialStore,
    FileCredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
)
from bulgur_sync.core.events import (
    ErrorReported,
    Event,
    FolderChanged,
    NavigateToLogin,
    SessionChanged,
    UploadProgress,
)
from bulgur_sync.exceptions import BError, ErrorKind
from bulgur_sync.models.auth import Session, SessionState
from bulgur_sync.models.storage import (
    FolderEntry,
    FolderResults,
    PathMeta,
    UploadFile,
    UploadResult,
)

__version__ = "0.1.0"

__all__ = [
    # Main client
    "BulgurClient",
    "BulgurSyncConfig",
    # Credential storage
    "CredentialStore",
    "FileCredentialStore",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    # Events
    "Event",
    "ErrorReported",
    "FolderChanged",
    "NavigateToLogin",
    "SessionChanged",
    "UploadProgress",
    # Models
    "FolderEntry",
    "FolderResults",
    "PathMeta",
    "Session",
    "SessionState",
    "UploadFile",
    "UploadResult",
    # Errors
    "BError",
    "ErrorKind",
]
