"""
Domain models for the Bulgur sync layer.
"""

from bulgur_sync.models.auth import Credentials, LoginResponse, Session, SessionState
from bulgur_sync.models.storage import (
    CreateFolder,
    FolderEntry,
    FolderResults,
    MakePathToken,
    Move,
    PathMeta,
    StorageAction,
    UploadFile,
    UploadResult,
    UploadTask,
    sort_entries,
)

__all__ = [
    "CreateFolder",
    "Credentials",
    "FolderEntry",
    "FolderResults",
    "LoginResponse",
    "MakePathToken",
    "Move",
    "PathMeta",
    "Session",
    "SessionState",
    "StorageAction",
    "UploadFile",
    "UploadResult",
    "UploadTask",
    "sort_entries",
]
