"""
Business logic services for the Bulgur sync layer.
"""

from bulgur_sync.services.auth_service import AuthService
from bulgur_sync.services.error_classifier import (
    ErrorReporter,
    classify_exception,
    classify_status,
    raise_for_status,
)
from bulgur_sync.services.folder_cache import FolderCache
from bulgur_sync.services.storage_service import StorageService
from bulgur_sync.services.upload_orchestrator import UploadOrchestrator

__all__ = [
    "AuthService",
    "ErrorReporter",
    "FolderCache",
    "StorageService",
    "UploadOrchestrator",
    "classify_exception",
    "classify_status",
    "raise_for_status",
]
