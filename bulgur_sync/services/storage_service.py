"""
Storage operations other than uploads.

Mutations invalidate the folder(s) they touched once the server accepted
them; queries go straight through the request pipeline.
"""

from typing import Any
from urllib.parse import quote

import structlog

from bulgur_sync.api.endpoints import storage
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.core.paths import folder_key, parent_path, storage_url
from bulgur_sync.exceptions import missing_auth, unexpected_error
from bulgur_sync.models.storage import FolderResults, PathMeta
from bulgur_sync.models.validation import Err, Ok, parse_path_token
from bulgur_sync.services.error_classifier import raise_for_status
from bulgur_sync.services.folder_cache import FolderCache

logger = structlog.get_logger(__name__)


class StorageService:
    """Folder, file and path operations on the storage server."""

    def __init__(self, pipeline: RequestPipeline, folder_cache: FolderCache) -> None:
        """
        Args:
            pipeline: Pipeline every request goes through.
            folder_cache: Listing cache to invalidate after mutations.
        """
        self._pipeline = pipeline
        self._folder_cache = folder_cache

    async def list_folder(self, path: str) -> FolderResults:
        """
        List a folder, folders first.

        Raises:
            BError: NOT_FOUND, UNAUTHORIZED, SERVER_ERROR, LOAD_FOLDER_FAILED
                or NETWORK_FAILURE.
        """
        return await self._folder_cache.read(path)

    async def create_folder(self, path: str) -> None:
        """Create a folder at ``path``."""
        logger.debug("Creating folder", path=path)
        raise_for_status(await storage.create_folder(self._pipeline, path))
        self._folder_cache.invalidate(parent_path(path))

    async def delete(self, path: str) -> None:
        """Delete a file or folder."""
        logger.debug("Deleting path", path=path)
        raise_for_status(await storage.delete_path(self._pipeline, path))
        self._folder_cache.invalidate(parent_path(path))

    async def rename(self, from_path: str, to_path: str) -> None:
        """
        Rename or move a path.

        Both the source and the destination folder are refreshed afterwards.
        """
        logger.debug("Moving path", from_path=from_path, to_path=to_path)
        raise_for_status(await storage.move(self._pipeline, from_path, folder_key(to_path)))

        source_parent = parent_path(from_path)
        destination_parent = parent_path(to_path)
        self._folder_cache.invalidate(source_parent)
        if destination_parent != source_parent:
            self._folder_cache.invalidate(destination_parent)

    async def path_token(self, path: str) -> str:
        """
        Get a token granting access to ``path`` without credentials.

        Raises:
            BError: UNEXPECTED_ERROR if the server answered without a token.
        """
        response = raise_for_status(await storage.make_path_token(self._pipeline, path))
        match parse_path_token(response.data):
            case Ok(value=token):
                return token
            case Err(error=error):
                raise unexpected_error(f"Malformed path token response: {error}")

    async def download_url(self, path: str) -> str:
        """A link that downloads ``path`` without further authentication."""
        token = await self.path_token(path)
        session = await self._pipeline.settled_session()
        if session.site is None:
            raise missing_auth()
        return f"{session.site.rstrip('/')}{storage_url(path)}?token={quote(token, safe='')}"

    async def path_exists(self, path: str) -> bool:
        response = await storage.head_path(self._pipeline, path)
        if response.status_code == 404:
            return False
        raise_for_status(response)
        return True

    async def path_meta(self, path: str) -> PathMeta:
        """
        Probe a path for metadata.

        A missing path is not an error: the result has ``exists=False``.
        """
        response = await storage.path_meta(self._pipeline, path)
        if response.status_code == 404:
            return PathMeta(exists=False)
        raise_for_status(response)

        fields: dict[str, Any] = response.data if isinstance(response.data, dict) else {}
        return PathMeta(exists=True, fields=dict(fields))

    async def read_file(self, path: str) -> bytes:
        """Contents of a file."""
        response = raise_for_status(await storage.read_file(self._pipeline, path))
        return response.content
