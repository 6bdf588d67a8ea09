"""
Upload orchestration.

Every file is sent as its own single-field multipart request, with at most
``max_concurrent`` requests in flight across all batches. Files are admitted
in the order they were given; they may finish in any order.
"""

import asyncio
from collections.abc import Iterable

import structlog

from bulgur_sync.api.endpoints.storage import upload_file
from bulgur_sync.api.http_client import ProgressCallback
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.core.events import UploadProgress
from bulgur_sync.core.paths import folder_key
from bulgur_sync.core.state import AppState
from bulgur_sync.models.storage import UploadFile, UploadResult, UploadTask
from bulgur_sync.services.error_classifier import (
    ErrorReporter,
    classify_exception,
    raise_for_status,
)
from bulgur_sync.services.folder_cache import FolderCache

logger = structlog.get_logger(__name__)

DEFAULT_MAX_CONCURRENT_UPLOADS = 2


class UploadOrchestrator:
    """Uploads files with bounded concurrency and per-file progress."""

    def __init__(
        self,
        state: AppState,
        pipeline: RequestPipeline,
        folder_cache: FolderCache,
        reporter: ErrorReporter,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_UPLOADS,
    ) -> None:
        """
        Args:
            state: Shared application state; this service is the only writer
                of ``state.uploads``.
            pipeline: Pipeline the upload requests go through.
            folder_cache: Cache of the destination folder listings.
            reporter: Where failed uploads are reported.
            max_concurrent: Maximum number of requests in flight.
        """
        if max_concurrent <= 0:
            msg = "max_concurrent must be positive"
            raise ValueError(msg)

        self._state = state
        self._pipeline = pipeline
        self._folder_cache = folder_cache
        self._reporter = reporter
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def tasks(self) -> dict[str, UploadTask]:
        """Uploads that have not finished yet, by file name."""
        return dict(self._state.uploads)

    async def upload(self, path: str, files: Iterable[UploadFile]) -> list[UploadResult]:
        """
        Upload files into a folder.

        A failing file is reported and does not stop its siblings.

        Args:
            path: Destination folder.
            files: Files to upload, admitted in this order.

        Returns:
            One result per file, in the order given.
        """
        path = folder_key(path)
        files = list(files)
        if not files:
            return []

        logger.info("Uploading files", path=path, count=len(files))
        for upload in files:
            self._state.uploads[upload.name] = UploadTask(name=upload.name, total_bytes=upload.size)
            self._publish(upload.name, 0, upload.size)

        # Tasks are created in file order, so semaphore waiters queue in that order
        results = await asyncio.gather(*(self._upload_one(path, upload) for upload in files))

        self._folder_cache.invalidate(path)
        failed = sum(1 for result in results if not result.ok)
        logger.info("Upload finished", path=path, count=len(files), failed=failed)
        return list(results)

    async def _upload_one(self, path: str, upload: UploadFile) -> UploadResult:
        try:
            async with self._semaphore:
                logger.debug("Upload started", path=path, name=upload.name, size=upload.size)
                response = await upload_file(
                    self._pipeline,
                    path,
                    upload,
                    on_progress=self._progress_callback(path, upload),
                )
                raise_for_status(response)
        except Exception as e:
            error = classify_exception(e)
            logger.warning("Upload failed", path=path, name=upload.name, code=error.code)
            self._reporter.report(error)
            return UploadResult(name=upload.name, error=error)
        finally:
            self._finish(upload.name)

        logger.debug("Upload complete", path=path, name=upload.name)
        return UploadResult(name=upload.name)

    def _progress_callback(self, path: str, upload: UploadFile) -> ProgressCallback:
        completed = False

        def on_progress(sent: int, total: int) -> None:
            nonlocal completed
            task = self._state.uploads.get(upload.name)
            if task is None:
                return

            # The request body is larger than the file by the multipart framing
            done = upload.size if total <= 0 else min(upload.size, upload.size * sent // total)
            if done != task.bytes_done:
                task.bytes_done = done
                self._publish(upload.name, done, task.total_bytes)

            if task.is_complete and not completed:
                completed = True
                self._folder_cache.invalidate(path)

        return on_progress

    def _finish(self, name: str) -> None:
        task = self._state.uploads.get(name)
        if task is None:
            return
        task.bytes_done = 0
        task.total_bytes = 0
        self._publish(name, 0, 0)
        del self._state.uploads[name]

    def _publish(self, name: str, done: int, total: int) -> None:
        self._state.events.publish(UploadProgress(name=name, done=done, total=total))
