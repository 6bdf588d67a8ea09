"""
Folder listing cache with push invalidation.

Listings are cached per (method, path, access token, site). A successful
mutation invalidates the folder it happened in: the entry is marked stale and
a background refetch is started.

Every fetch and every invalidation draws a number from one increasing
sequence kept on AppState, so it outlives any one FolderCache. A fetch that
started before the latest invalidation of its folder is discarded when it
completes, so a slow refetch never overwrites newer data with older data.
"""

import asyncio
from dataclasses import dataclass, replace

import structlog

from bulgur_sync.api.endpoints.storage import list_folder
from bulgur_sync.api.http_client import Response
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.core.cache import CacheEntry, CacheKey
from bulgur_sync.core.events import Event, FolderChanged, SessionChanged
from bulgur_sync.core.paths import folder_key
from bulgur_sync.core.state import AppState
from bulgur_sync.exceptions import (
    BError,
    load_folder_failed,
    not_found,
    server_error,
    unauthorized,
)
from bulgur_sync.models.auth import Session, SessionState
from bulgur_sync.models.storage import FolderResults
from bulgur_sync.models.validation import Err, Ok, parse_folder_results
from bulgur_sync.services.error_classifier import classify_exception

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _Inflight:
    sequence: int
    task: "asyncio.Task[CacheEntry]"


def classify_listing(path: str, response: Response) -> FolderResults | BError:
    """
    Turn a listing response into entries or the error to show for it.

    Returns:
        Entries in display order, or NOT_FOUND, UNAUTHORIZED, SERVER_ERROR or
        LOAD_FOLDER_FAILED.
    """
    if response.status_code == 401:
        return unauthorized(
            code="load_folder_unauthorized",
            description="You are not authorized to view this folder",
        )
    if response.status_code == 404:
        return not_found()
    if 500 <= response.status_code < 600:
        return server_error(response.status_code, response.reason)
    if not response.ok:
        return load_folder_failed(path, str(response.status_code))

    match parse_folder_results(response.data):
        case Ok(value=entries):
            return entries
        case Err(error=error):
            logger.warning("Malformed folder listing", path=path, reason=str(error))
            return load_folder_failed(path)


class FolderCache:
    """Caches folder listings and keeps them fresh after mutations."""

    def __init__(self, state: AppState, pipeline: RequestPipeline) -> None:
        """
        Args:
            state: Shared application state; listings live in ``state.folders``.
            pipeline: Pipeline used to fetch listings.
        """
        self._state = state
        self._pipeline = pipeline

        self._sequence = state.folder_sequence
        self._invalidated: dict[str, int] = {}
        self._cleared_at = 0
        self._inflight: dict[str, _Inflight] = {}
        self._tasks: set["asyncio.Task[CacheEntry]"] = set()

        self._unsubscribe = state.events.subscribe(self._on_event)

    def close(self) -> None:
        """Stop following session changes."""
        self._unsubscribe()

    async def read(self, path: str) -> FolderResults:
        """
        Get the entries of a folder.

        Served from the cache unless the entry is missing, stale or an error.

        Raises:
            BError: The (possibly cached) error the listing produced.
        """
        path = folder_key(path)
        await self._pipeline.settled_session()

        entry = self._state.folders.get(self._key(path))
        if entry is not None and not entry.stale and not entry.is_error:
            logger.debug("Folder cache hit", path=path)
            return entry.result

        entry = await asyncio.shield(self._start_fetch(path))
        # A mutation landed while fetching; the listing may predate it
        while self._superseded(path, entry):
            entry = await asyncio.shield(self._start_fetch(path))

        if isinstance(entry.result, BError):
            raise entry.result
        return entry.result

    def peek(self, path: str) -> FolderResults | BError | None:
        """Cached result for a folder, without fetching."""
        entry = self._state.folders.get(self._key(folder_key(path)))
        return None if entry is None else entry.result

    def is_stale(self, path: str) -> bool:
        entry = self._state.folders.get(self._key(folder_key(path)))
        return entry is None or entry.stale

    def invalidate(self, path: str) -> None:
        """
        Mark a folder's listing stale and refetch it in the background.

        Must be called from within the event loop.
        """
        path = folder_key(path)
        self._invalidated[path] = next(self._sequence)
        for key in self._state.folders.keys():
            if key.path != path:
                continue
            entry = self._state.folders.get(key)
            if entry is not None:
                self._state.folders.put(key, replace(entry, stale=True))

        logger.debug("Folder invalidated", path=path, sequence=self._invalidated[path])
        self._start_fetch(path)

    def clear(self) -> None:
        """Drop every listing; fetches already running are discarded on completion."""
        self._cleared_at = next(self._sequence)
        self._state.folders.clear()

    async def wait_idle(self) -> None:
        """Wait until no fetch is running."""
        while self._tasks:
            tasks = list(self._tasks)
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_event(self, event: Event) -> None:
        # Logout clears the store itself; fetches it overtook must not come back
        if isinstance(event, SessionChanged) and event.state is SessionState.LOGGED_OUT:
            self.clear()

    def _key(self, path: str, session: Session | None = None) -> CacheKey:
        session = session or self._state.session
        return CacheKey(
            method="GET",
            path=path,
            access_token=session.access_token,
            site=session.site,
        )

    def _start_fetch(self, path: str) -> "asyncio.Task[CacheEntry]":
        # A fetch started after the latest invalidation is as fresh as a new one
        inflight = self._inflight.get(path)
        if (
            inflight is not None
            and not inflight.task.done()
            and inflight.sequence > self._floor(path)
        ):
            return inflight.task

        sequence = next(self._sequence)
        task = asyncio.create_task(self._load(path, sequence))
        self._inflight[path] = _Inflight(sequence=sequence, task=task)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._drop_inflight(path, sequence))
        return task

    def _drop_inflight(self, path: str, sequence: int) -> None:
        inflight = self._inflight.get(path)
        if inflight is not None and inflight.sequence == sequence:
            del self._inflight[path]

    async def _load(self, path: str, sequence: int) -> CacheEntry:
        session = await self._pipeline.settled_session()
        result: FolderResults | BError
        try:
            response = await list_folder(self._pipeline, path)
            result = classify_listing(path, response)
        except Exception as e:
            result = classify_exception(e)

        entry = CacheEntry(result=result, sequence=sequence)
        self._store(path, entry, session)
        return entry

    def _floor(self, path: str) -> int:
        """Sequence number a fetch of ``path`` must exceed to be kept."""
        return max(self._invalidated.get(path, 0), self._cleared_at)

    def _superseded(self, path: str, entry: CacheEntry) -> bool:
        return entry.sequence <= self._floor(path)

    def _store(self, path: str, entry: CacheEntry, fetched_with: Session) -> None:
        if self._superseded(path, entry):
            logger.debug("Discarding fetch older than latest invalidation", path=path)
            return

        current_session = self._state.session
        if (current_session.username, current_session.site) != (
            fetched_with.username,
            fetched_with.site,
        ):
            logger.debug("Discarding fetch made for another session", path=path)
            return

        key = self._key(path, current_session)
        current = self._state.folders.get(key)
        if current is not None and current.sequence > entry.sequence:
            logger.debug("Discarding fetch older than cached entry", path=path)
            return

        self._state.folders.put(key, entry)
        logger.debug(
            "Folder fetched",
            path=path,
            sequence=entry.sequence,
            error=entry.result.code if entry.is_error else None,
        )
        if isinstance(entry.result, BError):
            self._state.events.publish(FolderChanged(path=path, error=entry.result))
        else:
            self._state.events.publish(FolderChanged(path=path, entries=entry.result))
