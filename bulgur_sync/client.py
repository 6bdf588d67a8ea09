"""
Bulgur sync client facade.

This is the main entry point for users of the library. It wires the shared
state, the HTTP client and the services together and exposes the operations
a storage browser needs.
"""

import asyncio
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Self

import httpx
import structlog

from bulgur_sync.api.http_client import AsyncHttpClient
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.config import BulgurSyncConfig
from bulgur_sync.core.credential_store import CredentialStore, MemoryCredentialStore
from bulgur_sync.core.events import Listener
from bulgur_sync.core.state import AppState
from bulgur_sync.models.auth import SessionState
from bulgur_sync.models.storage import FolderResults, PathMeta, UploadFile, UploadResult
from bulgur_sync.services.auth_service import AuthService
from bulgur_sync.services.error_classifier import ErrorReporter
from bulgur_sync.services.folder_cache import FolderCache
from bulgur_sync.services.storage_service import StorageService
from bulgur_sync.services.upload_orchestrator import UploadOrchestrator

logger = structlog.get_logger(__name__)


class BulgurClient:
    """
    Async client for a Bulgur Cloud server.

    Example:
        ```python
        store = KeyringCredentialStore()
        async with BulgurClient(credential_store=store) as client:
            await client.initialize()
            if client.state is not SessionState.AUTHENTICATED:
                await client.login("testuser", "password", "https://bulgur.example")

            for entry in await client.list_folder("testuser"):
                print(entry.name)

            await client.upload("testuser/docs", [Path("report.pdf")])
        ```

    Args:
        config: Client configuration. Uses defaults if not provided.
        transport: Optional httpx transport for testing (mock transport).
        credential_store: Where the session is saved. Kept in memory if not
            provided.
    """

    def __init__(
        self,
        config: BulgurSyncConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        credential_store: CredentialStore | None = None,
    ) -> None:
        self._config = config or BulgurSyncConfig()
        self._transport = transport
        self._credential_store = credential_store or MemoryCredentialStore()

        self._app_state = AppState.create(
            site=self._config.site,
            folder_cache_max_size=self._config.folder_cache_max_size,
        )
        self._http: AsyncHttpClient | None = None
        self._auth_service: AuthService | None = None
        self._folder_cache: FolderCache | None = None
        self._storage_service: StorageService | None = None
        self._upload_orchestrator: UploadOrchestrator | None = None
        self._reporter = ErrorReporter(self._app_state)

        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self._ensure_initialized()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        await self.close()

    async def _ensure_initialized(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return

            self._http = AsyncHttpClient(self._config, transport=self._transport)
            await self._http.__aenter__()

            self._auth_service = AuthService(
                self._app_state,
                self._http,
                self._credential_store,
                persist_key=self._config.persist_key,
            )
            pipeline = RequestPipeline(self._http, self._auth_service)
            self._folder_cache = FolderCache(self._app_state, pipeline)
            self._storage_service = StorageService(pipeline, self._folder_cache)
            self._upload_orchestrator = UploadOrchestrator(
                self._app_state,
                pipeline,
                self._folder_cache,
                self._reporter,
                max_concurrent=self._config.max_concurrent_uploads,
            )

            self._initialized = True
            logger.debug("Client initialized")

    async def close(self) -> None:
        """Wait for background refetches, then release the HTTP client."""
        async with self._init_lock:
            if self._folder_cache:
                await self._folder_cache.wait_idle()
                self._folder_cache.close()
                self._folder_cache = None

            if self._http:
                await self._http.__aexit__(None, None, None)
                self._http = None

            self._auth_service = None
            self._storage_service = None
            self._upload_orchestrator = None
            self._initialized = False
            logger.debug("Client closed")

    @property
    def app_state(self) -> AppState:
        """Shared state: session, cached listings, uploads and reported errors."""
        return self._app_state

    @property
    def state(self) -> SessionState:
        return self._app_state.session.state

    @property
    def username(self) -> str | None:
        return self._app_state.session.username

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def errors(self) -> ErrorReporter:
        """Errors reported by background work, such as failed uploads."""
        return self._reporter

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Follow state changes.

        Returns:
            A function that removes the listener.
        """
        return self._app_state.events.subscribe(listener)

    async def initialize(self) -> SessionState:
        """
        Restore the saved session, if there is one.

        Returns:
            AUTHENTICATED or LOGGED_OUT.
        """
        auth = await self._auth()
        await auth.wait_settled()
        return self.state

    async def login(self, username: str, password: str, site: str | None = None) -> str:
        """
        Log in.

        Args:
            username: Account name.
            password: Account password.
            site: Server base URL; defaults to the configured site.

        Returns:
            The logged-in username.

        Raises:
            BError: BAD_CREDENTIALS, LOGIN_FAILED, SITE_UNSET, SERVER_ERROR or
                NETWORK_FAILURE.
        """
        auth = await self._auth()
        return await auth.login(username, password, site or self._config.site or "")

    async def logout(self, *, no_redirect: bool = False) -> None:
        auth = await self._auth()
        await auth.logout(no_redirect=no_redirect)

    async def list_folder(self, path: str) -> FolderResults:
        """
        List a folder, folders first.

        Raises:
            BError: NOT_FOUND, UNAUTHORIZED, SERVER_ERROR, LOAD_FOLDER_FAILED
                or NETWORK_FAILURE.
        """
        return await (await self._storage()).list_folder(path)

    async def create_folder(self, path: str) -> None:
        await (await self._storage()).create_folder(path)

    async def delete(self, path: str) -> None:
        await (await self._storage()).delete(path)

    async def rename(self, from_path: str, to_path: str) -> None:
        await (await self._storage()).rename(from_path, to_path)

    async def path_token(self, path: str) -> str:
        return await (await self._storage()).path_token(path)

    async def download_url(self, path: str) -> str:
        return await (await self._storage()).download_url(path)

    async def path_exists(self, path: str) -> bool:
        return await (await self._storage()).path_exists(path)

    async def path_meta(self, path: str) -> PathMeta:
        return await (await self._storage()).path_meta(path)

    async def read_file(self, path: str) -> bytes:
        return await (await self._storage()).read_file(path)

    async def upload(
        self, path: str, files: Iterable[UploadFile | Path | str]
    ) -> list[UploadResult]:
        """
        Upload files into a folder.

        Args:
            path: Destination folder.
            files: Files to upload; local paths are read from disk.

        Returns:
            One result per file. Failed files are also reported to ``errors``.
        """
        await self._ensure_initialized()
        if self._upload_orchestrator is None:
            raise RuntimeError("Client not initialized")
        uploads = [f if isinstance(f, UploadFile) else UploadFile.from_path(f) for f in files]
        return await self._upload_orchestrator.upload(path, uploads)

    async def wait_idle(self) -> None:
        """Wait until background folder refetches have finished."""
        await self._ensure_initialized()
        if self._folder_cache is not None:
            await self._folder_cache.wait_idle()

    async def _auth(self) -> AuthService:
        await self._ensure_initialized()
        if self._auth_service is None:
            raise RuntimeError("Client not initialized")
        return self._auth_service

    async def _storage(self) -> StorageService:
        await self._ensure_initialized()
        if self._storage_service is None:
            raise RuntimeError("Client not initialized")
        return self._storage_service
