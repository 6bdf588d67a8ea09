from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from bulgur_sync.api.http_client import AsyncHttpClient
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.config import BulgurSyncConfig
from bulgur_sync.core.credential_store import MemoryCredentialStore
from bulgur_sync.core.state import AppState
from bulgur_sync.models.auth import Session, SessionState
from bulgur_sync.services.auth_service import AuthService
from bulgur_sync.services.error_classifier import ErrorReporter
from bulgur_sync.services.folder_cache import FolderCache
from bulgur_sync.tests.utils.mock_transport import SITE, MockTransport

USERNAME = "testuser"
ACCESS_TOKEN = "access-0"
REFRESH_TOKEN = "refresh-0"


def authenticated_session(
    access_token: str = ACCESS_TOKEN, refresh_token: str = REFRESH_TOKEN
) -> Session:
    return Session(
        state=SessionState.AUTHENTICATED,
        username=USERNAME,
        access_token=access_token,
        refresh_token=refresh_token,
        site=SITE,
    )


@pytest.fixture
def config() -> BulgurSyncConfig:
    return BulgurSyncConfig(site=SITE, upload_chunk_size=16)


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def credential_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def app_state() -> AppState:
    """State of a client that is already logged in."""
    return AppState(session=authenticated_session())


@pytest_asyncio.fixture
async def http(
    config: BulgurSyncConfig, mock_transport: MockTransport
) -> AsyncGenerator[AsyncHttpClient, None]:
    async with AsyncHttpClient(config, transport=mock_transport) as client:
        yield client


@pytest.fixture
def auth_service(
    app_state: AppState, http: AsyncHttpClient, credential_store: MemoryCredentialStore
) -> AuthService:
    return AuthService(app_state, http, credential_store)


@pytest.fixture
def pipeline(http: AsyncHttpClient, auth_service: AuthService) -> RequestPipeline:
    return RequestPipeline(http, auth_service)


@pytest.fixture
def folder_cache(app_state: AppState, pipeline: RequestPipeline) -> FolderCache:
    return FolderCache(app_state, pipeline)


@pytest.fixture
def reporter(app_state: AppState) -> ErrorReporter:
    return ErrorReporter(app_state)
