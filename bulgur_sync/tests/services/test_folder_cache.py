import asyncio

import httpx
import pytest

from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.core.events import Event, FolderChanged
from bulgur_sync.core.state import AppState
from bulgur_sync.exceptions import BError, ErrorKind
from bulgur_sync.models.storage import FolderEntry
from bulgur_sync.services.auth_service import AuthService
from bulgur_sync.services.folder_cache import FolderCache
from bulgur_sync.tests.utils.mock_transport import (
    MockTransport,
    json_response,
    listing_payload,
    token_payload,
)

LISTING = "/storage/testuser/"


def names(entries: object) -> list[str]:
    assert isinstance(entries, tuple)
    return [entry.name for entry in entries]


def blocking_listing(
    *entries: tuple[str, bool, int],
) -> tuple[asyncio.Event, asyncio.Event, object]:
    """A listing handler that holds its response until released."""
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        entered.set()
        await release.wait()
        return json_response(json_data=listing_payload(*entries))

    return entered, release, handler


@pytest.mark.asyncio
async def test_read_returns_sorted_entries(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response(
        "GET",
        LISTING,
        json_data=listing_payload(("b.txt", True, 2), ("docs", False, 0), ("a.txt", True, 1)),
    )

    entries = await folder_cache.read("testuser")

    assert entries == (
        FolderEntry(name="docs", is_file=False, size=0),
        FolderEntry(name="a.txt", is_file=True, size=1),
        FolderEntry(name="b.txt", is_file=True, size=2),
    )


@pytest.mark.asyncio
async def test_read_is_served_from_cache(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))

    first = await folder_cache.read("testuser")
    second = await folder_cache.read("/testuser//")

    assert first == second
    assert len(mock_transport.requests_for("GET", LISTING)) == 1
    assert not folder_cache.is_stale("testuser")


@pytest.mark.asyncio
async def test_concurrent_reads_share_one_fetch(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))

    results = await asyncio.gather(folder_cache.read("testuser"), folder_cache.read("testuser"))

    assert results[0] == results[1]
    assert len(mock_transport.requests_for("GET", LISTING)) == 1


@pytest.mark.asyncio
async def test_read_root_requests_storage_root(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", "/storage/", json_data=listing_payload(("testuser", False, 0)))

    assert names(await folder_cache.read("/")) == ["testuser"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "json_data", "kind", "code"),
    [
        (404, None, ErrorKind.NOT_FOUND, "not_found"),
        (500, None, ErrorKind.SERVER_ERROR, "server_error"),
        (418, None, ErrorKind.LOAD_FOLDER_FAILED, "load_folder_failed"),
        (200, {"entries": "nope"}, ErrorKind.LOAD_FOLDER_FAILED, "load_folder_failed"),
    ],
)
async def test_read_failures(
    folder_cache: FolderCache,
    mock_transport: MockTransport,
    status_code: int,
    json_data: dict | None,
    kind: ErrorKind,
    code: str,
) -> None:
    mock_transport.add_response("GET", LISTING, status_code=status_code, json_data=json_data)

    with pytest.raises(BError) as exc_info:
        await folder_cache.read("testuser")

    assert exc_info.value.kind is kind
    assert exc_info.value.code == code
    assert folder_cache.peek("testuser") == exc_info.value


@pytest.mark.asyncio
async def test_unauthorized_after_refresh_is_load_folder_unauthorized(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", LISTING, status_code=401)
    mock_transport.add_response("POST", "/auth/refresh", json_data=token_payload("access-1"))

    with pytest.raises(BError) as exc_info:
        await folder_cache.read("testuser")

    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert exc_info.value.code == "load_folder_unauthorized"
    assert len(mock_transport.requests_for("POST", "/auth/refresh")) == 1


@pytest.mark.asyncio
async def test_network_failure_is_cached_as_error(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    mock_transport.add_handler("GET", LISTING, unreachable)

    with pytest.raises(BError) as exc_info:
        await folder_cache.read("testuser")

    assert exc_info.value.kind is ErrorKind.NETWORK_FAILURE


@pytest.mark.asyncio
async def test_error_entries_are_fetched_again(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", LISTING, status_code=404)
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))

    with pytest.raises(BError):
        await folder_cache.read("testuser")
    entries = await folder_cache.read("testuser")

    assert names(entries) == ["a.txt"]
    assert len(mock_transport.requests_for("GET", LISTING)) == 2


@pytest.mark.asyncio
async def test_invalidate_refetches_in_background(
    folder_cache: FolderCache, mock_transport: MockTransport, app_state: AppState
) -> None:
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))
    mock_transport.add_response(
        "GET", LISTING, json_data=listing_payload(("a.txt", True, 1), ("b.txt", True, 1))
    )
    await folder_cache.read("testuser")
    events: list[Event] = []
    app_state.events.subscribe(events.append)

    folder_cache.invalidate("testuser/")

    assert folder_cache.is_stale("testuser")
    await folder_cache.wait_idle()

    assert not folder_cache.is_stale("testuser")
    assert names(folder_cache.peek("testuser")) == ["a.txt", "b.txt"]
    assert len(mock_transport.requests_for("GET", LISTING)) == 2
    assert len(events) == 1
    assert isinstance(events[0], FolderChanged)
    assert names(events[0].entries) == ["a.txt", "b.txt"]


@pytest.mark.asyncio
async def test_invalidate_only_touches_that_folder(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))
    mock_transport.add_response("GET", "/storage/testuser/docs/", json_data=listing_payload())
    await folder_cache.read("testuser")
    await folder_cache.read("testuser/docs")

    folder_cache.invalidate("testuser/docs")
    await folder_cache.wait_idle()

    assert len(mock_transport.requests_for("GET", LISTING)) == 1
    assert len(mock_transport.requests_for("GET", "/storage/testuser/docs/")) == 2


@pytest.mark.asyncio
async def test_fetch_started_before_invalidation_is_discarded(
    folder_cache: FolderCache, mock_transport: MockTransport, app_state: AppState
) -> None:
    entered, release, slow_handler = blocking_listing(("old.txt", True, 1))
    mock_transport.add_handler("GET", LISTING, slow_handler)
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("new.txt", True, 1)))
    fresh_stored = asyncio.Event()
    app_state.events.subscribe(
        lambda event: fresh_stored.set() if isinstance(event, FolderChanged) else None
    )

    read_task = asyncio.create_task(folder_cache.read("testuser"))
    await entered.wait()
    folder_cache.invalidate("testuser")
    await fresh_stored.wait()
    release.set()

    assert names(await read_task) == ["new.txt"]
    await folder_cache.wait_idle()
    assert names(folder_cache.peek("testuser")) == ["new.txt"]


@pytest.mark.asyncio
async def test_clear_discards_running_fetch(
    folder_cache: FolderCache, mock_transport: MockTransport
) -> None:
    entered, release, slow_handler = blocking_listing(("a.txt", True, 1))
    mock_transport.add_handler("GET", LISTING, slow_handler)

    folder_cache.invalidate("testuser")
    await entered.wait()
    folder_cache.clear()
    release.set()
    await folder_cache.wait_idle()

    assert folder_cache.peek("testuser") is None


@pytest.mark.asyncio
async def test_logout_discards_running_fetch(
    folder_cache: FolderCache,
    auth_service: AuthService,
    mock_transport: MockTransport,
    app_state: AppState,
) -> None:
    entered, release, slow_handler = blocking_listing(("a.txt", True, 1))
    mock_transport.add_handler("GET", LISTING, slow_handler)

    folder_cache.invalidate("testuser")
    await entered.wait()
    await auth_service.logout(no_redirect=True)
    release.set()
    await folder_cache.wait_idle()

    assert len(app_state.folders) == 0


@pytest.mark.asyncio
async def test_cache_is_keyed_by_token(
    folder_cache: FolderCache, mock_transport: MockTransport, app_state: AppState
) -> None:
    mock_transport.add_response("GET", LISTING, json_data=listing_payload(("a.txt", True, 1)))
    await folder_cache.read("testuser")

    app_state.session = app_state.session.with_tokens("access-9", "refresh-9")

    assert folder_cache.peek("testuser") is None
    await folder_cache.read("testuser")
    assert len(mock_transport.requests_for("GET", LISTING)) == 2


@pytest.mark.asyncio
async def test_close_stops_following_session(
    folder_cache: FolderCache, app_state: AppState
) -> None:
    listeners = len(app_state.events)

    folder_cache.close()

    assert len(app_state.events) == listeners - 1


@pytest.mark.asyncio
async def test_new_cache_on_same_state_keeps_storing_fresh_listings(
    folder_cache: FolderCache,
    pipeline: RequestPipeline,
    mock_transport: MockTransport,
    app_state: AppState,
) -> None:
    listing = [("a.txt", True, 1)]
    mock_transport.add_handler(
        "GET", LISTING, lambda _: json_response(json_data=listing_payload(*listing))
    )
    await folder_cache.read("testuser")
    for _ in range(6):
        folder_cache.invalidate("testuser")
    await folder_cache.wait_idle()
    folder_cache.close()

    listing = [("b.txt", True, 1)]
    reopened = FolderCache(app_state, pipeline)
    reopened.invalidate("testuser")
    await reopened.wait_idle()

    assert not reopened.is_stale("testuser")
    assert names(reopened.peek("testuser")) == ["b.txt"]
    requests = len(mock_transport.requests_for("GET", LISTING))
    assert names(await reopened.read("testuser")) == ["b.txt"]
    assert len(mock_transport.requests_for("GET", LISTING)) == requests
    reopened.close()
