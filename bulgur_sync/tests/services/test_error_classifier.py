import httpx
import pytest

from bulgur_sync.api.http_client import Response
from bulgur_sync.core.events import ErrorReported, Event
from bulgur_sync.core.state import AppState
from bulgur_sync.exceptions import BError, ErrorKind, bad_credentials, not_found
from bulgur_sync.services.error_classifier import (
    ErrorReporter,
    classify_exception,
    classify_status,
    raise_for_status,
)


def test_classify_exception_keeps_berror() -> None:
    error = bad_credentials()

    assert classify_exception(error) is error


def test_classify_exception_maps_transport_errors() -> None:
    error = classify_exception(httpx.ReadTimeout("timed out"))

    assert error.kind is ErrorKind.NETWORK_FAILURE


def test_classify_exception_wraps_anything_else() -> None:
    error = classify_exception(KeyError("entries"))

    assert error.kind is ErrorKind.UNEXPECTED_ERROR
    assert "KeyError" in error.description


@pytest.mark.parametrize(
    ("status_code", "kind"),
    [
        (401, ErrorKind.UNAUTHORIZED),
        (404, ErrorKind.NOT_FOUND),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (409, ErrorKind.UNEXPECTED_ERROR),
    ],
)
def test_classify_status(status_code: int, kind: ErrorKind) -> None:
    error = classify_status(Response(status_code=status_code))

    assert error is not None
    assert error.kind is kind


def test_classify_status_success_is_none() -> None:
    assert classify_status(Response(status_code=204)) is None


def test_classify_status_overrides() -> None:
    override = not_found("This file does not exist.")

    assert classify_status(Response(status_code=404), on_not_found=override) is override


def test_raise_for_status() -> None:
    ok = Response(status_code=200)
    assert raise_for_status(ok) is ok

    with pytest.raises(BError) as exc_info:
        raise_for_status(Response(status_code=401))
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED


def test_reporter_stores_and_clears_errors() -> None:
    state = AppState()
    events: list[Event] = []
    state.events.subscribe(events.append)
    reporter = ErrorReporter(state)

    first = reporter.report(bad_credentials())
    second = reporter.report(RuntimeError("boom"))

    assert first != second
    assert reporter.errors[first] == bad_credentials()
    assert reporter.errors[second].kind is ErrorKind.UNEXPECTED_ERROR
    assert events[0] == ErrorReported(key=first, error=bad_credentials())

    reporter.clear(first)
    reporter.clear("unknown")

    assert list(state.errors) == [second]
