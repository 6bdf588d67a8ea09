"""
Error classification and reporting.

Maps whatever went wrong (an exception, or a response with an unwanted
status) onto the closed BError taxonomy, and keeps the reported errors where
the UI can list and dismiss them. Classification is a pure function of its
input and never retries.
"""

import itertools
import time

import httpx
import structlog

from bulgur_sync.api.http_client import Response
from bulgur_sync.core.events import ErrorReported
from bulgur_sync.core.state import AppState
from bulgur_sync.exceptions import (
    BError,
    ErrorKind,
    network_failure,
    not_found,
    server_error,
    unauthorized,
    unexpected_error,
    unexpected_status,
)

logger = structlog.get_logger(__name__)


def classify_exception(exc: BaseException) -> BError:
    """Convert any exception into a BError."""
    if isinstance(exc, BError):
        return exc
    if isinstance(exc, httpx.TransportError):
        return network_failure()
    return unexpected_error(f"{type(exc).__name__}: {exc}")


def classify_status(
    response: Response,
    *,
    on_unauthorized: BError | None = None,
    on_not_found: BError | None = None,
) -> BError | None:
    """
    Classify a response by status.

    Args:
        response: Response to inspect.
        on_unauthorized: Error to use for a 401 instead of the generic one.
        on_not_found: Error to use for a 404 instead of the generic one.

    Returns:
        None for a 2xx response, otherwise the matching BError.
    """
    status = response.status_code
    if response.ok:
        return None
    if status == 401:
        return on_unauthorized or unauthorized()
    if status == 404:
        return on_not_found or not_found("This path does not exist.")
    if 500 <= status < 600:
        return server_error(status, response.reason)
    return unexpected_status(status, response.reason)


def raise_for_status(
    response: Response,
    *,
    on_unauthorized: BError | None = None,
    on_not_found: BError | None = None,
) -> Response:
    """
    Return the response if it succeeded, raise its BError otherwise.

    Raises:
        BError: See classify_status.
    """
    error = classify_status(response, on_unauthorized=on_unauthorized, on_not_found=on_not_found)
    if error is not None:
        raise error
    return response


class ErrorReporter:
    """
    Collects errors for display.

    Each reported error gets a key so the UI can dismiss it later.
    """

    def __init__(self, state: AppState) -> None:
        self._state = state
        self._counter = itertools.count()

    @property
    def errors(self) -> dict[str, BError]:
        return dict(self._state.errors)

    def report(self, error: BaseException) -> str:
        """
        Classify and record an error.

        Returns:
            The key the error is stored under.
        """
        classified = classify_exception(error)
        key = f"{time.time_ns()}-{next(self._counter)}"
        if classified.kind is ErrorKind.UNEXPECTED_ERROR:
            logger.error("Unexpected error", code=classified.code, exc_info=error)
        else:
            logger.info("Error reported", code=classified.code, title=classified.title)
        self._state.errors[key] = classified
        self._state.events.publish(ErrorReported(key=key, error=classified))
        return key

    def clear(self, key: str) -> None:
        self._state.errors.pop(key, None)
