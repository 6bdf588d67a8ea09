"""
Observer plumbing between the sync layer and whatever displays it.

Components publish plain event objects; any number of listeners subscribe and
react. Listeners run synchronously in publish order and must not block.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from bulgur_sync.exceptions import BError
from bulgur_sync.models.auth import SessionState
from bulgur_sync.models.storage import FolderResults

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, kw_only=True)
class SessionChanged:
    state: SessionState
    username: str | None = None


@dataclass(frozen=True, kw_only=True)
class NavigateToLogin:
    """The user must be sent back to the entry screen."""


@dataclass(frozen=True, kw_only=True)
class FolderChanged:
    """A folder listing was (re)loaded; exactly one of entries/error is set."""

    path: str
    entries: FolderResults | None = None
    error: BError | None = None


@dataclass(frozen=True, kw_only=True)
class UploadProgress:
    """Progress of one file. ``done == total == 0`` means the upload is gone."""

    name: str
    done: int
    total: int


@dataclass(frozen=True, kw_only=True)
class ErrorReported:
    key: str
    error: BError


Event = SessionChanged | NavigateToLogin | FolderChanged | UploadProgress | ErrorReported
Listener = Callable[[Event], None]


class EventBus:
    """Publish/subscribe hub for state changes."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: Event) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    "Event listener failed",
                    event_type=type(event).__name__,
                    error_type=type(e).__name__,
                    exc_info=e,
                )

    def __len__(self) -> int:
        return len(self._listeners)
