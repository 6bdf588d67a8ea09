"""
Authentication-related domain models.
"""

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Self


class SessionState(StrEnum):
    """Lifecycle of the authentication session."""

    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    LOGGED_OUT = "logged_out"

    @property
    def is_settled(self) -> bool:
        """Whether other components may issue requests against this state."""
        return self in (SessionState.AUTHENTICATED, SessionState.LOGGED_OUT)


@dataclass(frozen=True, kw_only=True)
class Session:
    """
    Immutable snapshot of the session, replaced wholesale on every change.

    Attributes:
        state: Current lifecycle state.
        username: Logged in user, if any.
        access_token: Token attached to authenticated requests.
        refresh_token: Token used to obtain a new access token.
        site: Base URL of the server.
    """

    state: SessionState = SessionState.UNINITIALIZED
    username: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    site: str | None = None

    def __post_init__(self) -> None:
        if (self.access_token is None) != (self.refresh_token is None):
            msg = "access_token and refresh_token must be both set or both unset"
            raise ValueError(msg)

    @property
    def has_tokens(self) -> bool:
        return self.access_token is not None

    def with_state(self, state: SessionState) -> Self:
        return replace(self, state=state)

    def with_tokens(self, access_token: str, refresh_token: str) -> Self:
        return replace(self, access_token=access_token, refresh_token=refresh_token)

    def logged_out(self) -> Self:
        """Drop user and tokens, keeping the site so the user can log in again."""
        return type(self)(state=SessionState.LOGGED_OUT, site=self.site)


@dataclass(frozen=True, kw_only=True)
class Credentials:
    """The record saved in the credential store."""

    username: str
    access_token: str
    refresh_token: str
    site: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "site": self.site,
        }


@dataclass(frozen=True, kw_only=True)
class LoginResponse:
    """Payload returned by both ``/auth/login`` and ``/auth/refresh``."""

    access_token: str
    refresh_token: str
    valid_for_seconds: int
