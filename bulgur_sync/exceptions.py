"""
Bulgur sync error taxonomy.

Every failure that reaches a caller is a BError: a closed ErrorKind plus the
``{code, title, description}`` triple shown to users and pasted into bug reports.
"""

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Closed set of error kinds. The value is the default error code."""

    NETWORK_FAILURE = "network_failure"
    MISSING_AUTH = "missing_auth"
    SITE_UNSET = "site_unset"
    BAD_CREDENTIALS = "login_bad"
    LOGIN_FAILED = "login_failed"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    LOAD_FOLDER_FAILED = "load_folder_failed"
    SERVER_ERROR = "server_error"
    UNEXPECTED_ERROR = "unexpected_error"
    DATA_AND_FORM_DATA_CONFLICT = "data_and_form_data"


class BError(Exception):
    """
    User-displayable error value.

    Immutable once built, never retried automatically and always terminal for
    the operation that produced it.

    Attributes:
        kind: Taxonomy entry this error belongs to.
        code: Machine-readable code (defaults to the kind's value).
        title: Short human title.
        description: Longer human explanation.
    """

    def __init__(
        self,
        kind: ErrorKind,
        title: str,
        description: str,
        *,
        code: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(title)
        self._kind = kind
        self._code = code or kind.value
        self._title = title
        self._description = description
        self._context = context

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def code(self) -> str:
        return self._code

    @property
    def title(self) -> str:
        return self._title

    @property
    def description(self) -> str:
        return self._description

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def to_dict(self) -> dict[str, str]:
        """Return the ``{code, title, description}`` triple."""
        return {"code": self._code, "title": self._title, "description": self._description}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BError):
            return NotImplemented
        return (self._kind, self._code, self._title, self._description) == (
            other._kind,
            other._code,
            other._title,
            other._description,
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._code, self._title, self._description))

    def __str__(self) -> str:
        text = f"[{self._code}] {self._title}: {self._description}"
        if self._context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self._context.items())
            return f"{text} ({ctx})"
        return text

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self._code!r}, title={self._title!r})"


def network_failure(**context: Any) -> BError:
    return BError(
        ErrorKind.NETWORK_FAILURE,
        "Failed to connect to the server",
        "Make sure you have an internet connection.",
        **context,
    )


def missing_auth() -> BError:
    return BError(
        ErrorKind.MISSING_AUTH,
        "Authentication Data Missing",
        "The app data may have been corrupted. "
        "Please try erasing your saved data and starting again.",
    )


def site_unset() -> BError:
    return BError(
        ErrorKind.SITE_UNSET,
        "Internal Error (site unset)",
        "An internal error has occurred, please send a bug report if you are seeing this.",
    )


def bad_credentials() -> BError:
    return BError(
        ErrorKind.BAD_CREDENTIALS,
        "Bad username or password",
        "The username or password you tried to use is incorrect.",
    )


def login_failed(**context: Any) -> BError:
    return BError(
        ErrorKind.LOGIN_FAILED,
        "Failed to log in or reauthenticate",
        "You may be trying to log in with the wrong password, the server may be having "
        "internal issues, or your account may have been deleted.",
        **context,
    )


def unauthorized(*, code: str | None = None, description: str | None = None) -> BError:
    return BError(
        ErrorKind.UNAUTHORIZED,
        "Unauthorized",
        description or "You are not authorized to do this action.",
        code=code,
    )


def not_found(description: str = "This folder does not exist.") -> BError:
    return BError(ErrorKind.NOT_FOUND, "Not found", description)


def load_folder_failed(path: str, reason: str | None = None) -> BError:
    description = f"Unable to load {path}"
    if reason:
        description = f"{description}: {reason}"
    return BError(ErrorKind.LOAD_FOLDER_FAILED, "Failed to load folder", description)


def server_error(status_code: int, reason: str = "") -> BError:
    return BError(
        ErrorKind.SERVER_ERROR,
        "Internal server error",
        f"There was an error in the server. ({status_code} - {reason})",
        status_code=status_code,
    )


def unexpected_error(detail: str) -> BError:
    return BError(
        ErrorKind.UNEXPECTED_ERROR,
        "An unexpected error occurred",
        f"Please send a bug report with the following message: {detail}",
    )


def data_and_form_data_conflict() -> BError:
    return BError(
        ErrorKind.DATA_AND_FORM_DATA_CONFLICT,
        "Internal Implementation Error",
        "Both the data and the form data fields have been provided for the request.",
    )


def unexpected_status(status_code: int, reason: str = "") -> BError:
    return BError(
        ErrorKind.UNEXPECTED_ERROR,
        "Unexpected error",
        f"An unexpected error occurred. ({status_code} - {reason})",
        status_code=status_code,
    )
