"""
Schema validation of server payloads.

Every payload crossing the HTTP boundary is checked here once and turned into
a typed model. Validators never raise; they return ``Ok`` or ``Err`` so the
call site decides which BError a bad payload maps to.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from bulgur_sync.models.auth import Credentials, LoginResponse
from bulgur_sync.models.storage import FolderEntry, FolderResults, sort_entries

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Why a payload was rejected."""

    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: ValidationError


Result = Ok[T] | Err


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a valid size or duration
    return isinstance(value, int) and not isinstance(value, bool)


def _require_str(data: dict[str, Any], key: str) -> ValidationError | None:
    if not isinstance(data.get(key), str):
        return ValidationError(key, "expected a string")
    return None


def parse_login_response(data: Any) -> Result[LoginResponse]:
    """Validate the payload of a login or refresh response."""
    if not isinstance(data, dict):
        return Err(ValidationError("<root>", "expected an object"))
    for key in ("access_token", "refresh_token"):
        if (error := _require_str(data, key)) is not None:
            return Err(error)
    if not _is_int(data.get("valid_for_seconds")):
        return Err(ValidationError("valid_for_seconds", "expected an integer"))
    return Ok(
        LoginResponse(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            valid_for_seconds=data["valid_for_seconds"],
        )
    )


def parse_folder_entry(data: Any, index: int = 0) -> Result[FolderEntry]:
    prefix = f"entries[{index}]"
    if not isinstance(data, dict):
        return Err(ValidationError(prefix, "expected an object"))
    if not isinstance(data.get("name"), str):
        return Err(ValidationError(f"{prefix}.name", "expected a string"))
    if not isinstance(data.get("is_file"), bool):
        return Err(ValidationError(f"{prefix}.is_file", "expected a boolean"))
    size = data.get("size")
    if not _is_int(size) or size < 0:
        return Err(ValidationError(f"{prefix}.size", "expected a non-negative integer"))
    return Ok(FolderEntry(name=data["name"], is_file=data["is_file"], size=size))


def parse_folder_results(data: Any) -> Result[FolderResults]:
    """
    Validate a folder listing and return it in display order.

    The server's ordering is never trusted; entries are re-sorted here.
    """
    if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
        return Err(ValidationError("entries", "expected a list"))
    entries = []
    for index, raw in enumerate(data["entries"]):
        match parse_folder_entry(raw, index):
            case Ok(value=entry):
                entries.append(entry)
            case Err() as err:
                return err
    return Ok(sort_entries(entries))


def parse_path_token(data: Any) -> Result[str]:
    if not isinstance(data, dict) or not isinstance(data.get("token"), str):
        return Err(ValidationError("token", "expected a string"))
    return Ok(data["token"])


def parse_credentials(data: Any) -> Result[Credentials]:
    """Validate a record read back from the credential store."""
    if not isinstance(data, dict):
        return Err(ValidationError("<root>", "expected an object"))
    for key in ("username", "access_token", "refresh_token", "site"):
        if (error := _require_str(data, key)) is not None:
            return Err(error)
    return Ok(
        Credentials(
            username=data["username"],
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            site=data["site"],
        )
    )
