"""
Storage-related domain models.
"""

import io
import locale
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Self

from bulgur_sync.exceptions import BError


@dataclass(frozen=True, kw_only=True)
class MakePathToken:
    """Ask the server for a token granting unauthenticated access to a path."""

    def to_json(self) -> dict[str, Any]:
        return {"action": "MakePathToken"}


@dataclass(frozen=True, kw_only=True)
class Move:
    """Rename or move a path to ``new_path``."""

    new_path: str

    def to_json(self) -> dict[str, Any]:
        return {"action": "Move", "new_path": self.new_path}


@dataclass(frozen=True, kw_only=True)
class CreateFolder:
    """Create a folder at the request path."""

    def to_json(self) -> dict[str, Any]:
        return {"action": "CreateFolder"}


StorageAction = MakePathToken | Move | CreateFolder


@dataclass(frozen=True, kw_only=True)
class FolderEntry:
    """A single file or folder within a folder listing."""

    name: str
    is_file: bool
    size: int = 0


FolderResults = tuple[FolderEntry, ...]


def _entry_order(entry: FolderEntry) -> tuple[bool, str]:
    return entry.is_file, locale.strxfrm(entry.name)


def sort_entries(entries: Iterable[FolderEntry]) -> FolderResults:
    """
    Order a listing with folders first, then by name.

    Names are compared with the current locale's collation, so the order
    matches what the user's platform shows for the same names.
    """
    return tuple(sorted(entries, key=_entry_order))


@dataclass(kw_only=True)
class UploadTask:
    """
    Progress of a single file upload.

    Attributes:
        name: File name, unique within the pending uploads.
        total_bytes: Size of the file.
        bytes_done: Bytes of the file sent so far.
    """

    name: str
    total_bytes: int
    bytes_done: int = 0

    @property
    def is_complete(self) -> bool:
        return self.bytes_done >= self.total_bytes


@dataclass(frozen=True, kw_only=True)
class UploadFile:
    """
    A file accepted for upload.

    The content is re-opened for every attempt, so a request retried after
    re-authentication sends the whole file again.
    """

    name: str
    size: int
    source: bytes | Path = field(repr=False)

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> Self:
        return cls(name=name, size=len(data), source=data)

    @classmethod
    def from_path(cls, path: Path | str, name: str | None = None) -> Self:
        path = Path(path)
        return cls(name=name or path.name, size=path.stat().st_size, source=path)

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        if isinstance(self.source, bytes):
            yield io.BytesIO(self.source)
            return
        with self.source.open("rb") as f:
            yield f


@dataclass(frozen=True, kw_only=True)
class UploadResult:
    """Outcome of one file within an upload batch."""

    name: str
    error: BError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, kw_only=True)
class PathMeta:
    """
    Result of a metadata probe on a storage path.

    Attributes:
        exists: Whether the server answered with a success status.
        fields: Any metadata the server returned alongside.
    """

    exists: bool
    fields: dict[str, Any] = field(default_factory=dict)
