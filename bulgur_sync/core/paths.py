"""Storage path helpers."""

import re
from urllib.parse import quote

STORAGE = "storage"

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Collapse repeated separators, keeping leading and trailing ones."""
    return _REPEATED_SEPARATORS.sub("/", path)


def folder_key(path: str) -> str:
    """
    Canonical form of a folder path, used to key cached listings.

    ``"/a//b/"`` and ``"a/b"`` both become ``"a/b"``; the root is ``""``.
    """
    return normalize_path(path).strip("/")


def parent_path(path: str) -> str:
    """
    Folder containing ``path``.

    Example:
        ``parent_path("a/b/c")`` and ``parent_path("a/b/c/")`` are both ``"a/b"``.
    """
    segments = folder_key(path).split("/")
    return "/".join(segments[:-1])


def storage_url(path: str, *, folder: bool = False) -> str:
    """
    Server URL for a storage path, percent-encoded.

    Every segment is encoded, so names containing ``?``, ``#`` or ``%`` stay
    part of the path.

    Args:
        path: Storage path, e.g. ``"testuser/docs"``.
        folder: Append a trailing separator, the form listings are requested in.
    """
    key = quote(folder_key(path), safe="/")
    url = f"/{STORAGE}/{key}" if key else f"/{STORAGE}"
    if folder:
        url = f"{url}/"
    return url
