"""
Persistent key-value storage for saved credentials.

The sync layer only depends on the CredentialStore protocol. Three
implementations ship with it:

- KeyringCredentialStore: the OS keyring, the one to use for real sessions
- MemoryCredentialStore: lives as long as the process
- FileCredentialStore: plaintext JSON files, for non-secret setups such as
  test servers or throwaway accounts
"""

import asyncio
import json
import os
import re
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import keyring
import keyring.errors
import structlog

logger = structlog.get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")

KEYRING_SERVICE = "bulgur-sync"


@runtime_checkable
class CredentialStore(Protocol):
    """Abstract interface for a persistent key-value store."""

    async def get(self, key: str) -> Any | None:
        """
        Read a value.

        Returns:
            The stored JSON-compatible value, or None if the key is absent.
        """
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value, replacing any previous one."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a value. No-op if the key is absent."""
        ...


class MemoryCredentialStore:
    """Credential store that lives as long as the object does."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        # Serialize so callers never share mutable state with the store
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileCredentialStore:
    """
    Credential store keeping one JSON file per key in a directory.

    Files are written atomically and readable by the owner only, but the
    tokens inside are not encrypted. Prefer KeyringCredentialStore wherever
    an OS keyring is available.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, self._path_for(key))

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, self._path_for(key), value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path_for(key).unlink, missing_ok=True)

    @staticmethod
    def _read(path: Path) -> Any | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            # A corrupt record is treated as absent; it gets overwritten on next login
            logger.warning("Ignoring unreadable credential file", path=str(path), exc_info=e)
            return None

    def _write(self, path: Path, value: Any) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)


class KeyringCredentialStore:
    """
    Credential store backed by the OS keyring.

    Each key is a keyring entry of ``service``, holding the JSON-encoded
    value. Keyring calls may block on a desktop prompt, so they run in a
    worker thread.
    """

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    async def get(self, key: str) -> Any | None:
        raw = await asyncio.to_thread(keyring.get_password, self._service, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable keyring entry", key=key, exc_info=e)
            return None

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(keyring.set_password, self._service, key, json.dumps(value))

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(keyring.delete_password, self._service, key)
        except keyring.errors.PasswordDeleteError:
            logger.debug("No keyring entry to delete", key=key)
