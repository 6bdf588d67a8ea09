"""
Async HTTP client for the Bulgur Cloud server.

Thin wrapper over httpx: sends one request, turns transport failures into
BError, parses the body and reports multipart upload progress. It knows
nothing about sessions; the request pipeline attaches credentials.
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from bulgur_sync.config import BulgurSyncConfig
from bulgur_sync.exceptions import data_and_form_data_conflict, network_failure
from bulgur_sync.models.storage import UploadFile

logger = structlog.get_logger(__name__)

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "access_token",
        "refresh_token",
        "token",
        "authorization",
    }
)

ProgressCallback = Callable[[int, int], None]


def sanitize_for_log(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive fields from a mapping before logging.

    Recursively sanitizes nested dictionaries and lists.

    Returns:
        Copy with sensitive values replaced by "***".
    """
    result = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS:
            result[key] = "***"
        elif isinstance(value, Mapping):
            result[key] = sanitize_for_log(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_log(item) if isinstance(item, Mapping) else item for item in value
            ]
        else:
            result[key] = value
    return result


def is_ok_status(status_code: int) -> bool:
    return 200 <= status_code < 300


@dataclass(frozen=True, kw_only=True)
class Response:
    """
    A received HTTP response.

    Attributes:
        status_code: HTTP status.
        data: Parsed JSON body, the text body if it isn't JSON, None if empty.
        headers: Response headers, lower-cased names.
        reason: Reason phrase for the status.
        content: Raw body bytes.
    """

    status_code: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    reason: str = ""
    content: bytes = field(default=b"", repr=False)

    @property
    def ok(self) -> bool:
        return is_ok_status(self.status_code)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "Response":
        return cls(
            status_code=response.status_code,
            data=_parse_body(response),
            headers={k.lower(): v for k, v in response.headers.items()},
            reason=response.reason_phrase,
            content=response.content,
        )


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def _track_progress(
    stream: httpx.AsyncByteStream,
    total: int,
    on_progress: ProgressCallback,
    chunk_size: int,
) -> AsyncIterator[bytes]:
    sent = 0
    async for chunk in stream:
        view = memoryview(chunk)
        for start in range(0, len(view), chunk_size):
            piece = bytes(view[start : start + chunk_size])
            sent += len(piece)
            on_progress(sent, total)
            yield piece
            # Let other uploads interleave between chunks
            await asyncio.sleep(0)


class AsyncHttpClient:
    """Async HTTP client for the Bulgur Cloud API."""

    def __init__(
        self,
        config: BulgurSyncConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Client configuration.
            transport: Optional transport for testing (mock transport).
        """
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> "AsyncHttpClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=self._config.timeout,
                    transport=self._transport,
                    headers={"User-Agent": self._config.user_agent},
                )
        return self._client

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is None:
                logger.debug("Client not open.")
                return
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        method: str,
        url: str,
        *,
        site: str,
        json: Any | None = None,
        files: Mapping[str, UploadFile] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Response:
        """
        Send one request.

        Args:
            method: HTTP method, including non-standard ones such as META.
            url: Path on the server, e.g. "/storage/user/docs".
            site: Base URL of the server.
            json: JSON body.
            files: Multipart body, one field per file.
            headers: Extra headers.
            on_progress: Called with ``(sent, total)`` body bytes while a
                multipart body is streamed.

        Returns:
            The response, whatever its status.

        Raises:
            BError: NETWORK_FAILURE if no response was received,
                DATA_AND_FORM_DATA_CONFLICT if both json and files are given.
        """
        if json is not None and files is not None:
            raise data_and_form_data_conflict()

        client = await self._ensure_client()
        full_url = site.rstrip("/") + "/" + url.lstrip("/")
        request_headers = dict(headers or {})
        logger.debug(
            "Sending request",
            method=method,
            url=url,
            body=sanitize_for_log(json) if isinstance(json, Mapping) else None,
        )

        try:
            if files is not None:
                response = await self._send_multipart(
                    client, method, full_url, files, request_headers, on_progress
                )
            else:
                response = await client.request(
                    method, full_url, json=json, headers=request_headers
                )
        except httpx.TransportError as e:
            logger.warning(
                "Request failed without a response",
                method=method,
                url=url,
                error_type=type(e).__name__,
            )
            raise network_failure(method=method, url=url) from e

        logger.debug("Received response", method=method, url=url, status=response.status_code)
        return Response.from_httpx(response)

    async def _send_multipart(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        files: Mapping[str, UploadFile],
        headers: dict[str, str],
        on_progress: ProgressCallback | None,
    ) -> httpx.Response:
        with ExitStack() as stack:
            form = {
                field_name: (upload.name, stack.enter_context(upload.open()))
                for field_name, upload in files.items()
            }
            request = client.build_request(method, url, files=form, headers=headers)
            if on_progress is not None:
                total = int(request.headers.get("Content-Length", 0))
                request = client.build_request(
                    method,
                    url,
                    content=_track_progress(
                        request.stream, total, on_progress, self._config.upload_chunk_size
                    ),
                    headers=request.headers,
                )
            return await client.send(request)
