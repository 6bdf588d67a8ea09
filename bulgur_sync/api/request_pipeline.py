"""
Authenticated request pipeline.

Sends one logical request with the current session's credentials. A 401
triggers exactly one refresh; the caller is then told to send the request
again instead of the pipeline recursing on its own.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from bulgur_sync.api.http_client import AsyncHttpClient, ProgressCallback, Response
from bulgur_sync.exceptions import data_and_form_data_conflict, missing_auth, unexpected_error
from bulgur_sync.models.auth import Session
from bulgur_sync.models.storage import UploadFile

if TYPE_CHECKING:
    from bulgur_sync.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

UNAUTHORIZED = 401


@dataclass(frozen=True, kw_only=True)
class NeedsRetryAfterReauth:
    """
    The request was rejected with a 401 and the tokens were refreshed.

    Distinct from a failure: the same request should be sent once more.

    Attributes:
        response: The 401 response that triggered the refresh.
    """

    response: Response


RequestOutcome = Response | NeedsRetryAfterReauth


class RequestPipeline:
    """Builds, sends and classifies authenticated requests."""

    def __init__(self, http: AsyncHttpClient, auth: "AuthService") -> None:
        """
        Args:
            http: HTTP client used to send requests.
            auth: Auth service, used to settle the session and to refresh it.
        """
        self._http = http
        self._auth = auth

    async def settled_session(self) -> Session:
        """The session requests would be sent with, once it has settled."""
        return await self._auth.wait_settled()

    async def do_request(
        self,
        method: str,
        url: str,
        *,
        json: Any | None = None,
        files: Mapping[str, UploadFile] | None = None,
        on_progress: ProgressCallback | None = None,
        reauthenticate: bool = True,
    ) -> RequestOutcome:
        """
        Perform one request.

        Args:
            method: HTTP method.
            url: Path on the server.
            json: JSON body.
            files: Multipart body, one field per file.
            on_progress: Upload progress callback, see AsyncHttpClient.send.
            reauthenticate: Refresh the tokens on a 401. Disabled for the
                second attempt so one logical action refreshes at most once.

        Returns:
            The response, or NeedsRetryAfterReauth if a 401 led to a
            successful refresh. If the refresh fails the original 401 response
            is returned unchanged.

        Raises:
            BError: MISSING_AUTH if no site is known, DATA_AND_FORM_DATA_CONFLICT
                if both bodies are given, NETWORK_FAILURE if the server could
                not be reached.
        """
        if json is not None and files is not None:
            raise data_and_form_data_conflict()

        session = await self.settled_session()
        if session.site is None:
            logger.warning("Missing auth data, no site known")
            raise missing_auth()

        headers = {}
        if session.access_token is not None:
            headers["authorization"] = session.access_token

        response = await self._http.send(
            method,
            url,
            site=session.site,
            json=json,
            files=files,
            headers=headers,
            on_progress=on_progress,
        )

        if response.status_code != UNAUTHORIZED or not reauthenticate:
            return response
        if not session.has_tokens:
            return response

        logger.debug("Token rejected, attempting refresh", method=method, url=url)
        if await self._auth.reauthenticate(session):
            return NeedsRetryAfterReauth(response=response)
        return response

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any | None = None,
        files: Mapping[str, UploadFile] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Response:
        """
        Perform a request, retrying it at most once after re-authentication.

        Returns:
            The final response, whatever its status.
        """
        outcome = await self.do_request(
            method, url, json=json, files=files, on_progress=on_progress
        )
        if isinstance(outcome, Response):
            return outcome

        logger.debug("Retrying after reauthentication", method=method, url=url)
        retried = await self.do_request(
            method,
            url,
            json=json,
            files=files,
            on_progress=on_progress,
            reauthenticate=False,
        )
        if not isinstance(retried, Response):
            raise unexpected_error("Request asked for a second reauthentication")
        return retried
