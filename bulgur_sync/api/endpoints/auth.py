"""Authentication-related API endpoints."""

import structlog

from bulgur_sync.api.http_client import AsyncHttpClient, Response
from bulgur_sync.exceptions import BError

logger = structlog.get_logger(__name__)


async def login(http: AsyncHttpClient, site: str, username: str, password: str) -> Response:
    """
    Exchange a username and password for tokens.

    Returns:
        The raw response; a 2xx body carries access_token, refresh_token and
        valid_for_seconds.
    """
    return await http.send(
        "POST",
        "/auth/login",
        site=site,
        json={"username": username, "password": password},
    )


async def refresh(http: AsyncHttpClient, site: str, username: str, refresh_token: str) -> Response:
    """Exchange a refresh token for a new pair of tokens."""
    return await http.send(
        "POST",
        "/auth/refresh",
        site=site,
        json={"username": username, "refresh_token": refresh_token},
    )


async def check_token(http: AsyncHttpClient, site: str, access_token: str) -> bool:
    """
    Liveness probe for an access token.

    Returns:
        True if the server accepted the token. Any failure, including not
        reaching the server, counts as a rejected token.
    """
    try:
        response = await http.send(
            "HEAD",
            "/api/stats",
            site=site,
            headers={"authorization": access_token},
        )
    except BError as e:
        logger.warning("Token check failed", code=e.code)
        return False
    return response.ok
