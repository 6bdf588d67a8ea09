"""
Authentication service for Bulgur Cloud.

Owns the session state machine: restoring a saved session, logging in,
refreshing tokens and logging out.
"""

import asyncio

import structlog

from bulgur_sync.api.endpoints.auth import check_token
from bulgur_sync.api.endpoints.auth import login as login_endpoint
from bulgur_sync.api.endpoints.auth import refresh as refresh_endpoint
from bulgur_sync.api.http_client import AsyncHttpClient, Response
from bulgur_sync.core.credential_store import CredentialStore
from bulgur_sync.core.events import NavigateToLogin, SessionChanged
from bulgur_sync.core.state import AppState
from bulgur_sync.exceptions import (
    BError,
    bad_credentials,
    login_failed,
    server_error,
    site_unset,
    unexpected_error,
)
from bulgur_sync.models.auth import Credentials, LoginResponse, Session, SessionState
from bulgur_sync.models.validation import Err, Ok, parse_credentials, parse_login_response

logger = structlog.get_logger(__name__)

DEFAULT_PERSIST_KEY = "bulgur-cloud-auth"


class AuthService:
    """
    Manages the authentication session.

    State machine::

        UNINITIALIZED -> AUTHENTICATING -> AUTHENTICATED | LOGGED_OUT
        AUTHENTICATED -> LOGGED_OUT       (logout, failed refresh)
        LOGGED_OUT    -> AUTHENTICATING   (login)

    A refresh of an authenticated session swaps the tokens in place and
    keeps the state.

    Concurrency:
    - initialize, login, refresh, reauthenticate and logout are serialized by
      an internal lock, so a transition never observes another one half done
    - wait_settled() lets request senders wait out an in-progress login or
      session restore
    """

    def __init__(
        self,
        state: AppState,
        http_client: AsyncHttpClient,
        credential_store: CredentialStore,
        *,
        persist_key: str = DEFAULT_PERSIST_KEY,
    ) -> None:
        """
        Args:
            state: Shared application state; this service is the only writer
                of ``state.session``.
            http_client: HTTP client for the auth endpoints.
            credential_store: Where the session survives restarts.
            persist_key: Key of the saved credential record.
        """
        self._state = state
        self._http = http_client
        self._store = credential_store
        self._persist_key = persist_key

        self._lock = asyncio.Lock()
        self._settled = asyncio.Event()
        if state.session.state.is_settled:
            self._settled.set()

    @property
    def session(self) -> Session:
        return self._state.session

    @property
    def state(self) -> SessionState:
        return self._state.session.state

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def username(self) -> str | None:
        return self._state.session.username

    async def initialize(self) -> None:
        """
        Restore the saved session, if any.

        Only acts on an uninitialized session; calling it again while the
        restore runs, or once it has settled, does nothing.
        """
        # No await between this check and the transition below
        if self.state is not SessionState.UNINITIALIZED:
            return
        self._set_session(self.session.with_state(SessionState.AUTHENTICATING))

        async with self._lock:
            try:
                await self._restore_session()
            except BError:
                self._set_session(self.session.logged_out())
                raise
            except Exception as e:
                logger.error("Session restore failed", error_type=type(e).__name__)
                self._set_session(self.session.logged_out())
                raise unexpected_error(type(e).__name__) from e

    async def wait_settled(self) -> Session:
        """
        Make sure the session is settled before a request goes out.

        Starts the restore if nothing has happened yet, then waits until the
        session is either authenticated or logged out.
        """
        if self.state is SessionState.UNINITIALIZED:
            await self.initialize()
        await self._settled.wait()
        return self.session

    async def login(self, username: str, password: str, site: str) -> str:
        """
        Log in with a username and password.

        Returns:
            The username that is now logged in.

        Raises:
            BError: BAD_CREDENTIALS on a 400 response, LOGIN_FAILED on a
                malformed payload, SITE_UNSET without a site, NETWORK_FAILURE
                or SERVER_ERROR otherwise. The session is logged out after any
                failure.
        """
        logger.info("Logging in", username=username)

        async with self._lock:
            self._set_session(Session(state=SessionState.AUTHENTICATING, site=site or None))
            try:
                if not site:
                    raise site_unset()
                response = await login_endpoint(self._http, site, username, password)
                tokens = self._parse_token_response(response)
                await self._authenticated(username, tokens, site)
            except BError as e:
                logger.warning("Login failed", code=e.code)
                self._set_session(self.session.logged_out())
                raise
            except Exception as e:
                logger.error("Login failed", error_type=type(e).__name__)
                self._set_session(self.session.logged_out())
                raise unexpected_error(type(e).__name__) from e

        logger.info("Login successful", username=username)
        return username

    async def refresh(self, username: str, refresh_token: str, site: str) -> str:
        """
        Obtain new tokens with a refresh token.

        Same contract as login(); an authenticated session keeps its state
        while the tokens are swapped.
        """
        async with self._lock:
            return await self._refresh(username, refresh_token, site)

    async def reauthenticate(self, stale_session: Session) -> bool:
        """
        Refresh the tokens of a session that just got a 401.

        If another coroutine already replaced ``stale_session`` (a refresh or
        login finished first), no second refresh is made.

        Returns:
            True if the caller should send its request again.
        """
        async with self._lock:
            current = self._state.session
            if current is not stale_session:
                logger.debug("Session already replaced by another coroutine")
                return current.state is SessionState.AUTHENTICATED

            if (
                stale_session.username is None
                or stale_session.refresh_token is None
                or stale_session.site is None
            ):
                return False

            try:
                await self._refresh(
                    stale_session.username, stale_session.refresh_token, stale_session.site
                )
            except BError:
                return False
            return True

    async def logout(self, *, no_redirect: bool = False) -> None:
        """
        Forget the session.

        Deletes the saved credentials, drops every cached folder listing and
        asks the UI to return to the login screen unless ``no_redirect``.
        """
        logger.info("Logging out")

        async with self._lock:
            await self._store.delete(self._persist_key)
            self._state.folders.clear()
            self._set_session(self.session.logged_out())

        if not no_redirect:
            self._state.events.publish(NavigateToLogin())

    async def _restore_session(self) -> None:
        saved = await self._store.get(self._persist_key)
        match parse_credentials(saved):
            case Err(error=error):
                if saved is not None:
                    logger.warning("Saved credentials are malformed", reason=str(error))
                else:
                    logger.info("No saved session")
                await self._forget()
                return
            case Ok(value=credentials):
                pass

        if await check_token(self._http, credentials.site, credentials.access_token):
            logger.info("Saved token was good, resuming as logged in")
            tokens = LoginResponse(
                access_token=credentials.access_token,
                refresh_token=credentials.refresh_token,
                valid_for_seconds=0,
            )
            await self._authenticated(credentials.username, tokens, credentials.site)
            return

        logger.info("Saved token was rejected, refreshing")
        try:
            await self._refresh(
                credentials.username, credentials.refresh_token, credentials.site
            )
        except BError:
            await self._forget()

    async def _refresh(self, username: str, refresh_token: str, site: str) -> str:
        if self.state is not SessionState.AUTHENTICATED:
            self._set_session(self.session.with_state(SessionState.AUTHENTICATING))
        try:
            response = await refresh_endpoint(self._http, site, username, refresh_token)
            tokens = self._parse_token_response(response)
            await self._authenticated(username, tokens, site)
        except BError as e:
            logger.warning("Token refresh failed", code=e.code)
            self._set_session(self.session.logged_out())
            raise
        except Exception as e:
            logger.error("Token refresh failed", error_type=type(e).__name__)
            self._set_session(self.session.logged_out())
            raise unexpected_error(type(e).__name__) from e

        logger.debug("Token refreshed successfully")
        return username

    async def _authenticated(self, username: str, tokens: LoginResponse, site: str) -> None:
        credentials = Credentials(
            username=username,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            site=site,
        )
        await self._store.set(self._persist_key, credentials.to_dict())
        self._set_session(
            Session(
                state=SessionState.AUTHENTICATED,
                username=username,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                site=site,
            )
        )

    async def _forget(self) -> None:
        await self._store.delete(self._persist_key)
        self._set_session(self.session.logged_out())

    @staticmethod
    def _parse_token_response(response: Response) -> LoginResponse:
        if response.status_code == 400:
            raise bad_credentials()
        if 500 <= response.status_code < 600:
            raise server_error(response.status_code, response.reason)
        if not response.ok:
            raise login_failed(status_code=response.status_code)

        match parse_login_response(response.data):
            case Ok(value=tokens):
                return tokens
            case Err(error=error):
                logger.warning("Malformed login response", reason=str(error))
                raise login_failed(reason=str(error))

    def _set_session(self, session: Session) -> None:
        previous = self._state.session
        self._state.session = session

        if session.state.is_settled:
            self._settled.set()
        else:
            self._settled.clear()

        if (previous.state, previous.username) != (session.state, session.username):
            logger.debug("Session state changed", previous=previous.state, current=session.state)
            self._state.events.publish(
                SessionChanged(state=session.state, username=session.username)
            )
