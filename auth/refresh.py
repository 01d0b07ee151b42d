"""Single-flight access token refresh.

However many callers hit a 401 at the same time, only one POST /auth/refresh
goes out and every caller gets the same outcome. When refresh is impossible
the tokens are cleared and subscribers are told the session expired, once.
"""

import asyncio
import logging
from typing import Callable

from pydantic import ValidationError

from auth.models import RefreshRequest, RefreshResponse
from auth.token_store import TokenStore
from errors import ApiError, SessionExpiredError
from transport import RequestConfig, RequestExecutor

log = logging.getLogger(__name__)

SessionExpiredCallback = Callable[[SessionExpiredError], None]


class RefreshCoordinator:
    def __init__(
        self,
        executor: RequestExecutor,
        token_store: TokenStore,
        *,
        refresh_path: str = "/auth/refresh",
        login_url: str = "/login",
    ):
        self._executor = executor
        self._tokens = token_store
        self._refresh_path = refresh_path
        self._login_url = login_url
        self._inflight: asyncio.Task | None = None
        # Bumped by reset(); a refresh from an older session must not write tokens
        self._generation = 0
        self._expired = False
        self._subscribers: list[SessionExpiredCallback] = []

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def login_url(self) -> str:
        return self._login_url

    def subscribe(self, callback: SessionExpiredCallback):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: SessionExpiredCallback):
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def reset(self):
        """Start a new session: forget a previous expiry and abandon any running refresh.

        An abandoned refresh finishes in the background but never touches the
        store; its waiters get SessionExpiredError.
        """
        self._generation += 1
        self._inflight = None
        self._expired = False

    async def refresh(self) -> str:
        """Return a fresh access token, joining any refresh already running."""
        if self._expired:
            # Already expired and announced; stays that way until the next login
            error = SessionExpiredError("Session expired. Please log in again.")
            error.login_url = self._login_url
            raise error
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run(self._generation))
        # Cancelling one waiter leaves the shared refresh running
        return await asyncio.shield(self._inflight)

    async def _run(self, generation: int) -> str:
        try:
            return await self._refresh_once(generation)
        except SessionExpiredError as e:
            if generation == self._generation:
                self._expire(e)
            raise
        finally:
            if generation == self._generation:
                self._inflight = None

    async def _refresh_once(self, generation: int) -> str:
        refresh_token = self._tokens.get_refresh()
        if not refresh_token:
            raise SessionExpiredError("No refresh token available")

        log.info("Refreshing access token")
        try:
            data = await self._executor.execute(
                self._refresh_path,
                RequestConfig(
                    method="POST",
                    body=RefreshRequest(refresh_token=refresh_token).model_dump(by_alias=True),
                ),
            )
        except ApiError as e:
            raise SessionExpiredError(
                "Session expired. Please log in again.", status=e.status, body=e.body,
            ) from e

        if generation != self._generation:
            log.info("Session changed during refresh, discarding refreshed token")
            raise SessionExpiredError("Session ended during refresh")

        try:
            tokens = RefreshResponse.model_validate(data)
        except ValidationError as e:
            raise SessionExpiredError(
                "Refresh response did not contain an access token", body=data,
            ) from e

        self._tokens.set_access(tokens.access_token)
        # Server may rotate the refresh token; keep whatever it sends
        if tokens.refresh_token:
            self._tokens.set_refresh(tokens.refresh_token)
        log.info("Access token refreshed")
        return tokens.access_token

    def _expire(self, error: SessionExpiredError):
        log.warning("Session expired (%s), login required at %s", error.message, self._login_url)
        error.login_url = self._login_url
        self._tokens.clear()
        self._expired = True
        for callback in list(self._subscribers):
            try:
                callback(error)
            except Exception:
                log.exception("Session expired callback failed")
