"""Central HTTP client for the opsboard API. Bearer auth with single-flight refresh."""

import logging
from typing import Any

from pydantic import ValidationError

from auth.models import LoginRequest, TokenResponse
from auth.refresh import RefreshCoordinator
from auth.session import SessionState, derive_state
from auth.token_store import TokenStore
from errors import CredentialError, UnauthorizedError
from transport import RequestConfig, RequestExecutor

log = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        server_url: str,
        token_store: TokenStore,
        *,
        executor: RequestExecutor | None = None,
        login_path: str = "/auth/login",
        refresh_path: str = "/auth/refresh",
        me_path: str = "/api/users/me",
        login_url: str = "/login",
    ):
        self._tokens = token_store
        self._executor = executor or RequestExecutor(server_url)
        self._login_path = login_path
        self._me_path = me_path
        self._refresh = RefreshCoordinator(
            self._executor, token_store, refresh_path=refresh_path, login_url=login_url,
        )

    @classmethod
    def from_settings(cls, settings, token_store: TokenStore) -> "ApiClient":
        return cls(
            settings.api_base_url,
            token_store,
            login_path=settings.login_path,
            refresh_path=settings.refresh_path,
            me_path=settings.me_path,
            login_url=settings.login_url,
        )

    @property
    def token_store(self) -> TokenStore:
        return self._tokens

    @property
    def refresh_coordinator(self) -> RefreshCoordinator:
        return self._refresh

    @property
    def session_state(self) -> SessionState:
        return derive_state(self._tokens, self._refresh)

    def on_session_expired(self, callback):
        self._refresh.subscribe(callback)

    async def close(self):
        await self._executor.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # ── Core ───────────────────────────────────────────────

    def _authorize(self, config: RequestConfig, token: str | None) -> RequestConfig:
        if not token:
            return config
        return config.with_header("Authorization", f"Bearer {token}")

    async def send(self, path: str, config: RequestConfig) -> Any:
        sent_token = self._tokens.get_access()
        try:
            return await self._executor.execute(path, self._authorize(config, sent_token))
        except UnauthorizedError as e:
            if config.skip_token_refresh:
                raise CredentialError(e.message, status=e.status, body=e.body) from e

        current_token = self._tokens.get_access()
        if current_token and current_token != sent_token:
            # A concurrent refresh finished while this request was out
            new_token = current_token
        else:
            # Joins a refresh already started by a concurrent call.
            # SessionExpiredError propagates: tokens are cleared, subscribers notified.
            new_token = await self._refresh.refresh()

        log.info("Retrying %s %s with refreshed token", config.method, path)
        # Exactly one retry. A second 401 reaches the caller as UnauthorizedError.
        return await self._executor.execute(path, self._authorize(config, new_token))

    async def call(
        self,
        path: str,
        *,
        method: str = "GET",
        body: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        skip_token_refresh: bool = False,
    ) -> Any:
        config = RequestConfig(
            method=method,
            body=body,
            headers=headers or {},
            params=params,
            skip_token_refresh=skip_token_refresh,
        )
        return await self.send(path, config)

    async def get(self, path: str, **kwargs) -> Any:
        return await self.call(path, method="GET", **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.call(path, method="POST", body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.call(path, method="PUT", body=body, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.call(path, method="DELETE", **kwargs)

    # ── Auth ───────────────────────────────────────────────

    async def login(self, username: str, password: str) -> dict:
        # A 401 here means bad credentials, not an expired token
        data = await self.post(
            self._login_path,
            LoginRequest(username=username, password=password).model_dump(),
            skip_token_refresh=True,
        )
        try:
            tokens = TokenResponse.model_validate(data)
        except ValidationError as e:
            log.error("Login response did not contain tokens")
            raise CredentialError("Invalid login response: no tokens received", body=data) from e

        self._tokens.save(tokens.access_token, tokens.refresh_token)
        self._refresh.reset()
        log.info("Logged in as %s", username)
        return data

    def logout(self):
        self._tokens.clear()
        self._refresh.reset()
        log.info("Logged out")

    async def get_me(self) -> dict | None:
        return await self.get(self._me_path)

    # ── Servers ────────────────────────────────────────────

    async def list_servers(self) -> list[dict]:
        return await self.get("/api/servers/list")

    async def delete_server(self, server_id: str) -> None:
        await self.delete(f"/api/servers/{server_id}")

    # ── Tickets ────────────────────────────────────────────

    async def list_tickets(self) -> list[dict]:
        return await self.get("/api/tickets/list")

    # ── Changelogs ─────────────────────────────────────────

    async def list_changelogs(self) -> list[dict]:
        return await self.get("/api/changelogs/list")

    async def delete_changelog(self, changelog_id: str) -> None:
        await self.delete(f"/api/changelogs/{changelog_id}")

    async def complete_changelog(self, changelog_id: str) -> dict | None:
        return await self.put(f"/api/changelogs/{changelog_id}/complete")

    async def uncomplete_changelog(self, changelog_id: str) -> dict | None:
        return await self.put(f"/api/changelogs/{changelog_id}/uncomplete")

    # ── Maintenance ────────────────────────────────────────

    async def list_maintenance_tasks(self) -> list[dict]:
        return await self.get("/api/maintenance/list")

    async def delete_maintenance_task(self, task_id: str) -> None:
        await self.delete(f"/api/maintenance/{task_id}")

    async def complete_maintenance_task(self, task_id: str) -> dict | None:
        return await self.put(f"/api/maintenance/{task_id}/complete")

    async def uncomplete_maintenance_task(self, task_id: str) -> dict | None:
        return await self.put(f"/api/maintenance/{task_id}/uncomplete")
