"""Derived session state and idle-timeout logout."""

import asyncio
import enum
import logging
import time
from typing import Callable

from auth.refresh import RefreshCoordinator
from auth.token_store import TokenStore

log = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    EXPIRED = "expired"


def derive_state(token_store: TokenStore, coordinator: RefreshCoordinator) -> SessionState:
    if coordinator.in_flight:
        return SessionState.REFRESHING
    if token_store.get_access():
        return SessionState.AUTHENTICATED
    if coordinator.expired:
        return SessionState.EXPIRED
    return SessionState.ANONYMOUS


class SessionMonitor:
    """Log the user out after `idle_timeout` seconds without touch().

    Runs as a background task next to the client, e.g.
    ``loop.create_task(monitor.run())``.
    """

    def __init__(self, client, idle_timeout: float, check_interval: float = 5.0):
        self._client = client
        self._idle_timeout = idle_timeout
        self._check_interval = check_interval
        self._last_activity = time.monotonic()
        self._running = False
        self._on_idle: list[Callable[[], None]] = []

    @property
    def idle_seconds(self) -> float:
        return time.monotonic() - self._last_activity

    def on_idle(self, callback: Callable[[], None]):
        self._on_idle.append(callback)

    def touch(self):
        self._last_activity = time.monotonic()

    def stop(self):
        self._running = False

    async def check(self) -> bool:
        """One idle check. Returns True if the session was ended."""
        if not self._client.token_store.is_authenticated:
            return False
        if self.idle_seconds <= self._idle_timeout:
            return False
        if self._client.refresh_coordinator.in_flight:
            # Decide after the refresh settles; the next check picks it up
            return False

        log.info("Idle for %.0fs, logging out", self.idle_seconds)
        self._client.logout()
        for callback in list(self._on_idle):
            try:
                callback()
            except Exception:
                log.exception("Idle callback failed")
        return True

    async def run(self):
        self._running = True
        self.touch()
        while self._running:
            await asyncio.sleep(self._check_interval)
            if not self._running:
                break
            await self.check()
