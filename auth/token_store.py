"""Access/refresh token storage.

MemoryTokenStore lives as long as the process, so every run starts
anonymous. FileTokenStore keeps the tokens in config.json between runs.
"""

import json
import logging
import os

log = logging.getLogger(__name__)

_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.json")


class TokenStore:
    """Base store. Subclasses hook _persist() to write through on every change."""

    def __init__(self):
        self._access_token: str | None = None
        self._refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    def get_access(self) -> str | None:
        return self._access_token

    def get_refresh(self) -> str | None:
        return self._refresh_token

    def set_access(self, token: str):
        self._access_token = token
        self._persist()
        log.info("Access token updated")

    def set_refresh(self, token: str):
        self._refresh_token = token
        self._persist()
        log.info("Refresh token updated")

    def save(self, access_token: str, refresh_token: str):
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._persist()
        log.info("Tokens saved")

    def clear(self):
        if self._access_token is None and self._refresh_token is None:
            return
        self._access_token = None
        self._refresh_token = None
        self._persist()
        log.info("Tokens cleared")

    def _persist(self):
        pass


class MemoryTokenStore(TokenStore):
    pass


class FileTokenStore(TokenStore):
    def __init__(self, path: str = _CONFIG_PATH):
        super().__init__()
        self._path = path
        self._load()

    @property
    def path(self) -> str:
        return self._path

    def _read(self) -> dict:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _load(self):
        data = self._read()
        self._access_token = data.get("access_token")
        self._refresh_token = data.get("refresh_token")

    def _persist(self):
        # Merge into the existing config, other keys stay untouched
        data = self._read()

        for key, value in (("access_token", self._access_token),
                           ("refresh_token", self._refresh_token)):
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value

        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
