"""Single HTTP call over aiohttp. Knows nothing about auth or retries."""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import aiohttp

from errors import ApiError, TransportError, UnauthorizedError

log = logging.getLogger(__name__)

_UNKNOWN_ERROR = "Unknown API error"


@dataclass(frozen=True)
class RequestConfig:
    """Everything needed to (re)issue one call, apart from the path."""

    method: str = "GET"
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] | None = None
    skip_token_refresh: bool = False

    def with_header(self, name: str, value: str) -> "RequestConfig":
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)


def is_binary_body(body: Any) -> bool:
    return isinstance(body, (bytes, bytearray, aiohttp.FormData))


def build_headers(config: RequestConfig) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if not is_binary_body(config.body):
        headers["Content-Type"] = "application/json"
    headers.update(config.headers)
    return headers


async def _error_from_response(resp: aiohttp.ClientResponse) -> ApiError:
    try:
        body = await resp.json(content_type=None)
    except (ValueError, aiohttp.ClientError):
        body = {"message": resp.reason}

    message = None
    if isinstance(body, dict):
        message = body.get("message")
    if not message:
        message = resp.reason or _UNKNOWN_ERROR

    error_cls = UnauthorizedError if resp.status == 401 else TransportError
    return error_cls(message, status=resp.status, body=body)


class RequestExecutor:
    def __init__(self, base_url: str, session: aiohttp.ClientSession | None = None):
        self._base = base_url.rstrip("/")
        self._session = session

    @property
    def base_url(self) -> str:
        return self._base

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def execute(self, path: str, config: RequestConfig) -> Any:
        await self._ensure_session()
        url = f"{self._base}{path}"
        headers = build_headers(config)

        data = None
        if is_binary_body(config.body):
            data = config.body
        elif config.body is not None:
            data = json.dumps(config.body)

        try:
            async with self._session.request(
                config.method, url, data=data, params=config.params, headers=headers,
            ) as resp:
                if resp.status == 204:
                    return None
                if not 200 <= resp.status < 300:
                    error = await _error_from_response(resp)
                    if resp.status == 401:
                        log.warning("API %s %s → 401: %s", config.method, path, error.message)
                    else:
                        log.error("API %s %s → %d: %s", config.method, path, resp.status, error.message)
                    raise error
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    log.error("API %s %s → %d: invalid JSON body", config.method, path, resp.status)
                    raise TransportError("Invalid JSON response", status=resp.status) from e

        except aiohttp.ClientError as e:
            log.error("API %s %s error: %s", config.method, path, e)
            raise TransportError(str(e) or _UNKNOWN_ERROR) from e
