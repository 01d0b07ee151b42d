"""In-process opsboard backend for client tests."""

import asyncio

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from api_client import ApiClient
from auth.token_store import MemoryTokenStore


class FakeBackend:
    def __init__(self):
        self.url = ""
        self.users = {"admin": "secret"}
        self.valid_tokens = {"good-token"}
        self.refresh_tokens = {"refresh-1": "new-token"}
        self.refresh_status = 200
        self.refresh_delay = 0.05
        self.refresh_calls = 0
        self.always_unauthorized = False
        # Hold 401 responses until this many stale requests have arrived
        self.stale_barrier = 0
        self._stale_seen = 0
        self._stale_event = asyncio.Event()
        self.requests: list[tuple[str, str, str | None]] = []

    def protected_requests(self, path: str) -> list[str | None]:
        return [auth for method, p, auth in self.requests if p == path]

    def make_app(self) -> web.Application:
        app = web.Application(middlewares=[self._record])
        app.router.add_post("/auth/login", self.login)
        app.router.add_post("/auth/refresh", self.refresh)
        app.router.add_get("/api/users/me", self.me)
        app.router.add_get("/api/{resource}/list", self.list_resource)
        app.router.add_delete("/api/{resource}/{id}", self.delete_resource)
        app.router.add_put("/api/{resource}/{id}/complete", self.complete_resource)
        app.router.add_post("/api/upload", self.upload)
        app.router.add_get("/api/broken", self.broken)
        app.router.add_get("/api/missing", self.missing)
        return app

    @web.middleware
    async def _record(self, request, handler):
        self.requests.append((request.method, request.path, request.headers.get("Authorization")))
        return await handler(request)

    async def _check_auth(self, request):
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):] if header.startswith("Bearer ") else None
        if token in self.valid_tokens and not self.always_unauthorized:
            return
        if self.stale_barrier:
            self._stale_seen += 1
            if self._stale_seen >= self.stale_barrier:
                self._stale_event.set()
            await self._stale_event.wait()
        raise web.HTTPUnauthorized(
            text='{"message": "Invalid or expired token"}', content_type="application/json",
        )

    async def login(self, request):
        body = await request.json()
        if self.users.get(body.get("username")) != body.get("password"):
            return web.json_response({"message": "Invalid username or password"}, status=401)
        return web.json_response({"accessToken": "good-token", "refreshToken": "refresh-1"})

    async def refresh(self, request):
        self.refresh_calls += 1
        await asyncio.sleep(self.refresh_delay)
        if self.refresh_status != 200:
            return web.json_response({"message": "Refresh failed"}, status=self.refresh_status)
        body = await request.json()
        new_token = self.refresh_tokens.get(body.get("refreshToken"))
        if new_token is None:
            return web.json_response({"message": "Invalid refresh token"}, status=401)
        self.valid_tokens.add(new_token)
        return web.json_response({"accessToken": new_token})

    async def me(self, request):
        await self._check_auth(request)
        return web.json_response({"username": "admin"})

    async def list_resource(self, request):
        await self._check_auth(request)
        resource = request.match_info["resource"]
        return web.json_response([{"id": f"{resource}-1"}, {"id": f"{resource}-2"}])

    async def delete_resource(self, request):
        await self._check_auth(request)
        return web.Response(status=204)

    async def complete_resource(self, request):
        await self._check_auth(request)
        return web.json_response({"id": request.match_info["id"], "completed": True})

    async def upload(self, request):
        await self._check_auth(request)
        return web.json_response({
            "contentType": request.headers.get("Content-Type"),
            "accept": request.headers.get("Accept"),
            "size": len(await request.read()),
        })

    async def broken(self, request):
        return web.Response(status=500, text="boom")

    async def missing(self, request):
        return web.json_response({"message": "Server not found"}, status=404)


@pytest_asyncio.fixture
async def backend():
    fake = FakeBackend()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def client(backend):
    api = ApiClient(backend.url, MemoryTokenStore())
    yield api
    await api.close()
