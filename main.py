import sys
import asyncio
import logging

from api_client import ApiClient
from auth.token_store import FileTokenStore, MemoryTokenStore
from config import get_settings
from errors import ApiError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
log = logging.getLogger(__name__)


def make_token_store(settings):
    if settings.token_store == "file":
        return FileTokenStore(settings.token_file)
    return MemoryTokenStore()


async def dashboard_snapshot(client: ApiClient) -> dict:
    """Fetch the three dashboard lists concurrently."""
    servers, tickets, changelogs = await asyncio.gather(
        client.list_servers(),
        client.list_tickets(),
        client.list_changelogs(),
    )
    return {"servers": servers, "tickets": tickets, "changelogs": changelogs}


async def run(username: str | None, password: str | None) -> int:
    settings = get_settings()
    token_store = make_token_store(settings)

    async with ApiClient.from_settings(settings, token_store) as client:
        client.on_session_expired(
            lambda err: log.warning("Session expired, please log in at %s", err.login_url)
        )

        if username and password:
            try:
                await client.login(username, password)
            except ApiError as e:
                log.error("Login failed: %s", e.message)
                return 1
        elif not token_store.is_authenticated:
            log.error("Not logged in. Usage: main.py <username> <password>")
            return 1

        try:
            snapshot = await dashboard_snapshot(client)
        except ApiError as e:
            log.error("Dashboard fetch failed (%s): %s", e.status, e.message)
            return 1

        for name, rows in snapshot.items():
            log.info("%s: %d", name, len(rows or []))
    return 0


if __name__ == "__main__":
    args = sys.argv[1:]
    user = args[0] if len(args) > 0 else None
    pwd = args[1] if len(args) > 1 else None
    sys.exit(asyncio.run(run(user, pwd)))
