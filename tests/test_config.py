"""Tests for settings loading and entry-point wiring."""

from auth.token_store import FileTokenStore, MemoryTokenStore
from config import Settings
from errors import ApiError, SessionExpiredError
from main import make_token_store


def test_defaults():
    s = Settings(_env_file=None)
    assert s.api_base_url.startswith("http")
    assert s.login_path == "/auth/login"
    assert s.refresh_path == "/auth/refresh"
    assert s.token_store == "memory"


def test_env_override(monkeypatch):
    monkeypatch.setenv("OPSBOARD_API_BASE_URL", "https://ops.example")
    monkeypatch.setenv("OPSBOARD_IDLE_TIMEOUT_SECONDS", "90")
    s = Settings(_env_file=None)
    assert s.api_base_url == "https://ops.example"
    assert s.idle_timeout_seconds == 90


def test_token_store_choice(tmp_path):
    memory = Settings(_env_file=None)
    assert isinstance(make_token_store(memory), MemoryTokenStore)

    file_cfg = Settings(_env_file=None, token_store="file", token_file=str(tmp_path / "config.json"))
    store = make_token_store(file_cfg)
    assert isinstance(store, FileTokenStore)
    assert store.path == str(tmp_path / "config.json")


def test_errors_carry_status_and_body():
    err = SessionExpiredError("Session expired", status=502, body={"message": "Bad Gateway"})
    assert isinstance(err, ApiError)
    assert str(err) == "Session expired"
    assert err.status == 502
    assert err.body == {"message": "Bad Gateway"}
    assert err.login_url is None
