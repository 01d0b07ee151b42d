from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache

_ENV_FILE = Path(__file__).parent / ".env"
_DEFAULT_TOKEN_FILE = Path(__file__).parent / "config.json"


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:8080"
    login_url: str = "/login"          # where the host shows the login surface
    login_path: str = "/auth/login"
    refresh_path: str = "/auth/refresh"
    me_path: str = "/api/users/me"
    token_store: str = "memory"        # "memory" (session-scoped) or "file"
    token_file: str = str(_DEFAULT_TOKEN_FILE)
    idle_timeout_seconds: float = 30 * 60
    idle_check_interval_seconds: float = 5.0

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "env_prefix": "OPSBOARD_",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
