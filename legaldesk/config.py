"""Runtime configuration for the app (read from the environment, overridable during tests)."""
import os
from typing import NamedTuple


def _flag(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes", "on")


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    cookie_secure: bool
    log_level: str
    log_json: bool


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./legaldesk.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        # Secure cookies only make sense behind HTTPS
        cookie_secure=_flag(os.getenv("COOKIE_SECURE")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_flag(os.getenv("LOG_JSON")),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def configure(**overrides) -> Settings:
    global state
    state = state._replace(**overrides)
    return state
