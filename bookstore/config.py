"""Runtime configuration for the API, read from the environment (and ``.env``)."""
import os
from typing import NamedTuple

from dotenv import load_dotenv

load_dotenv()


class Settings(NamedTuple):
    environment: str
    database_url: str
    api_prefix: str
    jwt_access_secret: str
    jwt_access_expiration: str
    jwt_refresh_secret: str
    jwt_refresh_expiration: str
    cookie_secure: bool
    cookie_domain: str
    password_hash_rounds: int
    rate_limit_enabled: bool
    rate_limit_window_ms: int
    rate_limit_max_requests: int
    auth_rate_limit_max: int
    client_url: str
    log_level: str
    log_file: str | None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def rate_limit_window_seconds(self) -> int:
        return max(1, self.rate_limit_window_ms // 1000)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        environment=os.getenv("APP_ENV", "development"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./bookstore.db"),
        api_prefix=os.getenv("API_PREFIX", "/api/v1"),
        jwt_access_secret=os.getenv("JWT_ACCESS_SECRET", "dev-access-secret-change-in-production"),
        jwt_access_expiration=os.getenv("JWT_ACCESS_EXPIRATION", "15m"),
        jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-in-production"),
        jwt_refresh_expiration=os.getenv("JWT_REFRESH_EXPIRATION", "7d"),
        cookie_secure=_flag("COOKIE_SECURE", "false"),
        cookie_domain=os.getenv("COOKIE_DOMAIN", "localhost"),
        password_hash_rounds=int(os.getenv("PASSWORD_HASH_ROUNDS", "29000")),
        rate_limit_enabled=_flag("RATE_LIMIT_ENABLED", "true"),
        rate_limit_window_ms=int(os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000))),
        rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100")),
        auth_rate_limit_max=int(os.getenv("AUTH_RATE_LIMIT_MAX", "5")),
        client_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def override_settings(**changes) -> Settings:
    """Replace selected settings at runtime and return the previous ones."""
    global state
    previous = state
    state = state._replace(**changes)
    return previous


def restore_settings(previous: Settings):
    global state
    state = previous
