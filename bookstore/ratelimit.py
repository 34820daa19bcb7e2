"""Fixed-window request limits per client address (slowapi)."""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import get_settings

_settings = get_settings()

DEFAULT_LIMIT = f"{_settings.rate_limit_max_requests}/{_settings.rate_limit_window_seconds} seconds"
AUTH_LIMIT = f"{_settings.auth_rate_limit_max}/{_settings.rate_limit_window_seconds} seconds"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_LIMIT],
    enabled=_settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    if "/auth/" in request.url.path:
        code, message = "TOO_MANY_AUTH_ATTEMPTS", "Too many authentication attempts, please try again later"
    else:
        code, message = "TOO_MANY_REQUESTS", "Too many requests from this IP, please try again later"
    return JSONResponse(status_code=429, content={"success": False, "error": {"code": code, "message": message}})
