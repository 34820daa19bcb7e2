import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt
from passlib.context import CryptContext

from . import errors
from .config import get_settings

ALGORITHM = "HS256"
ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, decoded from the access token."""

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@lru_cache(maxsize=None)
def _password_context(rounds: int) -> CryptContext:
    # pbkdf2_sha256 hashes new passwords; bcrypt hashes are still verifiable
    return CryptContext(
        schemes=["pbkdf2_sha256", "bcrypt"],
        deprecated="auto",
        pbkdf2_sha256__rounds=rounds,
    )


def hash_password(password: str) -> str:
    return _password_context(get_settings().password_hash_rounds).hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return _password_context(get_settings().password_hash_rounds).verify(plain, hashed)


def parse_duration(value: str) -> timedelta:
    """Parse ``<integer><unit>`` durations such as ``15m`` or ``7d``."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"invalid duration format: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


def calculate_cookie_expiry(value: str, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + parse_duration(value)


def _encode(claims: dict, secret: str, lifetime: str) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims, iat=now, exp=now + parse_duration(lifetime))
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_access_token(user) -> str:
    settings = get_settings()
    claims = {"sub": str(user.id), "id": user.id, "email": user.email, "role": user.role}
    return _encode(claims, settings.jwt_access_secret, settings.jwt_access_expiration)


def create_refresh_token(user) -> str:
    settings = get_settings()
    claims = {"sub": str(user.id), "id": user.id, "email": user.email}
    return _encode(claims, settings.jwt_refresh_secret, settings.jwt_refresh_expiration)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().jwt_access_secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise errors.TokenExpired() from e
    except jwt.InvalidTokenError as e:
        raise errors.TokenInvalid() from e


def decode_refresh_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().jwt_refresh_secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise errors.TokenExpired(
            "Refresh token has expired. Please login again.", code="REFRESH_TOKEN_EXPIRED"
        ) from e
    except jwt.InvalidTokenError as e:
        raise errors.TokenInvalid("Invalid refresh token", code="INVALID_REFRESH_TOKEN") from e


def principal_from_token(token: str) -> Principal:
    payload = decode_access_token(token)
    try:
        return Principal(id=int(payload["id"]), email=payload["email"], role=payload["role"])
    except (KeyError, TypeError, ValueError) as e:
        raise errors.TokenInvalid() from e


def cookie_options() -> dict:
    settings = get_settings()
    return {
        "httponly": True,
        "samesite": "strict",
        "secure": settings.cookie_secure or settings.is_production,
        "domain": settings.cookie_domain if settings.is_production else None,
        "path": "/",
    }


def set_auth_cookies(response, user, include_refresh: bool = True):
    settings = get_settings()
    options = cookie_options()
    response.set_cookie(
        ACCESS_COOKIE,
        create_access_token(user),
        expires=calculate_cookie_expiry(settings.jwt_access_expiration),
        **options,
    )
    if include_refresh:
        response.set_cookie(
            REFRESH_COOKIE,
            create_refresh_token(user),
            expires=calculate_cookie_expiry(settings.jwt_refresh_expiration),
            **options,
        )


def clear_auth_cookies(response):
    options = cookie_options()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, **options)
