import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response

from .. import errors, schemas
from ..accounts import AccountService
from ..auth import REFRESH_COOKIE, Principal, clear_auth_cookies, decode_refresh_token, set_auth_cookies
from ..deps import get_account_service, get_optional_principal, get_principal
from ..ratelimit import AUTH_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=schemas.Envelope[schemas.AuthData], status_code=201)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    response: Response,
    payload: schemas.RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.register(payload)
    set_auth_cookies(response, user)
    return {"success": True, "data": {"user": user}, "message": "User registered successfully"}


@router.post("/login", response_model=schemas.Envelope[schemas.AuthData])
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    response: Response,
    payload: schemas.LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.authenticate(payload)
    set_auth_cookies(response, user)
    return {"success": True, "data": {"user": user}, "message": "Login successful"}


@router.post("/refresh", response_model=schemas.Message)
async def refresh(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    accounts: AccountService = Depends(get_account_service),
):
    if not refresh_token:
        raise errors.NotAuthenticated("Refresh token is required", code="REFRESH_TOKEN_MISSING")
    payload = decode_refresh_token(refresh_token)
    try:
        user_id = int(payload["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise errors.TokenInvalid("Invalid refresh token", code="INVALID_REFRESH_TOKEN") from e

    # re-read the user so a changed role is reflected in the new access token
    user = accounts.get_user(user_id)
    set_auth_cookies(response, user, include_refresh=False)
    return {"success": True, "message": "Access token refreshed successfully"}


@router.post("/logout", response_model=schemas.Message)
async def logout(response: Response, principal: Optional[Principal] = Depends(get_optional_principal)):
    clear_auth_cookies(response)
    if principal is not None:
        logger.info("User %s logged out", principal.id)
    return {"success": True, "message": "Logout successful"}


@router.get("/me", response_model=schemas.Envelope[schemas.AuthData])
async def me(principal: Principal = Depends(get_principal), accounts: AccountService = Depends(get_account_service)):
    return {"success": True, "data": {"user": accounts.get_user(principal.id)}}
