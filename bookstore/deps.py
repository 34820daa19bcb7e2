"""Request-scoped wiring: sessions, repositories, services and the caller."""
from typing import Optional

from fastapi import Cookie, Depends
from sqlalchemy.orm import Session

from . import errors
from .accounts import AccountService
from .auth import ACCESS_COOKIE, Principal, principal_from_token
from .catalog import CatalogService
from .db import SessionLocal
from .orders import OrderService
from .repositories import BookRepository, OrderRepository, ReviewRepository, UserRepository
from .reviews import ReviewService


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_catalog(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(BookRepository(db), ReviewRepository(db))


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(ReviewRepository(db), BookRepository(db), OrderRepository(db))


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(UserRepository(db))


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(OrderRepository(db), BookRepository(db))


def get_principal(access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE)) -> Principal:
    if not access_token:
        raise errors.NotAuthenticated()
    return principal_from_token(access_token)


def get_optional_principal(
    access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
) -> Optional[Principal]:
    """Like get_principal, but a missing or bad token means an anonymous caller."""
    if not access_token:
        return None
    try:
        return principal_from_token(access_token)
    except (errors.TokenExpired, errors.TokenInvalid):
        return None


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise errors.InsufficientPermissions()
    return principal
