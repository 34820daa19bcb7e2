import itertools
import os
from decimal import Decimal
from typing import Generator

# Settings are read at import time, so the test environment is fixed first
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ.pop("LOG_FILE", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookstore import models
from bookstore.auth import Principal, hash_password
from bookstore.db import Base, enable_sqlite_foreign_keys
from bookstore.deps import get_db
from bookstore.main import app

API = "/api/v1"
PASSWORD = "password123"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    counter = itertools.count(1)

    def _create(role="user", name=None, email=None, password=PASSWORD):
        n = next(counter)
        user = models.User(
            name=name or f"Reader {n}",
            email=email or f"reader{n}@example.com",
            password_hash=hash_password(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def book_factory(db_session):
    def _create(**fields):
        values = dict(title="Dune", author="Frank Herbert", price=Decimal("9.99"), category="Sci-Fi", stock=5)
        values.update(fields)
        book = models.Book(**values)
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book

    return _create


@pytest.fixture
def add_review(db_session):
    def _add(user, book, rating, comment=None, created_at=None):
        review = models.Review(user_id=user.id, book_id=book.id, rating=rating, comment=comment)
        if created_at is not None:
            review.created_at = created_at
        db_session.add(review)
        db_session.commit()
        db_session.refresh(review)
        return review

    return _add


@pytest.fixture
def add_order(db_session):
    def _add(user, book, quantity=1, status="pending"):
        order = models.Order(user_id=user.id, total_price=Decimal(book.price) * quantity, status=status)
        order.items.append(models.OrderItem(book_id=book.id, quantity=quantity, price=book.price))
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _add


def principal_of(user) -> Principal:
    return Principal(id=user.id, email=user.email, role=user.role)


@pytest.fixture
def as_principal():
    return principal_of


@pytest.fixture
def register_user(client):
    def _register(name="Reader One", email="reader@example.com", password=PASSWORD):
        r = client.post(f"{API}/auth/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 201, r.text
        return r.json()["data"]["user"]

    return _register


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        client.cookies.clear()
        r = client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return r.json()["data"]["user"]

    return _login


@pytest.fixture
def admin_user(user_factory):
    return user_factory(role="admin", name="Admin", email="admin@example.com")


@pytest.fixture
def as_admin(client, admin_user, login):
    login(admin_user.email)
    return client
