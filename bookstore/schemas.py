import re
from datetime import datetime
from decimal import Decimal
from typing import Dict, Generic, List, Literal, Optional, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .utils import normalize_comment, sanitize_input

T = TypeVar("T")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

BookSort = Literal["recent", "price_asc", "price_desc", "title", "popular"]
ReviewSort = Literal["recent", "oldest", "highest", "lowest"]
Role = Literal["user", "admin"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Message(BaseModel):
    success: bool = True
    message: str


# -------------------- Users / auth --------------------

def _clean_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValueError("Email must be a valid email address")
    return email


def _clean_name(value: str) -> str:
    name = sanitize_input(value)
    if len(name) < 2:
        raise ValueError("Name must be at least 2 characters long")
    if len(name) > 100:
        raise ValueError("Name must not exceed 100 characters")
    return name


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("name")
    def valid_name(cls, v: str):
        return _clean_name(v)

    @field_validator("email")
    def valid_email(cls, v: str):
        return _clean_email(v)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    def normalize_email(cls, v: str):
        return v.strip().lower()


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str = "user"
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthData(BaseModel):
    user: UserRead


class RoleUpdate(BaseModel):
    role: Role


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    def valid_name(cls, v: Optional[str]):
        return None if v is None else _clean_name(v)

    @field_validator("email")
    def valid_email(cls, v: Optional[str]):
        return None if v is None else _clean_email(v)


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


# -------------------- Books --------------------

def _valid_url(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    url = value.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Image URL must be a valid URL")
    return url


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    stock: int = Field(default=0, ge=0)

    @field_validator("title", "author", "category")
    def not_blank(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("image_url")
    def valid_image_url(cls, v: Optional[str]):
        return _valid_url(v)


class BookUpdate(BaseModel):
    """Partial update: only the fields present in the payload are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    author: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    stock: Optional[int] = Field(default=None, ge=0)

    @field_validator("title", "author", "price", "category", "stock")
    def not_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("cannot be empty")
        return v

    @field_validator("image_url")
    def valid_image_url(cls, v: Optional[str]):
        return _valid_url(v)


class BookQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=12, ge=1, le=100)
    category: Optional[str] = None
    search: Optional[str] = None
    sort_by: BookSort = "recent"
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)


class BookRead(BaseModel):
    id: int
    title: str
    author: str
    price: Decimal
    category: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    stock: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    average_rating: float = Field(default=0, alias="averageRating")
    review_count: int = Field(default=0, alias="reviewCount")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @classmethod
    def with_stats(cls, book, average_rating=None, review_count=None) -> "BookRead":
        return cls.model_validate(book).model_copy(
            update={
                "average_rating": float(average_rating or 0),
                "review_count": int(review_count or 0),
            }
        )


class PageInfo(CamelModel):
    current_page: int
    total_pages: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class BookPagination(PageInfo):
    total_books: int


class BookPage(BaseModel):
    books: List[BookRead]
    pagination: BookPagination


class BookList(BaseModel):
    books: List[BookRead]
    count: int


class CategoryCount(BaseModel):
    category: str
    count: int


class CategoryList(BaseModel):
    categories: List[CategoryCount]
    count: int


# -------------------- Reviews --------------------

class ReviewUpdate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None

    @field_validator("comment")
    def valid_comment(cls, v: Optional[str]):
        return normalize_comment(v)


class ReviewCreate(ReviewUpdate):
    book_id: int = Field(..., gt=0)


class ReviewQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: ReviewSort = "recent"
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class Reviewer(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class ReviewRead(BaseModel):
    id: int
    user_id: int
    book_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[Reviewer] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ReviewListItem(ReviewRead):
    is_verified_purchase: bool = Field(default=False, alias="isVerifiedPurchase")


class ReviewPagination(PageInfo):
    total_reviews: int


class ReviewSummary(CamelModel):
    average_rating: float
    total_reviews: int
    rating_distribution: Dict[int, int]


class ReviewPage(BaseModel):
    reviews: List[ReviewListItem]
    pagination: ReviewPagination
    summary: ReviewSummary


class RatingStats(CamelModel):
    rating_distribution: Dict[int, int]


# -------------------- Users (admin) --------------------

class UserPagination(PageInfo):
    total_users: int


class UserPage(BaseModel):
    users: List[UserRead]
    pagination: UserPagination


# -------------------- Orders --------------------

class OrderItemCreate(CamelModel):
    book_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemRead(BaseModel):
    id: int
    book_id: Optional[int] = None
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    total_price: Decimal
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class OrderList(BaseModel):
    orders: List[OrderRead]
    count: int
