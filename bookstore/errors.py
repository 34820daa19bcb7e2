"""Error taxonomy shared by the services and the HTTP boundary.

Services raise these; ``bookstore.main`` maps each class to a status code and
renders ``{"success": false, "error": {"code", "message", "details"}}``.
"""
from typing import Any, Optional


class BookstoreError(Exception):
    code = "INTERNAL_SERVER_ERROR"
    message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Any = None, code: Optional[str] = None):
        self.message = message or self.message
        self.details = details
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(BookstoreError):
    code = "VALIDATION_ERROR"
    message = "Validation failed"


class NotFound(BookstoreError):
    code = "NOT_FOUND"
    message = "Resource not found"


class BookNotFound(NotFound):
    code = "BOOK_NOT_FOUND"
    message = "Book not found"


class ReviewNotFound(NotFound):
    code = "REVIEW_NOT_FOUND"
    message = "Review not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    message = "User not found"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"
    message = "Order not found"


class Conflict(BookstoreError):
    code = "CONFLICT"
    message = "Resource conflict"


class EmailExists(Conflict):
    code = "EMAIL_EXISTS"
    message = "Email is already registered"


class ReviewAlreadyExists(Conflict):
    code = "REVIEW_ALREADY_EXISTS"
    message = "You have already reviewed this book. Please edit your existing review instead."


class InsufficientStock(Conflict):
    code = "INSUFFICIENT_STOCK"
    message = "Not enough stock to fulfil the order"


class DuplicateEntry(Conflict):
    code = "DUPLICATE_ENTRY"
    message = "A record with this value already exists"


class Forbidden(BookstoreError):
    code = "FORBIDDEN"
    message = "You are not allowed to perform this action"


class InsufficientPermissions(Forbidden):
    code = "INSUFFICIENT_PERMISSIONS"
    message = "You do not have permission to access this resource"


class NotAuthenticated(BookstoreError):
    code = "NOT_AUTHENTICATED"
    message = "Authentication required"


class InvalidCredentials(BookstoreError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class TokenExpired(BookstoreError):
    code = "TOKEN_EXPIRED"
    message = "Access token has expired"


class TokenInvalid(BookstoreError):
    code = "INVALID_TOKEN"
    message = "Invalid access token"


class DatabaseError(BookstoreError):
    code = "DATABASE_ERROR"
    message = "A database error occurred. Please try again later."
