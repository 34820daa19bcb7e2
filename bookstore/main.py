import logging
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, errors
from .config import Settings, get_settings
from .db import Base, engine
from .ratelimit import limiter, rate_limit_exceeded_handler
from .routes import api_router

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("bookstore.access")

# Boundary table: every error class the services raise maps to one status.
STATUS_CODES = {
    errors.ValidationError: 400,
    errors.NotAuthenticated: 401,
    errors.InvalidCredentials: 401,
    errors.TokenExpired: 401,
    errors.TokenInvalid: 403,
    errors.Forbidden: 403,
    errors.NotFound: 404,
    errors.Conflict: 409,
    errors.DatabaseError: 500,
    errors.BookstoreError: 500,
}


def status_code_for(exc: errors.BookstoreError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def configure_logging(settings: Settings):
    root = logging.getLogger("bookstore")
    root.setLevel(settings.log_level.upper())
    if root.handlers:
        return
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if settings.log_file:
        file_handler = RotatingFileHandler(settings.log_file, maxBytes=10240000, backupCount=10)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if not existing. Schema migrations are handled outside the app.
    Base.metadata.create_all(bind=engine)
    logger.info("Bookstore API startup (%s)", get_settings().environment)
    yield


settings = get_settings()
configure_logging(settings)

app = FastAPI(title="Bookstore API", version=__version__, lifespan=lifespan)
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    access_logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(errors.BookstoreError)
async def handle_bookstore_error(request: Request, exc: errors.BookstoreError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"success": False, "error": exc.to_dict()})


# Identifier parameters that report their own codes instead of INVALID_PARAMETERS
IDENTIFIER_ERRORS = {
    "book_id": ("INVALID_BOOK_ID", "Book ID must be a positive integer"),
    "bookId": ("INVALID_BOOK_ID", "Book ID must be a positive integer"),
    "review_id": ("INVALID_REVIEW_ID", "Review ID must be a positive integer"),
}


def identifier_error(source: str, field: str, error_type: str):
    if source not in ("query", "path") or field not in IDENTIFIER_ERRORS:
        return None
    if field == "bookId" and error_type == "missing":
        return "MISSING_BOOK_ID", "Book ID is required"
    return IDENTIFIER_ERRORS[field]


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = []
    in_query = False
    identifier = None
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        source = None
        if loc and loc[0] in ("body", "query", "path", "cookie", "header"):
            source = loc[0]
            in_query = in_query or source in ("query", "path")
            loc = loc[1:]
        field = ".".join(str(part) for part in loc)
        identifier = identifier or identifier_error(source, field, err.get("type", ""))
        details.append({"field": field, "message": err.get("msg", "")})
    if identifier is not None:
        code, message = identifier
        return error_response(400, code, message, details)
    if in_query:
        return error_response(400, "INVALID_PARAMETERS", "Invalid query parameters", details)
    return error_response(400, "VALIDATION_ERROR", "Validation failed", details)


@app.exception_handler(IntegrityError)
async def handle_integrity_error(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(409, errors.DuplicateEntry.code, errors.DuplicateEntry.message)


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return error_response(500, errors.DatabaseError.code, errors.DatabaseError.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(404, "NOT_FOUND", f"Cannot {request.method} {request.url.path}")
    if exc.status_code == 405:
        return error_response(405, "METHOD_NOT_ALLOWED", f"Cannot {request.method} {request.url.path}")
    return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if get_settings().is_production:
        return error_response(500, "INTERNAL_SERVER_ERROR", "An error occurred")
    return error_response(
        500,
        "INTERNAL_SERVER_ERROR",
        str(exc) or exc.__class__.__name__,
        {"stack": traceback.format_exception(type(exc), exc, exc.__traceback__)},
    )


app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "success": True,
        "data": {"message": "Bookstore API", "version": __version__, "documentation": "/docs"},
    }


@app.get("/health")
async def health():
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": get_settings().environment,
        },
    }
