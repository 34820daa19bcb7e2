from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from .. import errors, schemas
from ..auth import Principal
from ..catalog import RELATED_BOOKS_LIMIT, CatalogService
from ..deps import get_catalog, require_admin

router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=schemas.Envelope[schemas.BookPage])
async def list_books(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=255),
    sort_by: schemas.BookSort = Query("recent", alias="sortBy"),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    catalog: CatalogService = Depends(get_catalog),
):
    query = schemas.BookQuery(
        page=page,
        limit=limit,
        category=category or None,
        search=(search or "").strip() or None,
        sort_by=sort_by,
        min_price=min_price,
        max_price=max_price,
    )
    return {"success": True, "data": catalog.list_books(query)}


@router.get("/categories", response_model=schemas.Envelope[schemas.CategoryList])
async def list_categories(catalog: CatalogService = Depends(get_catalog)):
    categories = catalog.list_categories()
    return {"success": True, "data": {"categories": categories, "count": len(categories)}}


@router.get("/{book_id}", response_model=schemas.Envelope[schemas.BookRead])
async def get_book(book_id: int = Path(..., gt=0), catalog: CatalogService = Depends(get_catalog)):
    book = catalog.get_book(book_id)
    if book is None:
        raise errors.BookNotFound(f"Book with ID {book_id} not found")
    return {"success": True, "data": book}


@router.get("/{book_id}/related", response_model=schemas.Envelope[schemas.BookList])
async def get_related_books(
    book_id: int = Path(..., gt=0),
    limit: int = Query(RELATED_BOOKS_LIMIT, ge=1, le=50),
    catalog: CatalogService = Depends(get_catalog),
):
    books = catalog.get_related_books(book_id, limit)
    return {"success": True, "data": {"books": books, "count": len(books)}}


@router.post("", response_model=schemas.Envelope[schemas.BookRead], status_code=201)
async def create_book(
    payload: schemas.BookCreate,
    catalog: CatalogService = Depends(get_catalog),
    admin: Principal = Depends(require_admin),
):
    book = catalog.create_book(payload)
    return {"success": True, "data": book, "message": "Book created successfully"}


@router.put("/{book_id}", response_model=schemas.Envelope[schemas.BookRead])
async def update_book(
    payload: schemas.BookUpdate,
    book_id: int = Path(..., gt=0),
    catalog: CatalogService = Depends(get_catalog),
    admin: Principal = Depends(require_admin),
):
    book = catalog.update_book(book_id, payload)
    if book is None:
        raise errors.BookNotFound(f"Book with ID {book_id} not found")
    return {"success": True, "data": book, "message": "Book updated successfully"}


@router.delete("/{book_id}", response_model=schemas.Message)
async def delete_book(
    book_id: int = Path(..., gt=0),
    catalog: CatalogService = Depends(get_catalog),
    admin: Principal = Depends(require_admin),
):
    if not catalog.delete_book(book_id):
        raise errors.BookNotFound(f"Book with ID {book_id} not found")
    return {"success": True, "message": "Book deleted successfully"}
