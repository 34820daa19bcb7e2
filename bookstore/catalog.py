"""Book catalog: filtered, sorted, paginated listings with review statistics."""
import logging
from typing import List, Optional

from . import errors, models, schemas
from .repositories import BookRepository, ReviewRepository
from .utils import page_count, page_offset

logger = logging.getLogger(__name__)

RELATED_BOOKS_LIMIT = 6


class CatalogService:
    def __init__(self, books: BookRepository, reviews: ReviewRepository):
        self.books = books
        self.reviews = reviews

    def list_books(self, query: schemas.BookQuery) -> schemas.BookPage:
        if query.min_price is not None and query.max_price is not None and query.min_price > query.max_price:
            raise errors.ValidationError(
                "Invalid query parameters",
                details={"minPrice": "minPrice cannot be greater than maxPrice"},
                code="INVALID_PARAMETERS",
            )

        total = self.books.count(query)
        rows = self.books.search(query, page_offset(query.page, query.limit), query.limit)
        total_pages = page_count(total, query.limit)

        return schemas.BookPage(
            books=[schemas.BookRead.with_stats(book, avg, count) for book, avg, count in rows],
            pagination=schemas.BookPagination(
                current_page=query.page,
                total_pages=total_pages,
                total_books=total,
                limit=query.limit,
                has_next_page=query.page < total_pages,
                has_prev_page=query.page > 1,
            ),
        )

    def get_book(self, book_id: int) -> Optional[schemas.BookRead]:
        row = self.books.get_with_stats(book_id)
        if row is None:
            return None
        book, avg, count = row
        return schemas.BookRead.with_stats(book, avg, count)

    def get_related_books(self, book_id: int, limit: int = RELATED_BOOKS_LIMIT) -> List[schemas.BookRead]:
        book = self.books.get(book_id)
        if book is None:
            raise errors.BookNotFound(f"Book with ID {book_id} not found")

        related = []
        # stats are fetched per book rather than joined
        for other in self.books.related(book.id, book.category, limit):
            avg, count = self.reviews.stats_for_book(other.id)
            related.append(schemas.BookRead.with_stats(other, avg, count))
        return related

    def list_categories(self) -> List[schemas.CategoryCount]:
        return [schemas.CategoryCount(category=name, count=count) for name, count in self.books.categories()]

    def create_book(self, data: schemas.BookCreate) -> schemas.BookRead:
        book = self.books.add(models.Book(**data.model_dump()))
        logger.info("Book %s created: %r", book.id, book.title)
        return schemas.BookRead.with_stats(book)

    def update_book(self, book_id: int, data: schemas.BookUpdate) -> Optional[schemas.BookRead]:
        book = self.books.get(book_id)
        if book is None:
            return None
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(book, field, value)
        self.books.save(book)
        logger.info("Book %s updated", book.id)
        return self.get_book(book.id)

    def delete_book(self, book_id: int) -> bool:
        book = self.books.get(book_id)
        if book is None:
            return False
        self.books.delete(book)
        logger.info("Book %s deleted", book_id)
        return True
