"""Per-entity data access. Each repository wraps the request's Session."""
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Repository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        return self.session.get(self.model, obj_id)

    def add(self, obj):
        self.session.add(obj)
        return self.save(obj)

    def save(self, obj):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        self.session.refresh(obj)
        return obj

    def delete(self, obj):
        self.session.delete(obj)
        self.session.commit()


class UserRepository(Repository):
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        return (
            self.session.query(models.User)
            .filter(func.lower(models.User.email) == email.strip().lower())
            .first()
        )

    def page(self, offset: int, limit: int) -> List[models.User]:
        return self.session.query(models.User).order_by(models.User.id).offset(offset).limit(limit).all()

    def count(self) -> int:
        return self.session.query(func.count(models.User.id)).scalar() or 0


class BookRepository(Repository):
    model = models.Book

    def _review_stats(self):
        # one row per reviewed book, so joining it never multiplies book rows
        return (
            self.session.query(
                models.Review.book_id.label("book_id"),
                func.avg(models.Review.rating).label("average_rating"),
                func.count(models.Review.id).label("review_count"),
            )
            .group_by(models.Review.book_id)
            .subquery()
        )

    @staticmethod
    def _conditions(query: schemas.BookQuery) -> list:
        conditions = []
        if query.category:
            conditions.append(models.Book.category == query.category)
        if query.search:
            pattern = f"%{escape_like(query.search)}%"
            conditions.append(
                or_(models.Book.title.ilike(pattern, escape="\\"), models.Book.author.ilike(pattern, escape="\\"))
            )
        if query.min_price is not None:
            conditions.append(models.Book.price >= query.min_price)
        if query.max_price is not None:
            conditions.append(models.Book.price <= query.max_price)
        return conditions

    @staticmethod
    def _ordering(sort_by: str, review_count) -> list:
        Book = models.Book
        orders = {
            "price_asc": [Book.price.asc()],
            "price_desc": [Book.price.desc()],
            "title": [Book.title.asc()],
            "popular": [review_count.desc()],
            "recent": [Book.created_at.desc()],
        }
        return orders.get(sort_by, orders["recent"]) + [Book.id.asc()]

    def search(self, query: schemas.BookQuery, offset: int, limit: int) -> List[Tuple[models.Book, float, int]]:
        stats = self._review_stats()
        average_rating = func.coalesce(stats.c.average_rating, 0)
        review_count = func.coalesce(stats.c.review_count, 0)
        return (
            self.session.query(models.Book, average_rating, review_count)
            .outerjoin(stats, stats.c.book_id == models.Book.id)
            .filter(*self._conditions(query))
            .order_by(*self._ordering(query.sort_by, review_count))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count(self, query: schemas.BookQuery) -> int:
        return self.session.query(func.count(models.Book.id)).filter(*self._conditions(query)).scalar() or 0

    def get_with_stats(self, book_id: int) -> Optional[Tuple[models.Book, float, int]]:
        stats = self._review_stats()
        return (
            self.session.query(
                models.Book,
                func.coalesce(stats.c.average_rating, 0),
                func.coalesce(stats.c.review_count, 0),
            )
            .outerjoin(stats, stats.c.book_id == models.Book.id)
            .filter(models.Book.id == book_id)
            .first()
        )

    def related(self, book_id: int, category: str, limit: int) -> List[models.Book]:
        return (
            self.session.query(models.Book)
            .filter(
                models.Book.category == category,
                models.Book.id != book_id,
                models.Book.stock > 0,
            )
            .order_by(models.Book.created_at.desc(), models.Book.id.asc())
            .limit(limit)
            .all()
        )

    def categories(self) -> List[Tuple[str, int]]:
        return (
            self.session.query(models.Book.category, func.count(models.Book.id))
            .group_by(models.Book.category)
            .order_by(models.Book.category)
            .all()
        )

    def lock_many(self, book_ids: Iterable[int]) -> Dict[int, models.Book]:
        ids = set(book_ids)
        if not ids:
            return {}
        books = self.session.query(models.Book).filter(models.Book.id.in_(ids)).with_for_update().all()
        return {book.id: book for book in books}


class ReviewRepository(Repository):
    model = models.Review

    _orderings = {
        "recent": (models.Review.created_at.desc(), models.Review.id.desc()),
        "oldest": (models.Review.created_at.asc(), models.Review.id.asc()),
        "highest": (models.Review.rating.desc(), models.Review.created_at.desc(), models.Review.id.desc()),
        "lowest": (models.Review.rating.asc(), models.Review.created_at.desc(), models.Review.id.desc()),
    }

    def get_with_user(self, review_id: int) -> Optional[models.Review]:
        return (
            self.session.query(models.Review)
            .options(joinedload(models.Review.user))
            .filter(models.Review.id == review_id)
            .first()
        )

    def get_for(self, user_id: int, book_id: int) -> Optional[models.Review]:
        return (
            self.session.query(models.Review)
            .options(joinedload(models.Review.user))
            .filter(models.Review.user_id == user_id, models.Review.book_id == book_id)
            .first()
        )

    def _for_book(self, book_id: int, rating: Optional[int] = None):
        query = self.session.query(models.Review).filter(models.Review.book_id == book_id)
        if rating is not None:
            query = query.filter(models.Review.rating == rating)
        return query

    def page_for_book(self, book_id: int, rating: Optional[int], sort_by: str, offset: int, limit: int) -> List[models.Review]:
        return (
            self._for_book(book_id, rating)
            .options(joinedload(models.Review.user))
            .order_by(*self._orderings.get(sort_by, self._orderings["recent"]))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_for_book(self, book_id: int, rating: Optional[int] = None) -> int:
        return self._for_book(book_id, rating).with_entities(func.count(models.Review.id)).scalar() or 0

    def stats_for_book(self, book_id: int) -> Tuple[float, int]:
        average, count = (
            self.session.query(func.avg(models.Review.rating), func.count(models.Review.id))
            .filter(models.Review.book_id == book_id)
            .one()
        )
        return float(average or 0), int(count or 0)

    def rating_counts(self, book_id: int) -> Dict[int, int]:
        rows = (
            self.session.query(models.Review.rating, func.count(models.Review.id))
            .filter(models.Review.book_id == book_id)
            .group_by(models.Review.rating)
            .all()
        )
        return {int(rating): int(count) for rating, count in rows}


class OrderRepository(Repository):
    model = models.Order

    def get_with_items(self, order_id: int) -> Optional[models.Order]:
        return (
            self.session.query(models.Order)
            .options(selectinload(models.Order.items))
            .filter(models.Order.id == order_id)
            .first()
        )

    def for_user(self, user_id: Optional[int] = None) -> List[models.Order]:
        query = self.session.query(models.Order).options(selectinload(models.Order.items))
        if user_id is not None:
            query = query.filter(models.Order.user_id == user_id)
        return query.order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()

    def verified_purchasers(self, book_id: int, user_ids: Iterable[int]) -> Set[int]:
        """Return the subset of ``user_ids`` holding a delivered order for the book."""
        ids = set(user_ids)
        if not ids:
            return set()
        rows = (
            self.session.query(models.Order.user_id)
            .join(models.OrderItem, models.OrderItem.order_id == models.Order.id)
            .filter(
                models.OrderItem.book_id == book_id,
                models.Order.status == models.VERIFIED_ORDER_STATUS,
                models.Order.user_id.in_(ids),
            )
            .distinct()
            .all()
        )
        return {user_id for (user_id,) in rows}
