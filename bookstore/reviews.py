"""Review workflow: one review per user per book, rating statistics and
verified-purchase flags.

Per (user, book) pair a review moves NoReview -> Reviewed on create, stays
Reviewed on update (owner only) and returns to NoReview on delete (owner or
admin). Creating from Reviewed is rejected both by an explicit lookup and by
the ``reviews_user_id_book_id_key`` unique constraint.
"""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError

from . import errors, models, schemas
from .auth import Principal
from .repositories import BookRepository, OrderRepository, ReviewRepository
from .utils import page_count, page_offset

logger = logging.getLogger(__name__)

RATING_VALUES = (1, 2, 3, 4, 5)


class ReviewService:
    def __init__(self, reviews: ReviewRepository, books: BookRepository, orders: OrderRepository):
        self.reviews = reviews
        self.books = books
        self.orders = orders

    def create_review(self, principal: Principal, book_id: int, data: schemas.ReviewUpdate) -> models.Review:
        if self.books.get(book_id) is None:
            raise errors.BookNotFound(f"Book with ID {book_id} not found")
        if self.reviews.get_for(principal.id, book_id) is not None:
            raise errors.ReviewAlreadyExists()

        review = models.Review(user_id=principal.id, book_id=book_id, rating=data.rating, comment=data.comment)
        try:
            self.reviews.add(review)
        except IntegrityError:
            # a concurrent request created the same pair after our lookup
            if self.reviews.get_for(principal.id, book_id) is not None:
                raise errors.ReviewAlreadyExists()
            raise
        logger.info("Review %s created by user %s for book %s", review.id, principal.id, book_id)
        return self.reviews.get_with_user(review.id)

    def update_review(self, review_id: int, principal: Principal, data: schemas.ReviewUpdate) -> models.Review:
        review = self.reviews.get(review_id)
        if review is None:
            raise errors.ReviewNotFound(f"Review with ID {review_id} not found")
        # only the author may edit; admins can delete but not rewrite
        if review.user_id != principal.id:
            raise errors.Forbidden("You can only edit your own reviews")

        review.rating = data.rating
        review.comment = data.comment
        self.reviews.save(review)
        return self.reviews.get_with_user(review.id)

    def delete_review(self, review_id: int, principal: Principal) -> bool:
        review = self.reviews.get(review_id)
        if review is None:
            raise errors.ReviewNotFound(f"Review with ID {review_id} not found")
        if review.user_id != principal.id and not principal.is_admin:
            raise errors.Forbidden("You can only delete your own reviews")

        self.reviews.delete(review)
        logger.info("Review %s deleted by user %s", review_id, principal.id)
        return True

    def get_rating_distribution(self, book_id: int) -> Dict[int, int]:
        counts = self.reviews.rating_counts(book_id)
        return {rating: counts.get(rating, 0) for rating in RATING_VALUES}

    def get_reviews_for_book(self, book_id: int, query: schemas.ReviewQuery) -> schemas.ReviewPage:
        if self.books.get(book_id) is None:
            raise errors.BookNotFound(f"Book with ID {book_id} not found")

        total = self.reviews.count_for_book(book_id, query.rating)
        page = self.reviews.page_for_book(
            book_id, query.rating, query.sort_by, page_offset(query.page, query.limit), query.limit
        )
        verified = self.orders.verified_purchasers(book_id, {review.user_id for review in page})
        total_pages = page_count(total, query.limit)

        distribution = self.get_rating_distribution(book_id)
        average_rating, review_count = self.reviews.stats_for_book(book_id)

        return schemas.ReviewPage(
            reviews=[
                schemas.ReviewListItem.model_validate(review).model_copy(
                    update={"is_verified_purchase": review.user_id in verified}
                )
                for review in page
            ],
            pagination=schemas.ReviewPagination(
                current_page=query.page,
                total_pages=total_pages,
                total_reviews=total,
                limit=query.limit,
                has_next_page=query.page < total_pages,
                has_prev_page=query.page > 1,
            ),
            summary=schemas.ReviewSummary(
                average_rating=average_rating,
                total_reviews=review_count,
                rating_distribution=distribution,
            ),
        )

    def get_user_review_for_book(self, principal: Principal, book_id: int) -> Optional[models.Review]:
        return self.reviews.get_for(principal.id, book_id)
