from datetime import datetime, timedelta

import pytest

from bookstore import errors, schemas
from bookstore.repositories import BookRepository, OrderRepository, ReviewRepository
from bookstore.reviews import ReviewService


@pytest.fixture
def service(db_session):
    return ReviewService(ReviewRepository(db_session), BookRepository(db_session), OrderRepository(db_session))


def review_data(rating, comment=None):
    return schemas.ReviewUpdate(rating=rating, comment=comment)


def test_create_review(service, book_factory, user_factory, as_principal):
    book = book_factory()
    user = user_factory(name="Alice")

    review = service.create_review(as_principal(user), book.id, review_data(5, "  A <b>wonderful</b> story  "))
    assert review.id is not None
    assert review.rating == 5
    assert review.comment == "A wonderful story"
    assert review.user.name == "Alice"


def test_blank_comment_is_stored_as_null(service, book_factory, user_factory, as_principal):
    review = service.create_review(as_principal(user_factory()), book_factory().id, review_data(3, "   "))
    assert review.comment is None


def test_review_for_missing_book(service, user_factory, as_principal):
    with pytest.raises(errors.BookNotFound):
        service.create_review(as_principal(user_factory()), 9999, review_data(4))


def test_second_review_is_rejected(service, book_factory, user_factory, as_principal):
    book = book_factory()
    principal = as_principal(user_factory())
    service.create_review(principal, book.id, review_data(4))

    with pytest.raises(errors.ReviewAlreadyExists):
        service.create_review(principal, book.id, review_data(2))
    assert service.reviews.count_for_book(book.id) == 1


def test_unique_constraint_race_maps_to_already_exists(service, book_factory, user_factory, add_review, as_principal, monkeypatch):
    book = book_factory()
    user = user_factory()
    add_review(user, book, 4)

    real_get_for = service.reviews.get_for
    calls = []

    def stale_lookup(user_id, book_id):
        calls.append((user_id, book_id))
        # the first lookup misses the row, as if it was inserted concurrently
        return None if len(calls) == 1 else real_get_for(user_id, book_id)

    monkeypatch.setattr(service.reviews, "get_for", stale_lookup)
    with pytest.raises(errors.ReviewAlreadyExists):
        service.create_review(as_principal(user), book.id, review_data(1))
    assert len(calls) == 2
    assert service.reviews.count_for_book(book.id) == 1


def test_owner_updates_review(service, book_factory, user_factory, add_review, as_principal):
    user = user_factory()
    review = add_review(user, book_factory(), 2)

    updated = service.update_review(review.id, as_principal(user), review_data(4, "Better on a second read"))
    assert updated.rating == 4
    assert updated.comment == "Better on a second read"


def test_only_owner_can_update(service, book_factory, user_factory, add_review, as_principal):
    review = add_review(user_factory(), book_factory(), 2)
    other = user_factory()
    admin = user_factory(role="admin")

    with pytest.raises(errors.Forbidden):
        service.update_review(review.id, as_principal(other), review_data(5))
    with pytest.raises(errors.Forbidden):
        service.update_review(review.id, as_principal(admin), review_data(5))
    with pytest.raises(errors.ReviewNotFound):
        service.update_review(9999, as_principal(other), review_data(5))


def test_delete_review_permissions(service, book_factory, user_factory, add_review, as_principal):
    book = book_factory()
    author = user_factory()
    other = user_factory()
    admin = user_factory(role="admin")
    first = add_review(author, book, 3)
    second = add_review(other, book, 4)

    with pytest.raises(errors.Forbidden):
        service.delete_review(first.id, as_principal(other))
    assert service.delete_review(first.id, as_principal(author)) is True
    assert service.delete_review(second.id, as_principal(admin)) is True
    with pytest.raises(errors.ReviewNotFound):
        service.delete_review(first.id, as_principal(author))


def test_rating_distribution_has_every_rating(service, book_factory, user_factory, add_review):
    book = book_factory()
    for rating in (5, 5, 3):
        add_review(user_factory(), book, rating)

    assert service.get_rating_distribution(book.id) == {1: 0, 2: 0, 3: 1, 4: 0, 5: 2}
    assert service.get_rating_distribution(book_factory().id) == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}


def test_reviews_for_book_with_summary(service, book_factory, user_factory, add_review):
    book = book_factory()
    for rating in (5, 4, 1):
        add_review(user_factory(), book, rating)

    page = service.get_reviews_for_book(book.id, schemas.ReviewQuery(sort_by="highest"))
    assert [review.rating for review in page.reviews] == [5, 4, 1]
    assert page.pagination.total_reviews == 3
    assert page.summary.total_reviews == 3
    assert page.summary.average_rating == pytest.approx(10 / 3)
    assert page.summary.rating_distribution == {1: 1, 2: 0, 3: 0, 4: 1, 5: 1}


def test_rating_filter_keeps_book_summary(service, book_factory, user_factory, add_review):
    book = book_factory()
    for rating in (5, 5, 2):
        add_review(user_factory(), book, rating)

    page = service.get_reviews_for_book(book.id, schemas.ReviewQuery(rating=5, limit=1))
    assert len(page.reviews) == 1
    assert page.pagination.total_reviews == 2
    assert page.pagination.total_pages == 2
    assert page.pagination.has_next_page is True
    assert page.summary.total_reviews == 3


def test_verified_purchase_requires_delivered_order(service, book_factory, user_factory, add_review, add_order):
    book = book_factory()
    buyer = user_factory()
    waiting = user_factory()
    browser = user_factory()
    add_order(buyer, book, status="delivered")
    add_order(waiting, book, status="shipped")
    for user in (buyer, waiting, browser):
        add_review(user, book, 4)

    page = service.get_reviews_for_book(book.id, schemas.ReviewQuery())
    flags = {review.user_id: review.is_verified_purchase for review in page.reviews}
    assert flags == {buyer.id: True, waiting.id: False, browser.id: False}


def test_delivered_order_of_another_book_does_not_verify(service, book_factory, user_factory, add_review, add_order):
    book = book_factory(title="Dune")
    other_book = book_factory(title="Emma")
    user = user_factory()
    add_order(user, other_book, status="delivered")
    add_review(user, book, 4)

    page = service.get_reviews_for_book(book.id, schemas.ReviewQuery())
    assert page.reviews[0].is_verified_purchase is False


def test_reviews_for_missing_book(service):
    with pytest.raises(errors.BookNotFound):
        service.get_reviews_for_book(9999, schemas.ReviewQuery())


def test_user_review_for_book(service, book_factory, user_factory, add_review, as_principal):
    book = book_factory()
    user = user_factory()
    review = add_review(user, book, 4)

    assert service.get_user_review_for_book(as_principal(user), book.id).id == review.id
    assert service.get_user_review_for_book(as_principal(user_factory()), book.id) is None


def test_review_can_be_written_again_after_delete(service, book_factory, user_factory, as_principal):
    book = book_factory()
    principal = as_principal(user_factory())
    first = service.create_review(principal, book.id, review_data(4))
    service.delete_review(first.id, principal)

    second = service.create_review(principal, book.id, review_data(2))
    assert second.id is not None
    assert service.get_rating_distribution(book.id) == {1: 0, 2: 1, 3: 0, 4: 0, 5: 0}


def test_review_sorting_by_date(service, book_factory, user_factory, add_review):
    book = book_factory()
    start = datetime(2024, 3, 1, 9, 0)
    middle = add_review(user_factory(), book, 3, created_at=start + timedelta(days=1))
    first = add_review(user_factory(), book, 4, created_at=start)
    last = add_review(user_factory(), book, 2, created_at=start + timedelta(days=2))

    recent = service.get_reviews_for_book(book.id, schemas.ReviewQuery())
    assert [review.id for review in recent.reviews] == [last.id, middle.id, first.id]

    oldest = service.get_reviews_for_book(book.id, schemas.ReviewQuery(sort_by="oldest"))
    assert [review.id for review in oldest.reviews] == [first.id, middle.id, last.id]


def test_rating_sorts_break_ties_by_recency(service, book_factory, user_factory, add_review):
    book = book_factory()
    start = datetime(2024, 3, 1, 9, 0)
    older_five = add_review(user_factory(), book, 5, created_at=start)
    newer_five = add_review(user_factory(), book, 5, created_at=start + timedelta(days=1))
    older_one = add_review(user_factory(), book, 1, created_at=start)
    newer_one = add_review(user_factory(), book, 1, created_at=start + timedelta(days=1))

    highest = service.get_reviews_for_book(book.id, schemas.ReviewQuery(sort_by="highest"))
    assert [review.id for review in highest.reviews] == [newer_five.id, older_five.id, newer_one.id, older_one.id]

    lowest = service.get_reviews_for_book(book.id, schemas.ReviewQuery(sort_by="lowest"))
    assert [review.id for review in lowest.reviews] == [newer_one.id, older_one.id, newer_five.id, older_five.id]
