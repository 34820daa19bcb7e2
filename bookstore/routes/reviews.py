from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from .. import schemas
from ..auth import Principal
from ..deps import get_principal, get_review_service
from ..reviews import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("", response_model=schemas.Envelope[schemas.ReviewPage])
async def list_reviews(
    book_id: int = Query(..., alias="bookId", gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: schemas.ReviewSort = Query("recent", alias="sortBy"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    service: ReviewService = Depends(get_review_service),
):
    query = schemas.ReviewQuery(page=page, limit=limit, sort_by=sort_by, rating=rating)
    return {"success": True, "data": service.get_reviews_for_book(book_id, query)}


@router.get("/stats/{book_id}", response_model=schemas.Envelope[schemas.RatingStats])
async def review_stats(book_id: int = Path(..., gt=0), service: ReviewService = Depends(get_review_service)):
    distribution = service.get_rating_distribution(book_id)
    return {"success": True, "data": {"rating_distribution": distribution}}


@router.get("/user/{book_id}", response_model=schemas.Envelope[schemas.ReviewRead])
async def my_review(
    book_id: int = Path(..., gt=0),
    service: ReviewService = Depends(get_review_service),
    principal: Principal = Depends(get_principal),
):
    return {"success": True, "data": service.get_user_review_for_book(principal, book_id)}


@router.post("", response_model=schemas.Envelope[schemas.ReviewRead], status_code=201)
async def create_review(
    payload: schemas.ReviewCreate,
    service: ReviewService = Depends(get_review_service),
    principal: Principal = Depends(get_principal),
):
    review = service.create_review(principal, payload.book_id, payload)
    return {"success": True, "data": review, "message": "Review submitted successfully"}


@router.put("/{review_id}", response_model=schemas.Envelope[schemas.ReviewRead])
async def update_review(
    payload: schemas.ReviewUpdate,
    review_id: int = Path(..., gt=0),
    service: ReviewService = Depends(get_review_service),
    principal: Principal = Depends(get_principal),
):
    review = service.update_review(review_id, principal, payload)
    return {"success": True, "data": review, "message": "Review updated successfully"}


@router.delete("/{review_id}", response_model=schemas.Message)
async def delete_review(
    review_id: int = Path(..., gt=0),
    service: ReviewService = Depends(get_review_service),
    principal: Principal = Depends(get_principal),
):
    service.delete_review(review_id, principal)
    return {"success": True, "message": "Review deleted successfully"}
