from fastapi import APIRouter

from . import auth, books, orders, reviews, users

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(books.router)
api_router.include_router(reviews.router)
api_router.include_router(orders.router)
api_router.include_router(users.router)
