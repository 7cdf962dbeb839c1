"""
API v1 package initialization.

Aggregates the versioned routers into one ``api_router`` mounted by the
application under ``settings.api_v1_prefix``.
"""

from fastapi import APIRouter

from bookstore.api.v1.auth import router as auth_router
from bookstore.api.v1.books import router as books_router
from bookstore.api.v1.orders import router as orders_router
from bookstore.api.v1.users import router as users_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(books_router)
api_router.include_router(orders_router)

__all__ = ["api_router"]
