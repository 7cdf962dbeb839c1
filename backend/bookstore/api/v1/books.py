"""
Book catalog API endpoints.

Reads are public; catalog changes require an admin.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from bookstore.api.deps import CurrentAdmin, DatabaseSession
from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger
from bookstore.schemas.books import BookCreate, BookResponse, BookUpdate
from bookstore.schemas.common import Page, PaginationMeta
from bookstore.services.books.service import BookService

logger = get_logger(__name__)
router = APIRouter(prefix="/books", tags=["books"])


@router.get(
    "",
    response_model=Page[BookResponse],
    summary="List books",
    description="Paginated catalog with optional search, genre filter and sort. "
    "Prefix the sort field with '-' for descending order.",
)
async def list_books(
    db: DatabaseSession,
    page: Annotated[int, Query(ge=1)] = 1,
    size: Annotated[Optional[int], Query(ge=1, le=get_settings().max_page_size)] = None,
    sort: Annotated[Optional[str], Query(examples=["-createdAt"])] = None,
    q: Annotated[Optional[str], Query(max_length=200)] = None,
    genre: Annotated[Optional[str], Query(max_length=100)] = None,
) -> Page[BookResponse]:
    books, pagination = await BookService(db).list_books(
        page=page,
        size=size,
        sort=sort,
        query=q,
        genre=genre,
    )
    return Page[BookResponse](
        data=[BookResponse.model_validate(book) for book in books],
        pagination=PaginationMeta(**pagination),
    )


@router.get(
    "/genres",
    response_model=list[str],
    summary="List distinct genres",
)
async def list_genres(db: DatabaseSession) -> list[str]:
    return await BookService(db).get_genres()


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    summary="Get book",
)
async def get_book(book_id: UUID, db: DatabaseSession) -> BookResponse:
    book = await BookService(db).get_book(book_id)
    return BookResponse.model_validate(book)


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create book",
)
async def create_book(
    book_data: BookCreate,
    db: DatabaseSession,
    admin: CurrentAdmin,
) -> BookResponse:
    logger.info("Book creation requested", admin_id=str(admin.id), isbn=book_data.isbn)
    book = await BookService(db).create_book(book_data.model_dump())
    return BookResponse.model_validate(book)


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    summary="Update book",
    description="Partial update. A stockQuantity value overwrites the stock on hand.",
)
async def update_book(
    book_id: UUID,
    book_data: BookUpdate,
    db: DatabaseSession,
    admin: CurrentAdmin,
) -> BookResponse:
    book = await BookService(db).update_book(
        book_id,
        book_data.model_dump(exclude_unset=True),
    )
    return BookResponse.model_validate(book)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete book",
)
async def delete_book(
    book_id: UUID,
    db: DatabaseSession,
    admin: CurrentAdmin,
) -> Response:
    await BookService(db).delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
