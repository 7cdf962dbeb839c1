"""
Order management API endpoints.

Customers place, read and cancel their own orders; admins can read every
order and set order status.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from bookstore.api.deps import CurrentAdmin, CurrentAuth, DatabaseSession
from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger
from bookstore.schemas.common import Page, PaginationMeta
from bookstore.schemas.orders import OrderCreate, OrderResponse, OrderStatusUpdate
from bookstore.services.books.service import build_pagination
from bookstore.services.orders.service import OrderService

logger = get_logger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "",
    response_model=Page[OrderResponse],
    summary="List orders",
    description="Admins see every order; customers see their own.",
)
async def list_orders(
    auth: CurrentAuth,
    db: DatabaseSession,
    page: Annotated[int, Query(ge=1)] = 1,
    size: Annotated[Optional[int], Query(ge=1, le=get_settings().max_page_size)] = None,
) -> Page[OrderResponse]:
    size = size or get_settings().default_page_size
    orders, total = await OrderService(db).list_orders(
        user_id=None if auth.is_privileged else auth.user_id,
        page=page,
        size=size,
    )
    return Page[OrderResponse](
        data=[OrderResponse.model_validate(order) for order in orders],
        pagination=PaginationMeta(**build_pagination(page, size, total)),
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place order",
    description="Decrements stock for every item atomically. Fails with 400 "
    "naming the book when any item exceeds stock.",
)
async def create_order(
    order_data: OrderCreate,
    auth: CurrentAuth,
    db: DatabaseSession,
) -> OrderResponse:
    order = await OrderService(db).place_order(
        auth.user_id,
        [item.model_dump() for item in order_data.items],
    )
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    auth: CurrentAuth,
    db: DatabaseSession,
) -> OrderResponse:
    order = await OrderService(db).get_order(
        order_id,
        requesting_user_id=auth.user_id,
        is_privileged=auth.is_privileged,
    )
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Admin only. Does not change stock, even for CANCELLED.",
)
async def update_order_status(
    order_id: UUID,
    status_data: OrderStatusUpdate,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> OrderResponse:
    logger.info(
        "Order status update requested",
        order_id=str(order_id),
        admin_id=str(admin.id),
        status=status_data.status,
    )
    order = await OrderService(db).update_order_status(order_id, status_data.status)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Owner only. Cancels a PENDING order and restores its stock.",
)
async def cancel_order(
    order_id: UUID,
    auth: CurrentAuth,
    db: DatabaseSession,
) -> OrderResponse:
    order = await OrderService(db).cancel_order(order_id, auth.user_id)
    return OrderResponse.model_validate(order)
