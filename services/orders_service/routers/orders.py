"""Customer-facing order endpoints."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_customer
from libs.auth.models import AuthUser
from libs.common.errors import not_found
from libs.db.session import get_async_db
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import Order
from services.orders_service.repositories import OrderRepository
from services.orders_service.schemas import (
    CancelOrderRequest,
    OrderHistoryResponse,
    OrderResponse,
    OrderSummary,
    ParentOrderResponse,
)
from services.orders_service.services.status_machine import cancel_order
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["orders"])


def _owned(order: Order, current_user: AuthUser) -> Order:
    # Someone else's order is reported as missing
    if order is None or order.customer_id != current_user.customer_id:
        raise not_found("Order not found", code="ORDER_NOT_FOUND")
    return order


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    current_user: AuthUser = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    async with UnitOfWork(db) as uow:
        order = _owned(
            await OrderRepository(uow).get_with_details(order_id), current_user
        )
        return OrderResponse.model_validate(order)


@router.get("/orders/{order_id}/history", response_model=list[OrderHistoryResponse])
async def get_order_history(
    order_id: int,
    current_user: AuthUser = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Status history, oldest first."""
    async with UnitOfWork(db) as uow:
        orders = OrderRepository(uow)
        _owned(await orders.get(order_id), current_user)
        history = await orders.history(order_id)
        return [OrderHistoryResponse.model_validate(entry) for entry in history]


@router.post("/orders/{order_id}/cancel", response_model=OrderSummary)
async def cancel_customer_order(
    order_id: int,
    payload: CancelOrderRequest,
    current_user: AuthUser = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Cancel a pending or processing order.

    Shipped and delivered orders are rejected with 400.
    """
    async with UnitOfWork(db) as uow:
        order = await cancel_order(
            uow,
            order_id,
            comment=payload.reason,
            customer_id=current_user.customer_id,
        )
    return OrderSummary.model_validate(order)


@router.get("/parent-orders/{parent_order_id}", response_model=ParentOrderResponse)
async def get_parent_order(
    parent_order_id: str,
    current_user: AuthUser = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_db),
):
    async with UnitOfWork(db) as uow:
        orders = OrderRepository(uow)
        parent = await orders.get_parent(parent_order_id)
        if parent is None or parent.customer_id != current_user.customer_id:
            raise not_found("Order not found", code="ORDER_NOT_FOUND")
        children = await orders.list_by_parent(parent_order_id)

    return ParentOrderResponse(
        parent_order_id=parent.parent_order_id,
        customer_id=parent.customer_id,
        order_ids=list(parent.order_ids or []),
        courier_charges=parent.courier_charges,
        total=parent.total,
        date_added=parent.date_added,
        orders=[OrderSummary.model_validate(order) for order in children],
    )
