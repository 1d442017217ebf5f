"""Admin order status management."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.errors import bad_request
from libs.db.session import get_async_db
from libs.db.unit_of_work import UnitOfWork
from services.orders_service.models import OrderStatus
from services.orders_service.schemas import OrderSummary, StatusUpdateRequest
from services.orders_service.services.status_machine import StatusStateMachine
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.post("/{order_id}/status", response_model=OrderSummary)
async def update_order_status(
    order_id: int,
    payload: StatusUpdateRequest,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Move an order along its lifecycle. Illegal transitions return 400.
    """
    try:
        target = OrderStatus(payload.order_status_id)
    except ValueError as exc:
        raise bad_request(
            f"Unknown order status {payload.order_status_id}",
            "INVALID_ORDER_STATUS",
            field="order_status_id",
        ) from exc

    async with UnitOfWork(db) as uow:
        order = await StatusStateMachine(uow).transition(
            order_id,
            target,
            payload.comment,
            notify=payload.notify,
            lock=True,
        )
    return OrderSummary.model_validate(order)
