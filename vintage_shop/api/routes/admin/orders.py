from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.dependencies.identity import require_admin
from vintage_shop.core.identity import Authenticated
from vintage_shop.models.dto.order import OrderListResponse, OrderResponse, OrderStatusUpdate
from vintage_shop.services import order_service

router = APIRouter(prefix="/orders", tags=["admin-orders"])


@router.get("", response_model=OrderListResponse)
async def list_all_orders(
    db: AsyncSession = Depends(get_db),
    admin: Authenticated = Depends(require_admin),
):
    return await order_service.list_all_orders(db)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Authenticated = Depends(require_admin),
):
    return await order_service.transition_order(db, order_id, body.status, admin.user_id)
