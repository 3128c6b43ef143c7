from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.dependencies.identity import (
    get_identity,
    mirror_guest_session,
    require_cart_owner,
    require_user,
)
from vintage_shop.api.dependencies.settings import get_app_settings
from vintage_shop.core.config import Settings
from vintage_shop.core.identity import Authenticated, Guest, Identity
from vintage_shop.core.tasks import create_background_task
from vintage_shop.mappers.order import snapshot_to_dict
from vintage_shop.models.dto import DetailResponse
from vintage_shop.models.dto.order import CheckoutForm, OrderListResponse, OrderResponse
from vintage_shop.notifications.service import notify_order_placed
from vintage_shop.services import checkout_service, order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=201,
    responses={409: {"model": DetailResponse}, 422: {"model": DetailResponse}},
)
async def place_order(
    body: CheckoutForm,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: Authenticated | Guest = Depends(require_cart_owner),
    settings: Settings = Depends(get_app_settings),
):
    snapshot = await checkout_service.place_order(
        db, identity, body,
        shipping_surcharge=settings.shipping_surcharge,
        shipping_method=settings.shipping_method_name,
    )
    create_background_task(
        notify_order_placed(snapshot, settings), name=f"order-confirmation-{snapshot.id}"
    )
    mirror_guest_session(response, identity, settings)
    return snapshot_to_dict(snapshot)


@router.get("", response_model=OrderListResponse)
async def list_my_orders(
    db: AsyncSession = Depends(get_db),
    user: Authenticated = Depends(require_user),
):
    return await order_service.list_orders(db, user.user_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    return await order_service.get_order(db, order_id, identity)
