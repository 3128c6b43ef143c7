import uuid
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.dependencies.identity import (
    get_identity,
    get_known_identity,
    mirror_guest_session,
    require_cart_owner,
    require_user,
)
from vintage_shop.api.dependencies.settings import get_app_settings
from vintage_shop.core.config import Settings
from vintage_shop.core.exceptions import ValidationError
from vintage_shop.core.identity import Anonymous, Authenticated, Guest, Identity, parse_guest_session
from vintage_shop.models.dto import DetailResponse
from vintage_shop.models.dto.cart import CartItemAdd, CartMergeRequest, CartMergeResponse, CartResponse
from vintage_shop.services import cart_merge_service, cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_identity),
    settings: Settings = Depends(get_app_settings),
):
    mirror_guest_session(response, identity, settings)
    return await cart_service.get_cart(db, identity)


@router.post(
    "/items",
    response_model=CartResponse,
    responses={404: {"model": DetailResponse}, 409: {"model": DetailResponse}},
)
async def add_to_cart(
    body: CartItemAdd,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_known_identity),
    settings: Settings = Depends(get_app_settings),
):
    if isinstance(identity, Anonymous):
        # First add by a new visitor starts a guest session.
        identity = Guest(session_id=uuid.uuid4())
    mirror_guest_session(response, identity, settings)
    return await cart_service.add_to_cart(db, identity, body.product_id)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db),
    identity: Authenticated | Guest = Depends(require_cart_owner),
    settings: Settings = Depends(get_app_settings),
):
    mirror_guest_session(response, identity, settings)
    return await cart_service.remove_from_cart(db, identity, product_id)


@router.post("/merge", response_model=CartMergeResponse)
async def merge_guest_cart(
    request: Request,
    body: CartMergeRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: Authenticated = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
):
    guest_session_id = body.guest_session_id if body else None
    if guest_session_id is None:
        guest_session_id = parse_guest_session(request.headers.get(settings.guest_session_header))
    if guest_session_id is None:
        raise ValidationError("A guest session id is required to merge a guest cart")
    return await cart_merge_service.merge_guest_cart(db, user, guest_session_id)
