import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.core.exceptions import (
    NotFoundError,
    ProductUnavailableError,
    UnauthorizedError,
)
from vintage_shop.core.identity import Anonymous, Identity
from vintage_shop.mappers.cart import cart_item_to_dict, cart_to_dict, empty_cart_view
from vintage_shop.models.orm.cart import Cart, CartItem
from vintage_shop.repositories import cart_repo, product_repo

logger = logging.getLogger(__name__)


async def _persist_view_changes(
    db: AsyncSession, cart: Cart, stale: list[CartItem], fallback: datetime | None
) -> datetime | None:
    """Drop stale items and touch the cart inside a savepoint.

    The view is still returned when this fails; it then reports the cart's
    previous ``updated_at``.
    """
    try:
        async with db.begin_nested():
            if stale:
                await cart_repo.delete_items(db, [item.id for item in stale])
            return await cart_repo.touch(db, cart.id)
    except SQLAlchemyError:
        logger.exception("Failed to persist cart view changes for cart %s", cart.id)
        return fallback


async def build_cart_view(db: AsyncSession, cart: Cart) -> dict:
    previous_updated_at = cart.updated_at
    rows = await cart_repo.list_items_with_products(db, cart.id)

    items: list[dict] = []
    stale: list[CartItem] = []
    for item, product in rows:
        if not product.is_available:
            logger.warning(
                "Removing product %s (%s) from cart %s: status is %s",
                product.id, product.name, cart.id, product.status,
            )
            stale.append(item)
            continue
        items.append(cart_item_to_dict(item, product))

    updated_at = await _persist_view_changes(db, cart, stale, previous_updated_at)
    return cart_to_dict(
        cart,
        items,
        updated_at,
        removed_product_ids=[item.product_id for item in stale],
    )


async def get_cart(db: AsyncSession, identity: Identity) -> dict:
    if isinstance(identity, Anonymous):
        return empty_cart_view()
    cart = await cart_repo.find_cart(db, identity)
    if cart is None:
        return empty_cart_view()
    return await build_cart_view(db, cart)


async def add_to_cart(db: AsyncSession, identity: Identity, product_id: UUID) -> dict:
    if isinstance(identity, Anonymous):
        raise UnauthorizedError("Log in or start a guest session to use the cart")

    cart = await cart_repo.find_or_create_cart(db, identity)

    product = await product_repo.get_product(db, product_id, for_update=True)
    if product is None:
        raise NotFoundError("Product not found")
    if not product.is_available:
        raise ProductUnavailableError(product.id, product.name, product.status)

    inserted = await cart_repo.add_item(db, cart.id, product.id)
    if inserted:
        logger.info("Product %s added to cart %s", product.id, cart.id)
    else:
        logger.debug("Product %s already in cart %s", product.id, cart.id)
    return await build_cart_view(db, cart)


async def remove_from_cart(db: AsyncSession, identity: Identity, product_id: UUID) -> dict:
    if isinstance(identity, Anonymous):
        raise UnauthorizedError("Log in or start a guest session to use the cart")

    cart = await cart_repo.find_cart(db, identity, for_update=True)
    if cart is None:
        raise NotFoundError("Cart not found")

    if await cart_repo.remove_item(db, cart.id, product_id):
        logger.info("Product %s removed from cart %s", product_id, cart.id)
    return await build_cart_view(db, cart)
