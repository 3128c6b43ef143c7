import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.core.exceptions import InvalidStatusTransitionError, NotFoundError
from vintage_shop.core.identity import Authenticated, Guest, Identity
from vintage_shop.mappers.order import order_item_to_dict, order_to_dict
from vintage_shop.models.orm.order import Order
from vintage_shop.repositories import order_repo, product_repo

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


async def _orders_with_items(db: AsyncSession, orders: list[Order]) -> list[dict]:
    rows = await order_repo.get_items_with_names(db, [o.id for o in orders])
    items_by_order: dict[UUID, list[dict]] = {o.id: [] for o in orders}
    for item, product_name in rows:
        items_by_order[item.order_id].append(order_item_to_dict(item, product_name))
    return [order_to_dict(o, items_by_order[o.id]) for o in orders]


def can_view_order(order: dict, identity: Identity) -> bool:
    if isinstance(identity, Authenticated):
        return identity.is_admin or order["user_id"] == identity.user_id
    if isinstance(identity, Guest):
        return (
            order["user_id"] is None
            and order.get("guest_session_id") == identity.session_id
        )
    return False


async def list_orders(db: AsyncSession, user_id: UUID) -> dict:
    orders, total = await order_repo.list_for_user(db, user_id)
    return {"items": await _orders_with_items(db, orders), "total": total}


async def list_all_orders(db: AsyncSession) -> dict:
    orders, total = await order_repo.list_all(db)
    return {"items": await _orders_with_items(db, orders), "total": total}


async def get_order(db: AsyncSession, order_id: UUID, identity: Identity) -> dict:
    order = await order_repo.get_by_id(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    data = (await _orders_with_items(db, [order]))[0]
    data["guest_session_id"] = order.guest_session_id
    if not can_view_order(data, identity):
        # Same answer as a missing order so ids cannot be probed.
        raise NotFoundError("Order not found")
    return data


async def transition_order(
    db: AsyncSession, order_id: UUID, new_status: str, admin_id: UUID
) -> dict:
    """Move an order along VALID_TRANSITIONS under a row lock.

    Cancelling deliberately returns the order's products from ``sold`` to
    ``available`` so they can be bought again, instead of leaving them sold
    for good. No other transition touches product status.
    """
    order = await order_repo.get_by_id(db, order_id, for_update=True)
    if order is None:
        raise NotFoundError("Order not found")

    allowed = VALID_TRANSITIONS.get(order.status, set())
    if new_status not in allowed:
        raise InvalidStatusTransitionError(order.status, new_status, allowed)

    old_status = order.status
    order.status = new_status
    await db.flush()
    await db.refresh(order)

    items = await _orders_with_items(db, [order])
    if new_status == "cancelled":
        product_ids = [item["product_id"] for item in items[0]["items"]]
        restored = await product_repo.set_status(
            db, product_ids, "available", only_if="sold"
        )
        logger.info("Order %s cancelled, %d product(s) back on sale", order.id, restored)

    logger.info(
        "Order %s status changed %s -> %s by admin %s",
        order.id, old_status, new_status, admin_id,
    )
    return items[0]
