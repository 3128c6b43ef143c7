import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.core.identity import Anonymous, Authenticated, Guest, Identity
from vintage_shop.models.orm.cart import Cart, CartItem
from vintage_shop.models.orm.product import Product


def _owner_filter(identity: Identity):
    if isinstance(identity, Authenticated):
        return Cart.user_id == identity.user_id
    if isinstance(identity, Guest):
        return Cart.guest_session_id == identity.session_id
    return None


def _owner_values(identity: Identity) -> dict:
    if isinstance(identity, Authenticated):
        return {"user_id": identity.user_id, "guest_session_id": None}
    if isinstance(identity, Guest):
        return {"user_id": None, "guest_session_id": identity.session_id}
    raise ValueError("A cart needs a user or a guest session as owner")


async def find_cart(
    db: AsyncSession, identity: Identity, *, for_update: bool = False
) -> Cart | None:
    owner = _owner_filter(identity)
    if owner is None:
        return None
    stmt = select(Cart).where(owner)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_or_create_cart(db: AsyncSession, identity: Identity) -> Cart:
    """Return the identity's cart locked FOR UPDATE, creating it on first use.

    The insert is ON CONFLICT DO NOTHING against the owner's unique column, so
    two concurrent first-adds for the same owner end up sharing one row.
    """
    if isinstance(identity, Anonymous):
        raise ValueError("A cart needs a user or a guest session as owner")

    cart = await find_cart(db, identity, for_update=True)
    if cart is not None:
        return cart

    await db.execute(
        pg_insert(Cart)
        .values(id=uuid.uuid4(), **_owner_values(identity))
        .on_conflict_do_nothing()
    )
    cart = await find_cart(db, identity, for_update=True)
    if cart is None:
        raise RuntimeError("Cart vanished right after being created")
    return cart


async def add_item(
    db: AsyncSession,
    cart_id: UUID,
    product_id: UUID,
    added_at: datetime | None = None,
) -> bool:
    """Insert a cart item. Returns False when the product was already in the cart."""
    values = {"id": uuid.uuid4(), "cart_id": cart_id, "product_id": product_id}
    if added_at is not None:
        values["added_at"] = added_at
    result = await db.execute(
        pg_insert(CartItem)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["cart_id", "product_id"])
    )
    return result.rowcount > 0


async def remove_item(db: AsyncSession, cart_id: UUID, product_id: UUID) -> bool:
    result = await db.execute(
        delete(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id,
        )
    )
    return result.rowcount > 0


async def delete_items(db: AsyncSession, item_ids: list[UUID]) -> int:
    if not item_ids:
        return 0
    result = await db.execute(delete(CartItem).where(CartItem.id.in_(item_ids)))
    return result.rowcount


async def clear_items(db: AsyncSession, cart_id: UUID) -> int:
    result = await db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
    return result.rowcount


async def touch(db: AsyncSession, cart_id: UUID) -> datetime:
    result = await db.execute(
        update(Cart)
        .where(Cart.id == cart_id)
        .values(updated_at=func.now())
        .returning(Cart.updated_at)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one()


async def list_items(
    db: AsyncSession, cart_id: UUID, *, for_update: bool = False
) -> list[CartItem]:
    stmt = (
        select(CartItem)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.added_at, CartItem.id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_items_with_products(
    db: AsyncSession, cart_id: UUID
) -> list[tuple[CartItem, Product]]:
    result = await db.execute(
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.added_at, CartItem.id)
    )
    return [(item, product) for item, product in result.all()]


async def delete_cart(db: AsyncSession, cart_id: UUID) -> None:
    await db.execute(
        delete(Cart).where(Cart.id == cart_id).execution_options(synchronize_session=False)
    )


async def detach_guest_session(db: AsyncSession, cart_id: UUID) -> None:
    await db.execute(
        update(Cart)
        .where(Cart.id == cart_id)
        .values(guest_session_id=None)
        .execution_options(synchronize_session=False)
    )
