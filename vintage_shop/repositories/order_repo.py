from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.models.orm.order import Order, OrderItem
from vintage_shop.models.orm.product import Product


async def get_by_id(
    db: AsyncSession, order_id: UUID, *, for_update: bool = False
) -> Order | None:
    stmt = select(Order).where(Order.id == order_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_items_with_names(
    db: AsyncSession, order_ids: list[UUID]
) -> list[tuple[OrderItem, str | None]]:
    if not order_ids:
        return []
    result = await db.execute(
        select(OrderItem, Product.name)
        .outerjoin(Product, OrderItem.product_id == Product.id)
        .where(OrderItem.order_id.in_(order_ids))
        .order_by(OrderItem.order_id, Product.name)
    )
    return [(item, name) for item, name in result.all()]


async def list_for_user(db: AsyncSession, user_id: UUID) -> tuple[list[Order], int]:
    count_result = await db.execute(
        select(func.count()).select_from(Order).where(Order.user_id == user_id)
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
    )
    return list(result.scalars().all()), total


async def list_all(db: AsyncSession) -> tuple[list[Order], int]:
    count_result = await db.execute(select(func.count()).select_from(Order))
    total = count_result.scalar() or 0

    result = await db.execute(select(Order).order_by(Order.order_date.desc(), Order.id))
    return list(result.scalars().all()), total
