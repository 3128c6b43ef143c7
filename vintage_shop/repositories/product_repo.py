from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.models.orm.product import Product


async def get_product(
    db: AsyncSession, product_id: UUID, *, for_update: bool = False
) -> Product | None:
    stmt = select(Product).where(Product.id == product_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def lock_products(db: AsyncSession, product_ids: list[UUID]) -> dict[UUID, Product]:
    """Lock products FOR UPDATE in ascending id order and return them by id.

    Every checkout takes its product locks in the same order, so two checkouts
    racing over a shared product queue up instead of deadlocking.
    """
    if not product_ids:
        return {}
    result = await db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {p.id: p for p in result.scalars().all()}


async def set_status(
    db: AsyncSession,
    product_ids: list[UUID],
    status: str,
    *,
    only_if: str | None = None,
) -> int:
    if not product_ids:
        return 0
    stmt = update(Product).where(Product.id.in_(product_ids)).values(status=status)
    if only_if is not None:
        stmt = stmt.where(Product.status == only_if)
    result = await db.execute(stmt)
    return result.rowcount


async def mark_products_sold(db: AsyncSession, product_ids: list[UUID]) -> int:
    return await set_status(db, product_ids, "sold")
