"""Folding a guest cart into a user's cart when the guest logs in."""
import logging
from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.core.identity import Authenticated, Guest
from vintage_shop.repositories import cart_repo
from vintage_shop.services.cart_service import build_cart_view

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    guest_cart_found: bool = False
    merged_count: int = 0
    skipped_count: int = 0


async def merge_guest_cart(
    db: AsyncSession, user: Authenticated, guest_session_id: UUID
) -> dict:
    """Move every guest cart item the user does not already have into the user cart.

    Items keep their original ``added_at``. Inserts use ON CONFLICT DO NOTHING
    and the guest cart is deleted afterwards, so running the merge twice for
    the same session leaves the user cart unchanged the second time.
    """
    result = MergeResult()
    user_cart = await cart_repo.find_or_create_cart(db, user)
    guest_cart = await cart_repo.find_cart(db, Guest(guest_session_id), for_update=True)

    if guest_cart is None:
        logger.info("No guest cart to merge for user %s", user.user_id)
    elif guest_cart.id == user_cart.id:
        result.guest_cart_found = True
        await cart_repo.detach_guest_session(db, user_cart.id)
        logger.info("Guest session detached from cart %s", user_cart.id)
    else:
        result.guest_cart_found = True
        guest_items = await cart_repo.list_items(db, guest_cart.id, for_update=True)
        user_items = await cart_repo.list_items(db, user_cart.id, for_update=True)
        present = {item.product_id for item in user_items}

        for item in guest_items:
            if item.product_id in present:
                result.skipped_count += 1
                continue
            if await cart_repo.add_item(db, user_cart.id, item.product_id, added_at=item.added_at):
                result.merged_count += 1
            else:
                result.skipped_count += 1
            present.add(item.product_id)

        await cart_repo.clear_items(db, guest_cart.id)
        await cart_repo.delete_cart(db, guest_cart.id)
        logger.info(
            "Merged guest cart %s into cart %s: %d moved, %d already present",
            guest_cart.id, user_cart.id, result.merged_count, result.skipped_count,
        )

    await cart_repo.touch(db, user_cart.id)
    view = await build_cart_view(db, user_cart)
    return {"cart": view, **asdict(result)}
