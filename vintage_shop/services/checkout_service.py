import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.core.exceptions import (
    ConflictError,
    EmptyCartError,
    NotFoundError,
    ProductUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from vintage_shop.core.identity import Anonymous, Authenticated, Guest, Identity
from vintage_shop.core.logging import mask_email
from vintage_shop.mappers.order import OrderSnapshot, OrderSnapshotItem
from vintage_shop.models.dto.order import CheckoutForm
from vintage_shop.models.orm.order import Order, OrderItem
from vintage_shop.repositories import cart_repo, product_repo, user_repo

logger = logging.getLogger(__name__)


def _check_owner(identity: Identity, form: CheckoutForm) -> None:
    if isinstance(identity, Anonymous):
        raise UnauthorizedError("Log in or start a guest session to place an order")
    if isinstance(identity, Guest) and not form.guest_email:
        raise ValidationError("An email address is required for guest checkout")


async def place_order(
    db: AsyncSession,
    identity: Identity,
    form: CheckoutForm,
    *,
    shipping_surcharge: int,
    shipping_method: str | None = None,
) -> OrderSnapshot:
    """Turn the identity's cart into a pending order in one transaction.

    Cart, items and products are locked FOR UPDATE; the whole cart is bought
    or nothing is written. The transaction is committed here, and the returned
    snapshot is safe to hand to work that runs after the request.
    """
    _check_owner(identity, form)
    try:
        snapshot = await _create_order(
            db, identity, form,
            shipping_surcharge=shipping_surcharge,
            shipping_method=shipping_method,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s placed: %d item(s), total %d",
        snapshot.id, len(snapshot.items), snapshot.total_price,
    )
    return snapshot


async def _create_order(
    db: AsyncSession,
    identity: Authenticated | Guest,
    form: CheckoutForm,
    *,
    shipping_surcharge: int,
    shipping_method: str | None,
) -> OrderSnapshot:
    cart = await cart_repo.find_cart(db, identity, for_update=True)
    if cart is None:
        raise EmptyCartError()
    cart_items = await cart_repo.list_items(db, cart.id, for_update=True)
    if not cart_items:
        raise EmptyCartError()

    product_ids = sorted({item.product_id for item in cart_items})
    products = await product_repo.lock_products(db, product_ids)

    for product_id in product_ids:
        product = products.get(product_id)
        if product is None:
            raise NotFoundError(
                f"Product {product_id} in your cart no longer exists. "
                "Remove it from your cart and try again."
            )
        if not product.is_available:
            logger.info("Checkout rejected: product %s is %s", product.id, product.status)
            raise ProductUnavailableError(product.id, product.name, product.status)

    subtotal = sum(products[pid].price for pid in product_ids)
    total_price = subtotal + shipping_surcharge

    if isinstance(identity, Authenticated):
        user = await user_repo.get_by_id(db, identity.user_id)
        recipient = user.email if user else None
        user_id, guest_email, guest_session_id = identity.user_id, None, None
    else:
        recipient = str(form.guest_email)
        user_id, guest_email, guest_session_id = None, recipient, identity.session_id

    now = datetime.now(timezone.utc)
    order = Order(
        id=uuid.uuid4(),
        user_id=user_id,
        guest_email=guest_email,
        guest_session_id=guest_session_id,
        status="pending",
        total_price=total_price,
        shipping_surcharge=shipping_surcharge,
        shipping_first_name=form.shipping_first_name,
        shipping_last_name=form.shipping_last_name,
        shipping_address_line1=form.shipping_address_line1,
        shipping_address_line2=form.shipping_address_line2,
        shipping_city=form.shipping_city,
        shipping_postal_code=form.shipping_postal_code,
        shipping_country=form.shipping_country,
        shipping_phone=form.shipping_phone,
        shipping_method=shipping_method,
        payment_method=form.payment_method,
        order_date=now,
        created_at=now,
        updated_at=now,
    )
    db.add(order)

    snapshot_items = []
    for product_id in product_ids:
        product = products[product_id]
        order_item = OrderItem(
            id=uuid.uuid4(),
            order_id=order.id,
            product_id=product.id,
            price_at_purchase=product.price,
        )
        db.add(order_item)
        snapshot_items.append(
            OrderSnapshotItem(
                id=order_item.id,
                product_id=product.id,
                product_name=product.name,
                price_at_purchase=product.price,
            )
        )
    await db.flush()

    await cart_repo.clear_items(db, cart.id)
    if cart.is_guest_cart:
        await cart_repo.delete_cart(db, cart.id)

    sold = await product_repo.mark_products_sold(db, product_ids)
    if sold != len(product_ids):
        logger.error(
            "Order %s: expected to mark %d product(s) sold, updated %d",
            order.id, len(product_ids), sold,
        )
        raise ConflictError("Your cart changed during checkout. Please try again.")

    if recipient is None:
        logger.warning("Order %s has no recipient email", order.id)
    else:
        logger.debug("Order %s confirmation goes to %s", order.id, mask_email(recipient))

    return OrderSnapshot(
        id=order.id,
        user_id=user_id,
        guest_email=guest_email,
        recipient_email=recipient,
        status=order.status,
        total_price=total_price,
        shipping_surcharge=shipping_surcharge,
        shipping_first_name=order.shipping_first_name,
        shipping_last_name=order.shipping_last_name,
        shipping_address_line1=order.shipping_address_line1,
        shipping_address_line2=order.shipping_address_line2,
        shipping_city=order.shipping_city,
        shipping_postal_code=order.shipping_postal_code,
        shipping_country=order.shipping_country,
        shipping_phone=order.shipping_phone,
        shipping_method=shipping_method,
        payment_method=order.payment_method,
        order_date=now,
        items=tuple(snapshot_items),
    )
