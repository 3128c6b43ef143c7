import logging

from vintage_shop.core.config import Settings
from vintage_shop.mappers.order import OrderSnapshot
from vintage_shop.notifications.email import send_email

logger = logging.getLogger(__name__)

PAYMENT_INSTRUCTIONS = {
    "blik": "Pay with a BLIK code. We will send you the code request by text message.",
    "transfer": "Pay by bank transfer using the order number as the transfer title.",
}


async def notify_order_placed(snapshot: OrderSnapshot, settings: Settings) -> bool:
    """Send the order confirmation. Never raises; returns whether it was sent."""
    if not snapshot.recipient_email:
        logger.warning("Order %s has no recipient, confirmation not sent", snapshot.id)
        return False

    context = {
        "order": snapshot,
        "items": snapshot.items,
        "subtotal": snapshot.subtotal,
        "payment_instructions": PAYMENT_INSTRUCTIONS.get(snapshot.payment_method, ""),
        "order_url": f"{settings.frontend_url.rstrip('/')}/orders/{snapshot.id}",
    }
    sent = await send_email(
        snapshot.recipient_email,
        f"Order confirmation {str(snapshot.id)[:8]} - {settings.shop_name}",
        "order_confirmation.html",
        context,
        settings=settings,
    )
    if not sent:
        logger.warning("Confirmation for order %s was not sent", snapshot.id)
    return sent
