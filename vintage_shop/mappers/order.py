from dataclasses import asdict, dataclass
from datetime import datetime
from uuid import UUID

from vintage_shop.models.orm.order import Order, OrderItem


@dataclass(frozen=True)
class OrderSnapshotItem:
    id: UUID
    product_id: UUID
    product_name: str
    price_at_purchase: int


@dataclass(frozen=True)
class OrderSnapshot:
    """Committed order data, detached from the session that wrote it.

    Handed to the confirmation email task, which runs after the request's
    transaction has finished.
    """

    id: UUID
    user_id: UUID | None
    guest_email: str | None
    recipient_email: str | None
    status: str
    total_price: int
    shipping_surcharge: int
    shipping_first_name: str
    shipping_last_name: str
    shipping_address_line1: str
    shipping_address_line2: str | None
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str
    shipping_phone: str
    shipping_method: str | None
    payment_method: str
    order_date: datetime
    items: tuple[OrderSnapshotItem, ...]

    @property
    def subtotal(self) -> int:
        return self.total_price - self.shipping_surcharge


def order_item_to_dict(item: OrderItem, product_name: str | None) -> dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": product_name,
        "price_at_purchase": item.price_at_purchase,
    }


def order_to_dict(order: Order, items: list[dict]) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "guest_email": order.guest_email,
        "status": order.status,
        "total_price": order.total_price,
        "shipping_surcharge": order.shipping_surcharge,
        "shipping_first_name": order.shipping_first_name,
        "shipping_last_name": order.shipping_last_name,
        "shipping_address_line1": order.shipping_address_line1,
        "shipping_address_line2": order.shipping_address_line2,
        "shipping_city": order.shipping_city,
        "shipping_postal_code": order.shipping_postal_code,
        "shipping_country": order.shipping_country,
        "shipping_phone": order.shipping_phone,
        "shipping_method": order.shipping_method,
        "payment_method": order.payment_method,
        "order_date": order.order_date,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "items": items,
    }


def snapshot_to_dict(snapshot: OrderSnapshot) -> dict:
    data = asdict(snapshot)
    data.pop("recipient_email")
    data["items"] = list(data["items"])
    data["created_at"] = snapshot.order_date
    data["updated_at"] = snapshot.order_date
    return data
