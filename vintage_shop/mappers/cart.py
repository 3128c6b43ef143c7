from datetime import datetime

from vintage_shop.models.orm.cart import Cart, CartItem
from vintage_shop.models.orm.product import Product


def product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description or "",
        "price": product.price,
        "status": product.status,
        "condition": product.condition,
        "category": product.category,
        "images": list(product.images or []),
    }


def cart_item_to_dict(item: CartItem, product: Product) -> dict:
    return {
        "cart_item_id": item.id,
        "product": product_to_dict(product),
        "added_at": item.added_at,
    }


def cart_to_dict(
    cart: Cart,
    items: list[dict],
    updated_at: datetime | None,
    removed_product_ids: list | None = None,
) -> dict:
    return {
        "cart_id": cart.id,
        "user_id": cart.user_id,
        "guest_session_id": cart.guest_session_id,
        "items": items,
        "total_items": len(items),
        "total_price": sum(i["product"]["price"] for i in items),
        "updated_at": updated_at,
        "removed_product_ids": removed_product_ids or [],
    }


def empty_cart_view() -> dict:
    return {
        "cart_id": None,
        "user_id": None,
        "guest_session_id": None,
        "items": [],
        "total_items": 0,
        "total_price": 0,
        "updated_at": None,
        "removed_product_ids": [],
    }
