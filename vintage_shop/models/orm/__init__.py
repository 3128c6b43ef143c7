from vintage_shop.models.orm.base import Base
from vintage_shop.models.orm.cart import Cart, CartItem
from vintage_shop.models.orm.order import Order, OrderItem
from vintage_shop.models.orm.product import Product
from vintage_shop.models.orm.user import User

__all__ = ["Base", "Cart", "CartItem", "Order", "OrderItem", "Product", "User"]
