from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class CartItemAdd(BaseModel):
    product_id: UUID


class CartMergeRequest(BaseModel):
    guest_session_id: UUID | None = None


class CartProductResponse(BaseModel):
    id: UUID
    name: str
    description: str = ""
    price: int
    status: str
    condition: str | None = None
    category: str | None = None
    images: list[str] = []


class CartItemResponse(BaseModel):
    cart_item_id: UUID
    product: CartProductResponse
    added_at: datetime


class CartResponse(BaseModel):
    cart_id: UUID | None = None
    user_id: UUID | None = None
    guest_session_id: UUID | None = None
    items: list[CartItemResponse]
    total_items: int
    total_price: int
    updated_at: datetime | None = None
    removed_product_ids: list[UUID] = []


class CartMergeResponse(BaseModel):
    cart: CartResponse
    guest_cart_found: bool
    merged_count: int
    skipped_count: int


class GuestSessionResponse(BaseModel):
    guest_session_id: UUID
