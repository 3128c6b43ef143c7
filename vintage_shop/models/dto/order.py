from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class CheckoutForm(BaseModel):
    shipping_first_name: str = Field(min_length=1, max_length=100)
    shipping_last_name: str = Field(min_length=1, max_length=100)
    shipping_address_line1: str = Field(min_length=1, max_length=255)
    shipping_address_line2: str | None = Field(default=None, max_length=255)
    shipping_city: str = Field(min_length=1, max_length=100)
    shipping_postal_code: str = Field(min_length=1, max_length=20)
    shipping_country: str = Field(min_length=1, max_length=100)
    shipping_phone: str = Field(min_length=1, max_length=30)
    payment_method: Literal["blik", "transfer"]
    guest_email: EmailStr | None = None

    @field_validator(
        "shipping_first_name",
        "shipping_last_name",
        "shipping_address_line1",
        "shipping_city",
        "shipping_postal_code",
        "shipping_country",
        "shipping_phone",
    )
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("shipping_address_line2")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class OrderItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    product_name: str | None = None
    price_at_purchase: int


class OrderResponse(BaseModel):
    id: UUID
    user_id: UUID | None = None
    guest_email: str | None = None
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled"]
    total_price: int
    shipping_surcharge: int
    shipping_first_name: str
    shipping_last_name: str
    shipping_address_line1: str
    shipping_address_line2: str | None = None
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str
    shipping_phone: str
    shipping_method: str | None = None
    payment_method: Literal["blik", "transfer"]
    order_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItemResponse] = []

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
