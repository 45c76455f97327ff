from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.lifecycle import OrderStatus, PaymentMethod, PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OrderItemRequest(CamelModel):
    product: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class ShippingAddressIn(CamelModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email_address: str = Field(min_length=3)


class CreateOrderRequest(CamelModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address: ShippingAddressIn
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    order_notes: Optional[str] = Field(default=None, max_length=500)


class UpdateStatusRequest(CamelModel):
    # plain str so unknown values reach the lifecycle check and come back as InvalidStatus
    status: str
    tracking_number: Optional[str] = None


class OrderItemOut(CamelModel):
    product: str = Field(validation_alias="product_id")
    name: str
    price: int
    quantity: int
    image: str


class ShippingAddressOut(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    phone_number: str
    email_address: str


class OrderOut(CamelModel):
    id: str
    order_number: str
    customer: str = Field(validation_alias="customer_id")
    items: list[OrderItemOut]
    total_amount: int
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    shipping_address: Optional[ShippingAddressOut] = None
    order_notes: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next: bool
    has_prev: bool


class OrderEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: OrderOut
    checkout_url: Optional[str] = None


class OrderListEnvelope(CamelModel):
    success: bool = True
    data: list[OrderOut]
    pagination: Pagination
