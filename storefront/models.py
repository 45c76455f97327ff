from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from storefront.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Product(Base):
    """Stock record. ``stock`` only moves through the inventory ledger."""

    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)            # minor currency units
    image = Column(String, nullable=False, default="")
    stock = Column(Integer, nullable=False, default=0)
    owner_id = Column(String, nullable=False, index=True)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_customer_created", "customer_id", "created_at"),)

    id = Column(String, primary_key=True)
    order_number = Column(String, unique=True, nullable=False)
    customer_id = Column(String, nullable=False)
    total_amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    payment_status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=False, default="online")  # online | cash_on_delivery
    order_notes = Column(String)
    tracking_number = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        lazy="selectin",
    )
    shipping_address = relationship(
        "ShippingAddress",
        back_populates="order",
        uselist=False,
        lazy="selectin",
    )


class OrderItem(Base):
    """Line item snapshot, frozen at order creation."""

    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    image = Column(String, nullable=False, default="")

    order = relationship("Order", back_populates="items")


class ShippingAddress(Base):
    __tablename__ = "shipping_addresses"

    order_id = Column(String, ForeignKey("orders.id"), primary_key=True)
    street = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    zip_code = Column(String, nullable=False)
    country = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    email_address = Column(String, nullable=False)

    order = relationship("Order", back_populates="shipping_address")


class PaymentIntent(Base):
    __tablename__ = "payment_intents"

    id = Column(String, primary_key=True)          # Stripe Checkout Session ID
    order_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")  # pending | paid | failed | refunded
    total_amount = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
