"""Order aggregate: placement, cancellation, status administration and reads.

Placement reserves each line through the inventory ledger and, if any line
fails, releases what it already took before reporting the error. There is no
multi-row transaction spanning the lines, so a crash mid-placement can leave
stock over-reserved until an external sweep corrects it.
"""

import math
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront import inventory, payments, sequence, stripe_service
from storefront.errors import (
    DependencyFailure,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from storefront.lifecycle import (
    CANCELLABLE,
    ORDER_LIFECYCLE,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from storefront.models import Order, OrderItem, ShippingAddress

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class LineRequest:
    product_id: str
    quantity: int


@dataclass
class Page:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def pagination(self) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalOrders": self.total,
            "hasNext": self.page < self.total_pages,
            "hasPrev": self.page > 1,
        }


def _merge_lines(lines) -> list[LineRequest]:
    merged: dict[str, int] = {}
    for line in lines:
        if not line.product_id:
            raise ValidationError("Invalid item data")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise ValidationError("Invalid item data")
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return [LineRequest(product_id, quantity) for product_id, quantity in merged.items()]


def _release_all(db: Session, reserved, order_id=None) -> None:
    for snapshot, quantity in reserved:
        inventory.release(db, snapshot.product_id, quantity)
    if reserved:
        logger.info("reservation_rolled_back", order_id=order_id, lines=len(reserved))


def place_order(
    db: Session,
    customer_id: str,
    lines,
    shipping_address: dict,
    payment_method: str = PaymentMethod.ONLINE.value,
    order_notes: str | None = None,
) -> Order:
    """Reserve every line and persist one pending order, or reserve nothing."""
    if not lines:
        raise ValidationError("Please provide order items")
    if not shipping_address:
        raise ValidationError("Please provide shipping address")
    try:
        payment_method = PaymentMethod(payment_method).value
    except ValueError:
        raise ValidationError(f"Invalid payment method: {payment_method!r}") from None

    requests = _merge_lines(lines)

    reserved = []
    total_amount = 0
    try:
        for line in requests:
            snapshot = inventory.reserve(db, line.product_id, line.quantity)
            reserved.append((snapshot, line.quantity))
            total_amount += snapshot.price * line.quantity
    except Exception:
        db.rollback()
        _release_all(db, reserved)
        raise

    order_id = uuid.uuid4().hex
    try:
        number = sequence.next_value(db, sequence.ORDER_NUMBER)
        order = Order(
            id=order_id,
            order_number=sequence.format_order_number(number),
            customer_id=customer_id,
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            order_notes=order_notes,
        )
        order.items = [
            OrderItem(
                position=position,
                product_id=snapshot.product_id,
                name=snapshot.name,
                price=snapshot.price,
                quantity=quantity,
                image=snapshot.image,
            )
            for position, (snapshot, quantity) in enumerate(reserved)
        ]
        order.shipping_address = ShippingAddress(**shipping_address)
        db.add(order)
        db.commit()
    except SQLAlchemyError as exc:
        logger.error("order_persist_failed", order_id=order_id, exc_info=True)
        db.rollback()
        _release_all(db, reserved, order_id)
        raise DependencyFailure("Could not place order") from exc
    except Exception:
        db.rollback()
        _release_all(db, reserved, order_id)
        raise

    logger.info(
        "order_created",
        order_id=order.id,
        order_number=order.order_number,
        customer_id=customer_id,
        total_amount=total_amount,
    )
    return order


def open_checkout(db: Session, order: Order) -> str:
    """Start an online payment for ``order`` and return the checkout URL.

    A processor failure, or a failure to record the intent, cancels the order
    so its stock is not held by an order that can never be paid.
    """
    try:
        session = stripe_service.create_checkout_session(order)
    except Exception as exc:
        logger.error("checkout_session_failed", order_id=order.id, exc_info=True)
        _cancel(db, order)
        raise DependencyFailure("Payment processor unavailable") from exc

    try:
        payments.record_intent(db, session.id, order.id, order.total_amount)
        db.commit()
    except SQLAlchemyError as exc:
        # the checkout URL is never returned, so nobody can pay this order
        logger.error("payment_intent_persist_failed", order_id=order.id, session_id=session.id, exc_info=True)
        db.rollback()
        _cancel(db, order)
        raise DependencyFailure("Could not record payment") from exc

    logger.info("payment_intent_recorded", order_id=order.id, session_id=session.id)
    return session.url


def create_order(
    db: Session,
    customer_id: str,
    lines,
    shipping_address: dict,
    payment_method: str = PaymentMethod.ONLINE.value,
    order_notes: str | None = None,
):
    """Place an order and, for online payment, open its checkout session.

    Returns ``(order, checkout_url)``; the URL is None for cash on delivery.
    """
    order = place_order(db, customer_id, lines, shipping_address, payment_method, order_notes)
    checkout_url = None
    if order.payment_method == PaymentMethod.ONLINE.value:
        checkout_url = open_checkout(db, order)
    return order, checkout_url


def _cancel(db: Session, order: Order) -> bool:
    """Flip ``order`` to cancelled and release its stock, at most once."""
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status.in_([s.value for s in CANCELLABLE]))
        .values(status=OrderStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return False

    for item in order.items:
        inventory.release(db, item.product_id, item.quantity)
    db.refresh(order)
    logger.info("order_cancelled", order_id=order.id, lines=len(order.items))
    return True


def get_order(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def cancel_order(db: Session, order_id: str, customer_id: str) -> Order:
    order = get_order(db, order_id)
    if order.customer_id != customer_id:
        raise Forbidden("Access denied")
    if OrderStatus(order.status) not in CANCELLABLE:
        raise InvalidState("Can only cancel pending orders")
    if not _cancel(db, order):
        # lost the race to a concurrent cancel or status update
        raise InvalidState("Can only cancel pending orders")
    return order


def update_status(
    db: Session,
    order_id: str,
    new_status: str,
    tracking_number: str | None = None,
) -> Order:
    target = ORDER_LIFECYCLE.parse(new_status)
    order = get_order(db, order_id)
    if target is OrderStatus.CANCELLED:
        raise InvalidState("Orders are cancelled through the cancel operation")
    ORDER_LIFECYCLE.check_transition(order.status, target)

    previous = order.status
    values = {"status": target.value}
    if tracking_number:
        values["tracking_number"] = tracking_number
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == previous)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        raise InvalidState("Order status changed concurrently, retry the update")

    db.refresh(order)
    logger.info("order_status_updated", order_id=order.id, previous=previous, status=target.value)
    return order


def get_order_for(db: Session, order_id: str, user_id: str, is_admin: bool) -> Order:
    order = get_order(db, order_id)
    if not is_admin and order.customer_id != user_id:
        raise Forbidden("Access denied")
    return order


def _paginate(db: Session, query, page: int, limit: int) -> Page:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    limit = min(limit, MAX_PAGE_SIZE)
    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    rows = (
        db.execute(
            query.order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return Page(items=rows, page=page, limit=limit, total=total)


def list_customer_orders(db: Session, customer_id: str, page: int = 1, limit: int = 10) -> Page:
    return _paginate(db, select(Order).where(Order.customer_id == customer_id), page, limit)


def list_all_orders(db: Session, page: int = 1, limit: int = 10, status: str | None = None) -> Page:
    query = select(Order)
    if status:
        query = query.where(Order.status == ORDER_LIFECYCLE.parse(status).value)
    return _paginate(db, query, page, limit)
