"""Webhook reconciler for Stripe Checkout events.

Delivery is at-least-once and unordered. Every handler is idempotent, and an
authenticated event that points at an unknown intent or order, or that cannot
be applied at all, is acknowledged rather than failed, since a failure would
only make the processor retry forever.
"""

import structlog
from sqlalchemy.orm import Session

from storefront import payments
from storefront.errors import InvalidState
from storefront.lifecycle import PAYMENT_LIFECYCLE, PaymentStatus
from storefront.models import Order

logger = structlog.get_logger()

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_ASYNC_FAILED = "checkout.session.async_payment_failed"
CHECKOUT_EXPIRED = "checkout.session.expired"


def _authoritative_amount(session: dict) -> int | None:
    amount = session.get("amount_total")
    if amount is None:
        amount = (session.get("metadata") or {}).get("totalAmount")
    try:
        return int(amount)
    except (TypeError, ValueError):
        return None


def handle_checkout_completed(db: Session, session: dict) -> None:
    session_id = session["id"]
    log = logger.bind(session_id=session_id)
    amount = _authoritative_amount(session)
    if amount is None:
        log.warning("webhook_amount_missing")
        return

    intent = payments.find_by_session(db, session_id)
    if intent is None:
        log.info("webhook_intent_not_found")
        return

    try:
        intent_changed = payments.mark_paid(intent, amount)
    except InvalidState:
        log.warning("webhook_payment_transition_refused", status=intent.status)
        return

    order = db.get(Order, intent.order_id)
    if order is None:
        db.commit()
        log.info("webhook_order_not_found", order_id=intent.order_id)
        return

    order_changed = False
    if PAYMENT_LIFECYCLE.can_transition(order.payment_status, PaymentStatus.PAID):
        if order.payment_status != PaymentStatus.PAID.value or order.total_amount != amount:
            order.payment_status = PaymentStatus.PAID.value
            order.total_amount = amount
            order_changed = True
    else:
        log.warning("webhook_order_payment_refused", order_id=order.id, status=order.payment_status)

    db.commit()
    if intent_changed or order_changed:
        log.info("order_paid", order_id=order.id, total_amount=amount)
    else:
        log.info("webhook_replay_ignored", order_id=order.id)


def handle_checkout_failed(db: Session, session: dict) -> None:
    session_id = session["id"]
    intent = payments.find_by_session(db, session_id)
    if intent is None:
        logger.info("webhook_intent_not_found", session_id=session_id)
        return

    payments.mark_failed(intent)
    order = db.get(Order, intent.order_id)
    if order is not None and order.payment_status != PaymentStatus.FAILED.value:
        if PAYMENT_LIFECYCLE.can_transition(order.payment_status, PaymentStatus.FAILED):
            order.payment_status = PaymentStatus.FAILED.value
            logger.info("order_payment_failed", order_id=order.id, session_id=session_id)
    db.commit()


HANDLERS = {
    CHECKOUT_COMPLETED: handle_checkout_completed,
    CHECKOUT_ASYNC_FAILED: handle_checkout_failed,
    CHECKOUT_EXPIRED: handle_checkout_failed,
}


def reconcile(db: Session, event: dict) -> None:
    """Apply an authenticated processor event. Unknown types are no-ops."""
    event_type = event.get("type")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("webhook_event_ignored", event_type=event_type, event_id=event.get("id"))
        return

    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict) or not session.get("id"):
        logger.warning("webhook_event_malformed", event_type=event_type, event_id=event.get("id"))
        return

    handler(db, session)
