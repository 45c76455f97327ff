"""Payment intent tracker.

One intent per checkout attempt; its id is the external checkout-session id,
the join key between processor callbacks and local orders. Functions here
only stage changes on the session, the caller commits.
"""

import structlog
from sqlalchemy.orm import Session

from storefront.lifecycle import PAYMENT_LIFECYCLE, PaymentStatus
from storefront.models import PaymentIntent

logger = structlog.get_logger()


def record_intent(db: Session, session_id: str, order_id: str, total_amount: int) -> PaymentIntent:
    intent = PaymentIntent(
        id=session_id,
        order_id=order_id,
        status=PaymentStatus.PENDING.value,
        total_amount=total_amount,
    )
    db.add(intent)
    return intent


def find_by_session(db: Session, session_id: str) -> PaymentIntent | None:
    return db.get(PaymentIntent, session_id)


def mark_paid(intent: PaymentIntent, amount: int) -> bool:
    """Move ``intent`` to paid with the processor's amount.

    Returns False when nothing changed, as on a replayed event.
    """
    PAYMENT_LIFECYCLE.check_transition(intent.status, PaymentStatus.PAID)
    if intent.status == PaymentStatus.PAID.value and intent.total_amount == amount:
        return False
    intent.status = PaymentStatus.PAID.value
    intent.total_amount = amount
    return True


def mark_failed(intent: PaymentIntent) -> bool:
    if not PAYMENT_LIFECYCLE.can_transition(intent.status, PaymentStatus.FAILED):
        logger.info("payment_failure_ignored", session_id=intent.id, status=intent.status)
        return False
    if intent.status == PaymentStatus.FAILED.value:
        return False
    intent.status = PaymentStatus.FAILED.value
    return True
