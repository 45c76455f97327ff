"""Order state machines.

An order carries two independent state machines. ``ORDER_LIFECYCLE`` is
driven by the customer (cancel) and by operators (status updates);
``PAYMENT_LIFECYCLE`` is driven only by payment-processor webhooks.
"""

from enum import Enum

from storefront.errors import InvalidState, InvalidStatus


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH_ON_DELIVERY = "cash_on_delivery"


class StateMachine:
    """A fixed set of states plus the transitions allowed between them."""

    def __init__(self, name, states, transitions):
        self.name = name
        self.states = states
        self.transitions = {
            source: frozenset(targets) for source, targets in transitions.items()
        }

    def parse(self, value) -> Enum:
        try:
            return self.states(value)
        except ValueError:
            raise InvalidStatus(f"Invalid {self.name}: {value!r}") from None

    def can_transition(self, current, target) -> bool:
        return self.states(target) in self.transitions.get(self.states(current), frozenset())

    def check_transition(self, current, target) -> Enum:
        target = self.parse(target)
        if not self.can_transition(current, target):
            raise InvalidState(
                f"Cannot move {self.name} from {self.states(current).value} to {target.value}"
            )
        return target


_FORWARD = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]

# Operators move forward along the chain (skipping is fine) or re-set the
# current status to attach a tracking number. DELIVERED only maps to itself.
# PENDING -> CANCELLED is only taken by orders.cancel_order, which releases stock.
_LIFECYCLE_TRANSITIONS = {status: set(_FORWARD[i:]) for i, status in enumerate(_FORWARD)}
_LIFECYCLE_TRANSITIONS[OrderStatus.CANCELLED] = set()

ORDER_LIFECYCLE = StateMachine("order status", OrderStatus, _LIFECYCLE_TRANSITIONS)

# Cancellation is modelled separately so status administration cannot reach it.
CANCELLABLE = frozenset({OrderStatus.PENDING})

PAYMENT_LIFECYCLE = StateMachine(
    "payment status",
    PaymentStatus,
    {
        PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
        PaymentStatus.FAILED: {PaymentStatus.PAID, PaymentStatus.FAILED},
        PaymentStatus.PAID: {PaymentStatus.PAID, PaymentStatus.REFUNDED},
        PaymentStatus.REFUNDED: set(),
    },
)
