"""Named monotonic counters backing human-readable order numbers."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from storefront.models import SequenceCounter

ORDER_NUMBER = "orderNumber"

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def next_value(db: Session, name: str) -> int:
    """Increment counter ``name`` and return its new value.

    Find-or-create and increment happen in one statement, so concurrent
    callers never see the same value. The caller owns the transaction.
    """
    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is None:
        raise NotImplementedError(
            f"sequence counters need an upsert-capable dialect, got {db.get_bind().dialect.name}"
        )

    stmt = (
        insert(SequenceCounter)
        .values(name=name, value=1)
        .on_conflict_do_update(
            index_elements=[SequenceCounter.name],
            set_={"value": SequenceCounter.value + 1},
        )
        .returning(SequenceCounter.value)
    )
    return db.execute(stmt).scalar_one()


def format_order_number(value: int) -> str:
    return f"ORD-{value:06d}"
