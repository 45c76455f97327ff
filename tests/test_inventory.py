from concurrent.futures import ThreadPoolExecutor

import pytest

from storefront import inventory
from storefront.errors import InsufficientStock, NotFound, ValidationError


def test_reserve_decrements_stock_and_returns_snapshot(db, add_product, stock_of):
    add_product("mug", price=1250, stock=5, name="Coffee Mug", image="https://img/mug.png")

    snapshot = inventory.reserve(db, "mug", 2)

    assert snapshot.product_id == "mug"
    assert snapshot.name == "Coffee Mug"
    assert snapshot.price == 1250
    assert snapshot.image == "https://img/mug.png"
    assert stock_of("mug") == 3


def test_reserve_whole_stock(db, add_product, stock_of):
    add_product("mug", price=1250, stock=2)

    inventory.reserve(db, "mug", 2)

    assert stock_of("mug") == 0


def test_reserve_more_than_available_fails(db, add_product, stock_of):
    add_product("mug", price=1250, stock=1)

    with pytest.raises(InsufficientStock):
        inventory.reserve(db, "mug", 2)

    assert stock_of("mug") == 1


def test_reserve_unknown_product(db):
    with pytest.raises(NotFound):
        inventory.reserve(db, "ghost", 1)


@pytest.mark.parametrize("quantity", [0, -3, 1.5, True])
def test_reserve_rejects_bad_quantity(db, add_product, stock_of, quantity):
    add_product("mug", price=1250, stock=5)

    with pytest.raises(ValidationError):
        inventory.reserve(db, "mug", quantity)

    assert stock_of("mug") == 5


def test_release_restores_stock(db, add_product, stock_of):
    add_product("mug", price=1250, stock=5)
    inventory.reserve(db, "mug", 4)

    inventory.release(db, "mug", 4)

    assert stock_of("mug") == 5


def test_release_of_deleted_product_is_skipped(db):
    # nothing to restore and nothing to raise
    inventory.release(db, "ghost", 2)


def test_concurrent_reservations_never_oversell(session_factory, add_product, stock_of):
    units = 12
    add_product("hot-item", price=999, stock=units)

    def grab(_):
        with session_factory() as s:
            try:
                inventory.reserve(s, "hot-item", 1)
                return True
            except InsufficientStock:
                return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(grab, range(units)))

    assert results.count(True) == units
    assert stock_of("hot-item") == 0


def test_concurrent_oversubscription_grants_only_available(session_factory, add_product, stock_of):
    add_product("hot-item", price=999, stock=5)

    def grab(_):
        with session_factory() as s:
            try:
                inventory.reserve(s, "hot-item", 1)
                return True
            except InsufficientStock:
                return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(grab, range(15)))

    assert results.count(True) == 5
    assert results.count(False) == 10
    assert stock_of("hot-item") == 0
