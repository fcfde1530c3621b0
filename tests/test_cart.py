"""Tests for the storefront cart repository."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from graphpos.schemas.cart import CartItem
from graphpos.services.cache_service import CacheService, InMemoryCache
from graphpos.services.cart_service import (
    PUBLIC_CART_UPDATED_EVENT,
    CartRepository,
    cart_subtotal,
    clamp_quantity,
    meets_minimum,
    sanitize_item,
    storage_key,
)

COMPANY = "c0ffee00-0000-0000-0000-000000000001"


def _line(**overrides):
    line = {"product_id": "p1", "name": "Cartão de visita", "unit_price": "0.25", "quantity": 100}
    line.update(overrides)
    return line


@pytest.fixture()
def cache():
    return CacheService(InMemoryCache())


@pytest.fixture()
def cart(cache):
    return CartRepository(cache, owner_id="visitor-1")


class TestSanitize:
    def test_floors_quantity_and_applies_minimum(self):
        item = sanitize_item(_line(quantity=2.9, min_order_quantity=5.5))
        assert item.quantity == 5
        assert item.min_order_quantity == 5

    def test_drops_invalid_lines(self):
        assert sanitize_item(_line(product_id="")) is None
        assert sanitize_item(_line(name="   ")) is None
        assert sanitize_item(_line(unit_price="-1")) is None
        assert sanitize_item("not a line") is None

    def test_bad_numbers_fall_back(self):
        item = sanitize_item(_line(quantity="muitos", unit_price="abc", min_order_quantity=None))
        assert item.quantity == 1
        assert item.unit_price == Decimal("0")

    def test_non_string_optionals_are_dropped(self):
        item = sanitize_item(_line(image_url=123, notes=["x"]))
        assert item.image_url is None
        assert item.notes is None


def test_clamp_quantity():
    assert clamp_quantity(None, 10) == 10
    assert clamp_quantity(0, 3) == 3
    assert clamp_quantity(7.8, 3) == 7
    assert clamp_quantity(1, 3) == 3


async def test_upsert_sums_by_default(cart):
    await cart.upsert(COMPANY, _line(quantity=100))
    items = await cart.upsert(COMPANY, _line(quantity=50, unit_price="0.20"))

    assert len(items) == 1
    assert items[0].quantity == 150
    assert items[0].unit_price == Decimal("0.20")


async def test_upsert_replace_mode(cart):
    await cart.upsert(COMPANY, _line(quantity=100))
    items = await cart.upsert(COMPANY, _line(quantity=30), mode="replace")
    assert items[0].quantity == 30


async def test_upsert_respects_minimum(cart):
    items = await cart.upsert(COMPANY, _line(quantity=1, min_order_quantity=100))
    assert items[0].quantity == 100

    items = await cart.upsert(COMPANY, _line(quantity=10, min_order_quantity=100), mode="replace")
    assert items[0].quantity == 100


async def test_upsert_invalid_line(cart):
    with pytest.raises(ValueError):
        await cart.upsert(COMPANY, _line(name=""))


async def test_set_quantity_and_remove(cart):
    await cart.set(COMPANY, [_line(), _line(product_id="p2", name="Banner", unit_price="80", quantity=1)])

    items = await cart.set_quantity(COMPANY, "p1", 0)
    assert items[0].quantity == 1

    items = await cart.remove(COMPANY, "p1")
    assert [i.product_id for i in items] == ["p2"]
    assert await cart.count(COMPANY) == 1


async def test_carts_are_isolated(cache, cart):
    other_visitor = CartRepository(cache, owner_id="visitor-2")
    await cart.upsert(COMPANY, _line())

    assert await other_visitor.get(COMPANY) == []
    assert await cart.get("c0ffee00-0000-0000-0000-000000000002") == []


async def test_corrupt_storage_is_ignored(cache, cart):
    await cache.set("visitor-1", storage_key(COMPANY), {"not": "a list"})
    assert await cart.get(COMPANY) == []

    await cache.set("visitor-1", storage_key(COMPANY), [_line(), {"product_id": "x"}, 42])
    items = await cart.get(COMPANY)
    assert [i.product_id for i in items] == ["p1"]


async def test_listeners_are_notified(cart):
    listener = AsyncMock()
    unsubscribe = cart.subscribe(listener)

    await cart.upsert(COMPANY, _line())
    await cart.clear(COMPANY)
    listener.assert_awaited_with(PUBLIC_CART_UPDATED_EVENT, {"company_id": COMPANY})
    assert listener.await_count == 2

    unsubscribe()
    await cart.upsert(COMPANY, _line())
    assert listener.await_count == 2


async def test_listeners_follow_the_visitor(cache):
    listener = AsyncMock()
    CartRepository(cache, owner_id="visitor-1").subscribe(listener)

    await CartRepository(cache, owner_id="visitor-1").upsert(COMPANY, _line())
    await CartRepository(cache, owner_id="visitor-2").upsert(COMPANY, _line())

    listener.assert_awaited_once_with(PUBLIC_CART_UPDATED_EVENT, {"company_id": COMPANY})


async def test_merge_sums_offline_lines(cart):
    await cart.upsert(COMPANY, _line(quantity=100))
    items = await cart.merge(COMPANY, [_line(quantity=20), {"bad": True}, _line(product_id="p2", name="Flyer")])

    assert {i.product_id: i.quantity for i in items} == {"p1": 120, "p2": 100}


async def test_missing_company_is_empty(cart):
    assert await cart.get(None) == []
    assert await cart.upsert("", _line()) == []


def test_subtotal_and_minimum():
    items = [
        CartItem(product_id="p1", name="A", unit_price=Decimal("0.25"), quantity=100),
        CartItem(product_id="p2", name="B", unit_price=Decimal("10"), quantity=2),
    ]
    assert cart_subtotal(items) == Decimal("45.00")
    assert meets_minimum(items, Decimal("40"))
    assert not meets_minimum(items, Decimal("50"))
    assert meets_minimum([], None)
