"""
Product price resolution.

Pure functions over anything shaped like a Product (ORM row or schema):
base_cost, labor_cost, waste_percentage, profit_margin, final_price,
promo_price, promo_start_at, promo_end_at, catalog_price, id.

Precedence for the storefront price:
    active promotion > volume tier > catalog_price > final_price > suggested
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional

CENTS = Decimal("0.01")


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal("0")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def money(value: Optional[Decimal]) -> Optional[Decimal]:
    """Round to cents for display."""
    if value is None:
        return None
    return _dec(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_suggested_price(product: Any, supplies_cost: Decimal = Decimal("0")) -> Decimal:
    """(base + labor + supplies) x (1 + waste%) x (1 + margin%)."""
    total_cost = _dec(product.base_cost) + _dec(product.labor_cost) + _dec(supplies_cost)
    cost_with_waste = total_cost * (1 + _dec(product.waste_percentage) / 100)
    return cost_with_waste * (1 + _dec(product.profit_margin) / 100)


def is_promotion_active(product: Any, now: Optional[datetime] = None) -> bool:
    """A non-zero promo price inside its optional start/end window."""
    if not getattr(product, "promo_price", None):
        return False

    now = _as_utc(now or datetime.now(timezone.utc))
    start = getattr(product, "promo_start_at", None)
    end = getattr(product, "promo_end_at", None)

    if start is not None and now < _as_utc(start):
        return False
    if end is not None and now > _as_utc(end):
        return False
    return True


def _tiers_for(product: Any, tiers: Optional[Iterable[Any]]) -> List[Any]:
    if not tiers:
        return []
    product_id = getattr(product, "id", None)
    return [
        t for t in tiers
        if getattr(t, "product_id", None) in (None, product_id)
    ]


def _matching_tier(tiers: List[Any], quantity) -> Optional[Any]:
    qty = _dec(quantity)
    for tier in tiers:
        if qty >= tier.min_quantity and (tier.max_quantity is None or qty <= tier.max_quantity):
            return tier
    return None


def get_base_price(
    product: Any,
    quantity=1,
    tiers: Optional[Iterable[Any]] = None,
    supplies_cost: Decimal = Decimal("0"),
) -> Decimal:
    """Price ignoring promotions: tier, then final_price, then suggested."""
    tier = _matching_tier(_tiers_for(product, tiers), quantity)
    if tier is not None:
        return _dec(tier.price)
    if product.final_price is not None:
        return _dec(product.final_price)
    return calculate_suggested_price(product, supplies_cost)


def resolve_suggested_price(
    product: Any,
    quantity=1,
    tiers: Optional[Iterable[Any]] = None,
    supplies_cost: Decimal = Decimal("0"),
    now: Optional[datetime] = None,
) -> Decimal:
    """Promotion first, then the base price chain."""
    if is_promotion_active(product, now):
        return _dec(product.promo_price)
    return get_base_price(product, quantity, tiers, supplies_cost)


def resolve_product_price(
    product: Any,
    quantity=1,
    tiers: Optional[Iterable[Any]] = None,
    supplies_cost: Decimal = Decimal("0"),
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Storefront price.

    Products with volume tiers always price through them; otherwise a
    catalog_price overrides the admin price chain.
    """
    if is_promotion_active(product, now):
        return _dec(product.promo_price)
    if _tiers_for(product, tiers):
        return resolve_suggested_price(product, quantity, tiers, supplies_cost, now)
    catalog_price = getattr(product, "catalog_price", None)
    if catalog_price is not None:
        return _dec(catalog_price)
    return resolve_suggested_price(product, quantity, tiers, supplies_cost, now)


def resolve_product_base_price(
    product: Any,
    quantity=1,
    tiers: Optional[Iterable[Any]] = None,
    supplies_cost: Decimal = Decimal("0"),
) -> Decimal:
    """Storefront price without promotion; shown struck through during a promo."""
    if _tiers_for(product, tiers):
        return get_base_price(product, quantity, tiers, supplies_cost)
    catalog_price = getattr(product, "catalog_price", None)
    if catalog_price is not None:
        return _dec(catalog_price)
    return get_base_price(product, quantity, tiers, supplies_cost)
