"""
Public storefront cart.

CartRepository keeps one cart per (visitor, company) on the cache backend
under the key public_catalog_cart:{company_id}. Every write notifies the
subscribed listeners with PUBLIC_CART_UPDATED_EVENT so other views can
refresh.
"""

import inspect
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

from graphpos.config import settings
from graphpos.schemas.cart import CartItem
from graphpos.services.cache_service import CacheService

logger = logging.getLogger(__name__)

PUBLIC_CART_UPDATED_EVENT = "public-cart-updated"
STORAGE_PREFIX = "public_catalog_cart"

CartListener = Callable[[str, Dict[str, Any]], Any]

# visitor id -> listeners; shared by every repository built for that visitor
_listeners: Dict[str, List[CartListener]] = {}


def storage_key(company_id) -> str:
    return f"{STORAGE_PREFIX}:{company_id}"


def _to_number(value: Any, fallback: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def _to_price(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return price if price.is_finite() else Decimal("0")


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def sanitize_item(value: Any) -> Optional[CartItem]:
    """
    Turn a stored or submitted line into a CartItem, or None to drop it.

    product_id and name are required, unit_price may not be negative,
    quantity and minimum are floored to integers of at least 1 and the
    quantity is raised to the minimum.
    """
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    if not isinstance(value, dict):
        return None

    product_id = value.get("product_id")
    product_id = str(product_id).strip() if product_id is not None else ""
    name = value.get("name")
    name = name.strip() if isinstance(name, str) else ""
    unit_price = _to_price(value.get("unit_price"))
    quantity = max(1, math.floor(_to_number(value.get("quantity"), 1)))
    minimum = max(1, math.floor(_to_number(value.get("min_order_quantity"), 1)))

    if not product_id or not name or unit_price < 0:
        return None

    return CartItem(
        product_id=product_id,
        product_slug=_text(value.get("product_slug")),
        name=name,
        image_url=_text(value.get("image_url")),
        unit_price=unit_price,
        quantity=max(minimum, quantity),
        min_order_quantity=minimum,
        notes=_text(value.get("notes")),
    )


def clamp_quantity(quantity: Any, minimum: int) -> int:
    """max(minimum, floor(quantity)); a missing or zero quantity means minimum."""
    minimum = max(1, int(minimum or 1))
    number = _to_number(quantity, 0)
    if not number:
        number = minimum
    return max(minimum, math.floor(number))


def cart_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))


def meets_minimum(items: Iterable[CartItem], minimum_order_value: Optional[Decimal]) -> bool:
    if not minimum_order_value:
        return True
    return cart_subtotal(items) >= Decimal(minimum_order_value)


class CartRepository:
    """
    Keyed company -> cart store for one storefront visitor.

    owner_id identifies the visitor (browser session); the cache key is
    namespaced by it so carts never mix between visitors.
    """

    def __init__(self, cache: CacheService, owner_id: str, ttl: Optional[int] = None):
        self._cache = cache
        self._owner_id = owner_id
        self._ttl = ttl or settings.CART_TTL_SECONDS

    # ==================== Listeners ====================

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Register a listener for this visitor's carts.

        Writes made through any repository of the same visitor reach it.
        Returns a function that removes it.
        """
        owner_listeners = _listeners.setdefault(self._owner_id, [])
        owner_listeners.append(listener)

        def unsubscribe() -> None:
            current = _listeners.get(self._owner_id)
            if current and listener in current:
                current.remove(listener)
                if not current:
                    del _listeners[self._owner_id]

        return unsubscribe

    async def _emit(self, company_id) -> None:
        detail = {"company_id": str(company_id)}
        for listener in list(_listeners.get(self._owner_id, ())):
            result = listener(PUBLIC_CART_UPDATED_EVENT, detail)
            if inspect.isawaitable(result):
                await result

    # ==================== Storage ====================

    async def get(self, company_id) -> List[CartItem]:
        if not company_id:
            return []
        raw = await self._cache.get(self._owner_id, storage_key(company_id))
        if not isinstance(raw, list):
            return []
        items = [sanitize_item(entry) for entry in raw]
        return [item for item in items if item is not None]

    async def set(self, company_id, items: Iterable[Any]) -> List[CartItem]:
        """Replace the whole cart; invalid lines are dropped."""
        if not company_id:
            return []
        sanitized = [item for item in (sanitize_item(i) for i in items) if item is not None]
        await self._write(company_id, sanitized)
        return sanitized

    async def _write(self, company_id, items: List[CartItem]) -> None:
        payload = [item.model_dump(mode="json") for item in items]
        await self._cache.set(self._owner_id, storage_key(company_id), payload, self._ttl)
        logger.debug("Cart %s for company %s now has %d lines", self._owner_id, company_id, len(items))
        await self._emit(company_id)

    async def clear(self, company_id) -> None:
        if not company_id:
            return
        await self._cache.delete(self._owner_id, storage_key(company_id))
        await self._emit(company_id)

    # ==================== Line operations ====================

    async def remove(self, company_id, product_id: str) -> List[CartItem]:
        if not company_id or not product_id:
            return await self.get(company_id)
        items = [i for i in await self.get(company_id) if i.product_id != str(product_id)]
        await self._write(company_id, items)
        return items

    async def set_quantity(self, company_id, product_id: str, quantity: Any) -> List[CartItem]:
        if not company_id or not product_id:
            return await self.get(company_id)
        items = []
        for item in await self.get(company_id):
            if item.product_id == str(product_id):
                item = item.model_copy(update={
                    "quantity": clamp_quantity(quantity, item.min_order_quantity),
                })
            items.append(item)
        await self._write(company_id, items)
        return items

    async def upsert(
        self,
        company_id,
        incoming: Any,
        mode: Literal["sum", "replace"] = "sum",
    ) -> List[CartItem]:
        """
        Add a line or update the existing line of the same product.

        "sum" adds the incoming quantity to the current one, "replace"
        overwrites it. Other fields take the incoming values.
        """
        if not company_id:
            return []
        if hasattr(incoming, "model_dump"):
            incoming = incoming.model_dump()
        item = sanitize_item(incoming)
        if item is None:
            raise ValueError("Item do carrinho inválido")

        minimum = item.min_order_quantity
        quantity = clamp_quantity(incoming.get("quantity"), minimum)
        normalized = item.model_copy(update={"quantity": quantity, "min_order_quantity": minimum})

        current = await self.get(company_id)
        index = next((i for i, line in enumerate(current) if line.product_id == normalized.product_id), None)

        if index is None:
            current.append(normalized)
        else:
            existing = current[index]
            if mode == "replace":
                next_quantity = quantity
            else:
                next_quantity = max(existing.min_order_quantity or 1, existing.quantity + quantity)
            merged = existing.model_dump()
            merged.update(normalized.model_dump())
            merged["quantity"] = max(next_quantity, normalized.min_order_quantity)
            current[index] = CartItem(**merged)

        await self._write(company_id, current)
        return current

    async def merge(self, company_id, items: Iterable[Any]) -> List[CartItem]:
        """Sum a batch of lines into the cart (e.g. a cart kept offline)."""
        result = await self.get(company_id)
        for entry in items:
            if sanitize_item(entry) is None:
                continue
            result = await self.upsert(company_id, entry, mode="sum")
        return result

    async def count(self, company_id) -> int:
        """Total units in the cart."""
        return sum(item.quantity for item in await self.get(company_id))
