"""
Order status board (kanban) state.

Holds the full order set of a store, grouped into status columns, and
moves orders between columns with an optimistic update that is reverted
when the backend refuses the change.

Refetches can race a move in flight. Each local move remembers the
order version it was based on; refetched rows at or below that version
do not carry the move yet and are ignored for that order.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set

from graphpos.board.client import BackendError, OrdersApiClient
from graphpos.board.gate import (
    REACTIVATION_DENIED_TITLE,
    ConfirmCallback,
    GateOutcome,
    StatusTransitionGate,
)
from graphpos.board.notifier import Notifier
from graphpos.models.order import ORDER_STATUS_LABELS, OrderStatus
from graphpos.schemas.order import OrderBoardResponse

logger = logging.getLogger(__name__)

LOAD_ERROR_TITLE = "Erro ao carregar pedidos"
UPDATE_ERROR_TITLE = "Erro ao atualizar status"
SESSION_EXPIRED_TITLE = "Sessão expirada"
FORBIDDEN_TITLE = "Sem permissão"
NO_ITEMS = "Sem produtos"

STATUS_ORDER = [status.value for status in OrderStatus]


@dataclass(frozen=True)
class BoardColumn:
    id: str
    label: str


def column_label(status: str) -> str:
    """Known label, else the raw value with spaces and a capital first letter."""
    if status in ORDER_STATUS_LABELS:
        return ORDER_STATUS_LABELS[status]
    normalized = status.replace("_", " ")
    return normalized[:1].upper() + normalized[1:]


def _format_quantity(quantity: Any) -> str:
    try:
        value = Decimal(str(quantity))
    except ArithmeticError:
        return str(quantity)
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def item_preview(order: OrderBoardResponse) -> str:
    """First two lines as "name xQty", then "+N" for the rest."""
    items = order.items or []
    if not items:
        return NO_ITEMS
    preview = [f"{item.product_name} x{_format_quantity(item.quantity)}" for item in items[:2]]
    remaining = len(items) - len(preview)
    text = ", ".join(preview)
    return f"{text} +{remaining}" if remaining > 0 else text


def _failure_title(error: Exception) -> str:
    status_code = getattr(error, "status_code", None)
    if status_code == 401:
        return SESSION_EXPIRED_TITLE
    if status_code == 403:
        return FORBIDDEN_TITLE
    return UPDATE_ERROR_TITLE


class OrderStatusBoard:
    """Board state for one signed-in user."""

    def __init__(
        self,
        client: OrdersApiClient,
        notifier: Notifier,
        confirm: ConfirmCallback,
        role: Optional[str] = None,
        user_id: Optional[uuid.UUID | str] = None,
        statuses: Optional[Iterable[str]] = None,
    ):
        self.client = client
        self.notifier = notifier
        self.gate = StatusTransitionGate(confirm)
        self.role = role
        self.user_id = user_id
        self.statuses = list(statuses) if statuses else list(STATUS_ORDER)

        self.orders: List[OrderBoardResponse] = []
        self.updating: Set[str] = set()
        self.loading = False
        # order id -> version the local move was based on
        self._local_changes: Dict[str, int] = {}

    # ==================== Loading ====================

    async def _fetch(self) -> Optional[List[OrderBoardResponse]]:
        try:
            payload = await self.client.list_orders()
        except BackendError as e:
            self.notifier.toast(LOAD_ERROR_TITLE, e.message, "destructive")
            return None
        return [OrderBoardResponse.model_validate(row) for row in payload or []]

    async def load(self) -> bool:
        """Replace the board with the server's order set."""
        self.loading = True
        try:
            orders = await self._fetch()
        finally:
            self.loading = False
        if orders is None:
            return False
        self.orders = orders
        self._local_changes.clear()
        return True

    async def refetch(self) -> bool:
        """
        Reload after a remote change without losing local moves.

        Rows of orders being updated, or not yet past the version a local
        move was based on, keep their local state.
        """
        incoming = await self._fetch()
        if incoming is None:
            return False

        local = {str(o.id): o for o in self.orders}
        merged = []
        for row in incoming:
            key = str(row.id)
            base_version = self._local_changes.get(key)
            if key in self.updating and key in local:
                merged.append(local[key])
            elif base_version is not None and row.version <= base_version and key in local:
                logger.debug("Ignoring stale row for order %s (v%s)", key, row.version)
                merged.append(local[key])
            else:
                self._local_changes.pop(key, None)
                merged.append(row)

        self.orders = merged
        return True

    async def follow(self, events: Optional[AsyncIterator[Dict[str, Any]]] = None) -> None:
        """Refetch on every live order event until the stream ends."""
        stream = events if events is not None else self.client.events()
        async for event in stream:
            logger.debug("Order event %s for %s", event.get("type"), event.get("order_id"))
            await self.refetch()

    # ==================== Views ====================

    def find(self, order_id: uuid.UUID | str) -> Optional[OrderBoardResponse]:
        key = str(order_id)
        return next((o for o in self.orders if str(o.id) == key), None)

    def filtered_orders(self, search: Optional[str] = None) -> List[OrderBoardResponse]:
        """Orders whose number or customer name contains the search term."""
        term = (search or "").strip().lower()
        if not term:
            return list(self.orders)

        result = []
        for order in self.orders:
            customer_name = order.customer_name or (order.customer.name if order.customer else "") or ""
            if term in str(order.order_number) or term in customer_name.lower():
                result.append(order)
        return result

    def columns(self, search: Optional[str] = None) -> List[BoardColumn]:
        """Known statuses in workflow order, then unknown statuses present."""
        base = list(self.statuses)
        extra = []
        for order in self.filtered_orders(search):
            if order.status not in base and order.status not in extra:
                extra.append(order.status)
        return [BoardColumn(id=s, label=column_label(s)) for s in base + extra]

    def orders_by_status(self, search: Optional[str] = None) -> Dict[str, List[OrderBoardResponse]]:
        grouped: Dict[str, List[OrderBoardResponse]] = {c.id: [] for c in self.columns(search)}
        for order in self.filtered_orders(search):
            grouped.setdefault(order.status, []).append(order)
        return grouped

    @staticmethod
    def item_preview(order: OrderBoardResponse) -> str:
        return item_preview(order)

    # ==================== Moves ====================

    def _replace(self, order_id: str, **changes) -> None:
        self.orders = [
            o.model_copy(update=changes) if str(o.id) == order_id else o
            for o in self.orders
        ]

    async def handle_drag_end(self, order_id: uuid.UUID | str, target_status: Optional[str]) -> bool:
        """
        Move an order to the column it was dropped on.

        Returns True when the backend accepted the new status.
        """
        key = str(order_id)
        order = self.find(key)
        if order is None:
            return False

        decision = await self.gate.resolve(order, target_status, self.role)
        if decision.outcome == GateOutcome.NOOP:
            return False
        if decision.outcome == GateOutcome.BLOCK:
            self.notifier.toast(REACTIVATION_DENIED_TITLE, decision.reason, "destructive")
            return False

        new_status = decision.status
        previous_status = order.status
        self._local_changes[key] = order.version
        self._replace(key, status=new_status)
        self.updating.add(key)

        try:
            updated = await self.client.update_status(key, new_status, user_id=self.user_id)
        except BackendError as e:
            self._replace(key, status=previous_status)
            self._local_changes.pop(key, None)
            self.notifier.toast(_failure_title(e), e.message or UPDATE_ERROR_TITLE, "destructive")
            logger.info("Order %s move %s -> %s failed: %s", key, previous_status, new_status, e.message)
            return False
        finally:
            self.updating.discard(key)

        if updated:
            changes = {"status": updated.get("status", new_status)}
            if "version" in updated:
                changes["version"] = updated["version"]
                self._local_changes[key] = updated["version"] - 1
            self._replace(key, **changes)
        return True
