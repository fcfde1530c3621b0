"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for order status transitions.
OrderService.update_status goes through transition_order(); the board's
gate only adds the art prompt and the reactivation guard on top.

Errors are domain exceptions. Endpoints translate them:
- OrderTransitionError -> 400
- ReactivationForbiddenError -> 403
"""

from typing import Optional, List, Dict
from datetime import datetime, timezone

from graphpos.core.enum_utils import normalize_order_status, to_enum
from graphpos.core.permissions import REACTIVATION_ROLES, role_allowed
from graphpos.models.order import ORDER_STATUS_LABELS, OrderStatus


class OrderTransitionError(ValueError):
    """Unknown status or a move the workflow does not allow."""
    pass


class ReactivationForbiddenError(PermissionError):
    """Canceled order brought back by a role without the right to do so."""
    pass


STATUS_REQUIRED = "Status obrigatorio"
INVALID_STATUS = "Status inválido"
TRANSITION_NOT_ALLOWED = "Mudança de status não permitida"
REACTIVATION_FORBIDDEN = "Somente Admin ou Atendente podem reativar pedidos cancelados"


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.ORCAMENTO.value: [
        OrderStatus.PENDENTE.value,         # Quote approved
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.PENDENTE.value: [
        OrderStatus.PRODUZINDO_ARTE.value,  # Needs artwork
        OrderStatus.EM_PRODUCAO.value,      # Straight to production
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.PRODUZINDO_ARTE.value: [
        OrderStatus.ARTE_APROVADA.value,
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.ARTE_APROVADA.value: [
        OrderStatus.EM_PRODUCAO.value,
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.EM_PRODUCAO.value: [
        OrderStatus.FINALIZADO.value,
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.FINALIZADO.value: [
        OrderStatus.AGUARDANDO_RETIRADA.value,
        OrderStatus.ENTREGUE.value,
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.AGUARDANDO_RETIRADA.value: [
        OrderStatus.ENTREGUE.value,
        OrderStatus.CANCELADO.value,
    ],
    OrderStatus.ENTREGUE.value: [],      # Terminal
    OrderStatus.CANCELADO.value: [
        OrderStatus.PENDENTE.value,      # Reactivation, role-gated
    ],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def status_label(status: Optional[str]) -> str:
    if status is None:
        return ""
    return ORDER_STATUS_LABELS.get(status, status)


def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed. Staying put is always allowed."""
    if current_status == new_status:
        return True
    return new_status in ORDER_TRANSITIONS.get(current_status, [])


def is_reactivation(current_status: str, new_status: str) -> bool:
    return current_status == OrderStatus.CANCELADO.value and new_status == OrderStatus.PENDENTE.value


def parse_status(raw: Optional[str]) -> str:
    """
    Normalize a client-supplied status and check it is a known value.

    Raises:
        OrderTransitionError: If missing or unknown
    """
    normalized = normalize_order_status(raw)
    if not normalized:
        raise OrderTransitionError(STATUS_REQUIRED)
    if to_enum(normalized, OrderStatus) is None:
        raise OrderTransitionError(INVALID_STATUS)
    return normalized


def validate_transition(current_status: str, new_status: str, role: Optional[str]) -> None:
    """
    Validate a status transition for a user role.

    The reactivation guard runs before the table lookup so that a
    forbidden reactivation reports 403 rather than 400.
    """
    current_status = normalize_order_status(current_status)
    if current_status == new_status:
        return

    if is_reactivation(current_status, new_status) and not role_allowed(role, REACTIVATION_ROLES):
        raise ReactivationForbiddenError(REACTIVATION_FORBIDDEN)

    if not can_transition(current_status, new_status):
        raise OrderTransitionError(TRANSITION_NOT_ALLOWED)


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_order(order, new_status: str, user_id=None, role: Optional[str] = None,
                     notes: Optional[str] = None) -> str:
    """
    Move an order to a new status and set its audit fields.

    Args:
        order: Order model instance
        new_status: Normalized target status
        user_id: ID of user performing the action
        role: Role of that user
        notes: Optional free text; becomes cancel_reason on cancellation

    Returns:
        The previous status (normalized)

    Raises:
        OrderTransitionError: If the move is not allowed
        ReactivationForbiddenError: If a canceled order is reactivated by a
            role outside admin/atendente
    """
    previous = normalize_order_status(order.status)
    validate_transition(previous, new_status, role)

    now = datetime.now(timezone.utc)
    order.status = new_status
    order.updated_by = user_id
    order.updated_at = now
    order.version = (order.version or 0) + 1

    if new_status == OrderStatus.CANCELADO.value:
        order.cancel_reason = notes
        if previous != new_status:
            order.cancelled_at = now
            order.cancelled_by = user_id
    else:
        order.cancel_reason = None
        if previous == OrderStatus.CANCELADO.value:
            order.cancelled_at = None
            order.cancelled_by = None

    return previous


def history_note(from_status: Optional[str], to_status: str, notes: Optional[str] = None) -> str:
    """'Status alterado de Pendente para Em Produção.' plus the user's notes."""
    text = f"Status alterado de {status_label(from_status)} para {status_label(to_status)}."
    if notes:
        text = f"{text} {notes}"
    return text
