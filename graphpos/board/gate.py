"""
Status transition gate for board drags.

Runs before the optimistic update: may rewrite the target (art prompt
when leaving pendente) or block the move (reactivation without the
right role). Every other pair passes through unchanged; the server
still enforces the full transition table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from graphpos.core.permissions import REACTIVATION_ROLES, role_allowed
from graphpos.models.order import OrderStatus

REACTIVATION_DENIED_TITLE = "Sem permissão"
REACTIVATION_DENIED = "Apenas Admin ou Atendente podem reativar pedidos cancelados."


@dataclass(frozen=True)
class ConfirmPrompt:
    title: str
    description: str
    confirm_text: str = "Sim"
    cancel_text: str = "Não"


ART_PROMPT = ConfirmPrompt(
    title="Arte necessária?",
    description="Este pedido precisa de criação ou ajuste de arte?",
    confirm_text="Sim",
    cancel_text="Não",
)

ConfirmCallback = Callable[[ConfirmPrompt], Awaitable[bool]]


class GateOutcome(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"
    NOOP = "noop"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    status: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls, status: str) -> "GateDecision":
        return cls(GateOutcome.ALLOW, status=status)

    @classmethod
    def block(cls, reason: str) -> "GateDecision":
        return cls(GateOutcome.BLOCK, reason=reason)

    @classmethod
    def noop(cls) -> "GateDecision":
        return cls(GateOutcome.NOOP)


class StatusTransitionGate:
    """Decides what a drag from one column to another really does."""

    def __init__(self, confirm: ConfirmCallback):
        self.confirm = confirm

    async def resolve(self, order, target: Optional[str], role: Optional[str]) -> GateDecision:
        current = str(order.status)
        if not target or target == current:
            return GateDecision.noop()

        if current == OrderStatus.PENDENTE.value and target != OrderStatus.CANCELADO.value:
            needs_art = await self.confirm(ART_PROMPT)
            target = OrderStatus.PRODUZINDO_ARTE.value if needs_art else OrderStatus.EM_PRODUCAO.value

        if (
            current == OrderStatus.CANCELADO.value
            and target == OrderStatus.PENDENTE.value
            and not role_allowed(role, REACTIVATION_ROLES)
        ):
            return GateDecision.block(REACTIVATION_DENIED)

        return GateDecision.allow(target)
