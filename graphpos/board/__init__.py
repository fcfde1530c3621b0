from graphpos.board.board import OrderStatusBoard, BoardColumn, item_preview
from graphpos.board.client import BackendError, OrdersApiClient
from graphpos.board.gate import (
    ART_PROMPT,
    ConfirmPrompt,
    GateDecision,
    GateOutcome,
    StatusTransitionGate,
)
from graphpos.board.notifier import Notifier, RecordingNotifier, Toast

__all__ = [
    "OrderStatusBoard",
    "BoardColumn",
    "item_preview",
    "BackendError",
    "OrdersApiClient",
    "ART_PROMPT",
    "ConfirmPrompt",
    "GateDecision",
    "GateOutcome",
    "StatusTransitionGate",
    "Notifier",
    "RecordingNotifier",
    "Toast",
]
