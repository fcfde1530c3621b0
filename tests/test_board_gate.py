"""Tests for the drag gate of the status board."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from graphpos.board.gate import (
    ART_PROMPT,
    REACTIVATION_DENIED,
    GateOutcome,
    StatusTransitionGate,
)


def _order(status):
    return SimpleNamespace(status=status)


async def test_same_column_is_noop():
    confirm = AsyncMock(return_value=True)
    decision = await StatusTransitionGate(confirm).resolve(_order("pendente"), "pendente", "admin")

    assert decision.outcome == GateOutcome.NOOP
    confirm.assert_not_awaited()


async def test_missing_target_is_noop():
    decision = await StatusTransitionGate(AsyncMock()).resolve(_order("pendente"), None, "admin")
    assert decision.outcome == GateOutcome.NOOP


@pytest.mark.parametrize("answer,expected", [(True, "produzindo_arte"), (False, "em_producao")])
async def test_leaving_pendente_asks_about_art(answer, expected):
    confirm = AsyncMock(return_value=answer)
    decision = await StatusTransitionGate(confirm).resolve(_order("pendente"), "finalizado", "producao")

    confirm.assert_awaited_once_with(ART_PROMPT)
    assert decision.outcome == GateOutcome.ALLOW
    assert decision.status == expected


async def test_cancelling_pendente_skips_prompt():
    confirm = AsyncMock()
    decision = await StatusTransitionGate(confirm).resolve(_order("pendente"), "cancelado", "caixa")

    confirm.assert_not_awaited()
    assert decision.status == "cancelado"


async def test_reactivation_blocked_for_caixa():
    decision = await StatusTransitionGate(AsyncMock()).resolve(_order("cancelado"), "pendente", "caixa")

    assert decision.outcome == GateOutcome.BLOCK
    assert decision.reason == REACTIVATION_DENIED


async def test_reactivation_allowed_for_atendente():
    decision = await StatusTransitionGate(AsyncMock()).resolve(_order("cancelado"), "pendente", "atendente")
    assert decision.outcome == GateOutcome.ALLOW
    assert decision.status == "pendente"


async def test_other_moves_pass_through():
    decision = await StatusTransitionGate(AsyncMock()).resolve(_order("em_producao"), "entregue", "caixa")
    # the server decides whether the table allows it
    assert decision.outcome == GateOutcome.ALLOW
    assert decision.status == "entregue"
