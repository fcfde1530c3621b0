"""Tests for the order workflow transition table."""

from types import SimpleNamespace

import pytest

from graphpos.core.enum_utils import normalize_order_status
from graphpos.models.order import OrderStatus
from graphpos.services.order_state_machine import (
    INVALID_STATUS,
    STATUS_REQUIRED,
    OrderTransitionError,
    ReactivationForbiddenError,
    can_transition,
    history_note,
    parse_status,
    transition_order,
    validate_transition,
)


def _order(status: str, version: int = 1):
    return SimpleNamespace(
        status=status,
        version=version,
        updated_by=None,
        updated_at=None,
        cancel_reason=None,
        cancelled_at=None,
        cancelled_by=None,
    )


class TestParseStatus:
    def test_legacy_pronto_maps_to_finalizado(self):
        assert parse_status("pronto") == "finalizado"
        assert parse_status("  PRONTO ") == "finalizado"

    def test_missing_status(self):
        with pytest.raises(OrderTransitionError, match=STATUS_REQUIRED):
            parse_status(None)
        with pytest.raises(OrderTransitionError, match=STATUS_REQUIRED):
            parse_status("   ")

    def test_unknown_status(self):
        with pytest.raises(OrderTransitionError, match=INVALID_STATUS):
            parse_status("arquivado")

    def test_normalize_keeps_unknown_values(self):
        assert normalize_order_status("Em_Producao") == "em_producao"
        assert normalize_order_status(OrderStatus.ENTREGUE) == "entregue"


class TestTransitions:
    def test_workflow_path(self):
        path = [
            "orcamento", "pendente", "produzindo_arte", "arte_aprovada",
            "em_producao", "finalizado", "aguardando_retirada", "entregue",
        ]
        for current, nxt in zip(path, path[1:]):
            assert can_transition(current, nxt), f"{current} -> {nxt}"

    def test_skipping_steps_is_rejected(self):
        assert not can_transition("orcamento", "em_producao")
        assert not can_transition("pendente", "entregue")

    def test_entregue_is_terminal(self):
        for status in ("cancelado", "pendente", "finalizado"):
            assert not can_transition("entregue", status)

    def test_same_status_is_allowed(self):
        assert can_transition("em_producao", "em_producao")
        validate_transition("em_producao", "em_producao", None)

    @pytest.mark.parametrize("role", ["caixa", "producao", None])
    def test_reactivation_forbidden_for_other_roles(self, role):
        with pytest.raises(ReactivationForbiddenError):
            validate_transition("cancelado", "pendente", role)

    @pytest.mark.parametrize("role", ["admin", "atendente", "super_admin"])
    def test_reactivation_allowed(self, role):
        validate_transition("cancelado", "pendente", role)

    def test_cancelled_cannot_jump_to_production(self):
        with pytest.raises(OrderTransitionError):
            validate_transition("cancelado", "em_producao", "admin")


class TestTransitionOrder:
    def test_bumps_version_and_audit_fields(self):
        order = _order("pendente", version=3)

        previous = transition_order(order, "em_producao", user_id="u1", role="producao")

        assert previous == "pendente"
        assert order.status == "em_producao"
        assert order.version == 4
        assert order.updated_by == "u1"
        assert order.updated_at is not None

    def test_cancel_sets_reason_and_reactivation_clears_it(self):
        order = _order("em_producao")

        transition_order(order, "cancelado", user_id="u1", role="admin", notes="Cliente desistiu")
        assert order.cancel_reason == "Cliente desistiu"
        assert order.cancelled_at is not None
        assert order.cancelled_by == "u1"

        transition_order(order, "pendente", user_id="u2", role="atendente")
        assert order.status == "pendente"
        assert order.cancel_reason is None
        assert order.cancelled_at is None
        assert order.cancelled_by is None

    def test_legacy_stored_status_is_normalized(self):
        order = _order("pronto")
        previous = transition_order(order, "entregue", role="caixa")
        assert previous == "finalizado"
        assert order.status == "entregue"


def test_history_note_uses_labels():
    assert history_note("pendente", "em_producao") == "Status alterado de Pendente para Em Produção."
    assert history_note("em_producao", "cancelado", "Sem papel") == (
        "Status alterado de Em Produção para Cancelado. Sem papel"
    )
