"""Tests for OrderService against a SQLite database."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from graphpos.core.permissions import AppRole
from graphpos.schemas.order import OrderCreate, OrderItemCreate
from graphpos.services.order_events import ORDER_STATUS_CHANGED, OrderEventBroker
from graphpos.services.order_service import (
    OrderNotFoundError,
    OrderPermissionError,
    OrderService,
    payment_summary,
)
from graphpos.services.order_state_machine import OrderTransitionError, ReactivationForbiddenError

from conftest import make_company, make_user


def _order_data(status="pendente", customer_name="Maria Souza"):
    return OrderCreate(
        customer_name=customer_name,
        status=status,
        items=[
            OrderItemCreate(product_name="Cartão de visita", quantity=Decimal("2"), unit_price=Decimal("45.00")),
            OrderItemCreate(product_name="Banner", quantity=Decimal("1"), unit_price=Decimal("30.00"),
                            discount=Decimal("5.00")),
        ],
    )


class TestCreateOrder:
    async def test_totals_number_and_history(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())

        first = await service.create_order(company.id, _order_data(), created_by=admin.id)
        second = await service.create_order(company.id, _order_data(), created_by=admin.id)

        assert first.order_number == 1
        assert second.order_number == 2
        assert first.subtotal == Decimal("115.00")
        assert first.total == Decimal("115.00")
        assert first.payment_status == "pendente"
        assert [h.to_status for h in first.status_history] == ["pendente"]

    async def test_numbers_are_per_company(self, db, company, admin):
        other = await make_company(db, slug="outra-grafica")
        service = OrderService(db, broker=OrderEventBroker())

        await service.create_order(company.id, _order_data())
        order = await service.create_order(other.id, _order_data())

        assert order.order_number == 1

    async def test_discount_larger_than_subtotal(self, db, company):
        data = _order_data()
        data.discount = Decimal("1000")
        with pytest.raises(ValueError):
            await OrderService(db, broker=OrderEventBroker()).create_order(company.id, data)


class TestUpdateStatus:
    async def test_move_records_history_and_publishes(self, db, company, admin):
        broker = OrderEventBroker()
        service = OrderService(db, broker=broker)
        order = await service.create_order(company.id, _order_data())
        queue = await broker.subscribe(company.id)

        updated = await service.update_status(company.id, order.id, "em_producao", user=admin)

        assert updated.status == "em_producao"
        assert updated.version == 2
        history = await service.list_history(company.id, order.id)
        assert [h.to_status for h in history] == ["pendente", "em_producao"]
        assert history[-1].notes == "Status alterado de Pendente para Em Produção."

        event = queue.get_nowait()
        assert event["type"] == ORDER_STATUS_CHANGED
        assert event["order_id"] == str(order.id)

    async def test_legacy_pronto_value(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data(status="em_producao"))

        updated = await service.update_status(company.id, order.id, "pronto", user=admin)
        assert updated.status == "finalizado"

    async def test_same_status_is_a_noop(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data())

        updated = await service.update_status(company.id, order.id, "pendente", user=admin)

        assert updated.version == 1
        assert len(await service.list_history(company.id, order.id)) == 1

    async def test_invalid_move(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data(status="orcamento"))

        with pytest.raises(OrderTransitionError):
            await service.update_status(company.id, order.id, "entregue", user=admin)

    async def test_reactivation_by_caixa_is_forbidden(self, db, company):
        caixa = await make_user(db, company, AppRole.CAIXA.value)
        atendente = await make_user(db, company, AppRole.ATENDENTE.value)
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data())
        await service.update_status(company.id, order.id, "cancelado", user=caixa, notes="Desistiu")

        with pytest.raises(ReactivationForbiddenError):
            await service.update_status(company.id, order.id, "pendente", user=caixa)

        reactivated = await service.update_status(company.id, order.id, "pendente", user=atendente)
        assert reactivated.status == "pendente"
        assert reactivated.cancel_reason is None

    async def test_user_without_board_role(self, db, company):
        outsider = await make_user(db, company, "visitante")
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data())

        with pytest.raises(OrderPermissionError):
            await service.update_status(company.id, order.id, "em_producao", user=outsider)

    async def test_order_of_another_company(self, db, company, admin):
        other = await make_company(db, slug="outra")
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(other.id, _order_data())

        with pytest.raises(OrderNotFoundError):
            await service.update_status(company.id, order.id, "em_producao", user=admin)


class TestPayments:
    async def test_partial_then_full(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data())

        await service.add_payment(company.id, order.id, Decimal("50.00"), method="pix", user_id=admin.id)
        summary = await service.get_payment_summary(company.id, order.id)
        assert summary["status"] == "parcial"
        assert summary["remaining"] == Decimal("65.00")

        await service.add_payment(company.id, order.id, Decimal("65.00"), method="dinheiro")
        summary = await service.get_payment_summary(company.id, order.id)
        assert summary["status"] == "pago"
        assert summary["remaining"] == Decimal("0")
        assert len(await service.list_payments(company.id, order.id)) == 2

    async def test_cancelled_order_rejects_payment(self, db, company, admin):
        service = OrderService(db, broker=OrderEventBroker())
        order = await service.create_order(company.id, _order_data())
        await service.update_status(company.id, order.id, "cancelado", user=admin)

        with pytest.raises(ValueError):
            await service.add_payment(company.id, order.id, Decimal("10"))


async def test_status_durations(db, company, admin):
    service = OrderService(db, broker=OrderEventBroker())
    order = await service.create_order(company.id, _order_data())
    await service.update_status(company.id, order.id, "em_producao", user=admin)

    later = datetime.now(timezone.utc) + timedelta(hours=1)
    durations = await service.status_durations(company.id, order.id, now=later)

    assert set(durations) == {"pendente", "em_producao"}
    assert durations["em_producao"] >= 3500
    assert await service.last_delivered_at(company.id, order.id) is None


def test_payment_summary_overpaid():
    summary = payment_summary(Decimal("100"), Decimal("120"))
    assert summary["status"] == "pago"
    assert summary["remaining"] == Decimal("0")
