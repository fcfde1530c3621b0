"""Tests for the order status board state."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from graphpos.board import BackendError, OrderStatusBoard, RecordingNotifier
from graphpos.board.board import STATUS_ORDER, column_label, item_preview
from graphpos.schemas.order import OrderBoardResponse

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _row(status="pendente", version=1, number=1, customer_name="Maria Souza", items=None, order_id=None):
    return {
        "id": str(order_id or uuid.uuid4()),
        "order_number": number,
        "status": status,
        "version": version,
        "customer_name": customer_name,
        "total": "100.00",
        "amount_paid": "0.00",
        "payment_status": "pendente",
        "created_at": NOW.isoformat(),
        "updated_at": NOW.isoformat(),
        "items": items if items is not None else [{"product_name": "Cartão de visita", "quantity": "500"}],
    }


def _board(rows, role="admin", confirm_answer=False):
    client = AsyncMock()
    client.list_orders.return_value = rows
    notifier = RecordingNotifier()
    confirm = AsyncMock(return_value=confirm_answer)
    board = OrderStatusBoard(client, notifier, confirm, role=role, user_id="user-1")
    return board, client, notifier, confirm


async def test_load_and_group_by_status():
    rows = [_row("pendente", number=1), _row("em_producao", number=2), _row("pendente", number=3)]
    board, _, _, _ = _board(rows)

    assert await board.load()
    grouped = board.orders_by_status()

    assert list(grouped)[: len(STATUS_ORDER)] == STATUS_ORDER
    assert [o.order_number for o in grouped["pendente"]] == [1, 3]
    assert [o.order_number for o in grouped["em_producao"]] == [2]
    assert grouped["entregue"] == []


async def test_unknown_status_gets_extra_column():
    board, _, _, _ = _board([_row("em_revisao_final")])
    await board.load()

    columns = board.columns()
    assert columns[-1].id == "em_revisao_final"
    assert columns[-1].label == "Em revisao final"


async def test_load_failure_shows_toast():
    board, client, notifier, _ = _board([])
    client.list_orders.side_effect = BackendError("Servidor indisponível", status_code=500)

    assert not await board.load()
    assert notifier.errors[0].title == "Erro ao carregar pedidos"
    assert board.loading is False


async def test_search_by_number_and_customer():
    rows = [_row(number=12, customer_name="Ana"), _row(number=34, customer_name="João Pedro")]
    board, _, _, _ = _board(rows)
    await board.load()

    assert [o.order_number for o in board.filtered_orders("12")] == [12]
    assert [o.order_number for o in board.filtered_orders("joão")] == [34]
    assert len(board.filtered_orders("  ")) == 2


async def test_successful_move_applies_server_version():
    order_id = uuid.uuid4()
    board, client, notifier, _ = _board([_row("em_producao", version=4, order_id=order_id)])
    await board.load()
    client.update_status.return_value = {"id": str(order_id), "status": "finalizado", "version": 5}

    assert await board.handle_drag_end(order_id, "finalizado")

    client.update_status.assert_awaited_once_with(str(order_id), "finalizado", user_id="user-1")
    order = board.find(order_id)
    assert order.status == "finalizado"
    assert order.version == 5
    assert not board.updating
    assert notifier.toasts == []


async def test_pendente_move_uses_art_answer():
    order_id = uuid.uuid4()
    board, client, _, confirm = _board([_row("pendente", order_id=order_id)], confirm_answer=True)
    await board.load()
    client.update_status.return_value = {"status": "produzindo_arte", "version": 2}

    await board.handle_drag_end(order_id, "em_producao")

    confirm.assert_awaited_once()
    assert client.update_status.await_args.args[1] == "produzindo_arte"
    assert board.find(order_id).status == "produzindo_arte"


async def test_failed_move_reverts_with_single_toast():
    order_id = uuid.uuid4()
    board, client, notifier, _ = _board([_row("em_producao", order_id=order_id)])
    await board.load()
    client.update_status.side_effect = BackendError("Mudança de status não permitida", status_code=400)

    assert not await board.handle_drag_end(order_id, "entregue")

    assert board.find(order_id).status == "em_producao"
    assert len(notifier.errors) == 1
    assert notifier.errors[0].title == "Erro ao atualizar status"
    assert notifier.errors[0].description == "Mudança de status não permitida"
    assert not board.updating


@pytest.mark.parametrize("code,title", [(401, "Sessão expirada"), (403, "Sem permissão")])
async def test_failure_title_by_status_code(code, title):
    order_id = uuid.uuid4()
    board, client, notifier, _ = _board([_row("em_producao", order_id=order_id)])
    await board.load()
    client.update_status.side_effect = BackendError("negado", status_code=code)

    await board.handle_drag_end(order_id, "finalizado")

    assert notifier.errors[0].title == title


async def test_blocked_reactivation_never_calls_backend():
    order_id = uuid.uuid4()
    board, client, notifier, _ = _board([_row("cancelado", order_id=order_id)], role="caixa")
    await board.load()

    assert not await board.handle_drag_end(order_id, "pendente")

    client.update_status.assert_not_awaited()
    assert board.find(order_id).status == "cancelado"
    assert notifier.errors[0].title == "Sem permissão"


async def test_drop_on_same_column_does_nothing():
    order_id = uuid.uuid4()
    board, client, _, _ = _board([_row("finalizado", order_id=order_id)])
    await board.load()

    assert not await board.handle_drag_end(order_id, "finalizado")
    assert not await board.handle_drag_end(order_id, None)
    client.update_status.assert_not_awaited()


async def test_refetch_keeps_local_move_until_server_catches_up():
    order_id = uuid.uuid4()
    board, client, _, _ = _board([_row("em_producao", version=4, order_id=order_id)])
    await board.load()
    client.update_status.return_value = {"status": "finalizado", "version": 5}
    await board.handle_drag_end(order_id, "finalizado")

    # a refetch that started before the update answers with the old row
    client.list_orders.return_value = [_row("em_producao", version=4, order_id=order_id)]
    await board.refetch()
    assert board.find(order_id).status == "finalizado"

    client.list_orders.return_value = [_row("aguardando_retirada", version=6, order_id=order_id)]
    await board.refetch()
    assert board.find(order_id).status == "aguardando_retirada"


async def test_refetch_during_update_keeps_optimistic_row():
    order_id = uuid.uuid4()
    board, client, _, _ = _board([_row("em_producao", version=1, order_id=order_id)])
    await board.load()

    async def slow_update(*args, **kwargs):
        client.list_orders.return_value = [_row("em_producao", version=1, order_id=order_id)]
        await board.refetch()
        assert board.find(order_id).status == "finalizado"
        return {"status": "finalizado", "version": 2}

    client.update_status.side_effect = slow_update
    assert await board.handle_drag_end(order_id, "finalizado")
    assert board.find(order_id).status == "finalizado"


async def test_follow_refetches_on_each_event():
    board, client, _, _ = _board([_row()])

    async def events():
        yield {"type": "order_created", "order_id": "a"}
        yield {"type": "order_status_changed", "order_id": "b"}

    await board.follow(events())
    assert client.list_orders.await_count == 2


def test_item_preview():
    order = OrderBoardResponse.model_validate(_row(items=[
        {"product_name": "Banner", "quantity": "2.000"},
        {"product_name": "Adesivo", "quantity": "1.5"},
        {"product_name": "Flyer", "quantity": "1000"},
    ]))
    assert item_preview(order) == "Banner x2, Adesivo x1.5 +1"

    empty = OrderBoardResponse.model_validate(_row(items=[]))
    assert item_preview(empty) == "Sem produtos"


def test_column_label():
    assert column_label("em_producao") == "Em Produção"
    assert column_label("novo_status") == "Novo status"
