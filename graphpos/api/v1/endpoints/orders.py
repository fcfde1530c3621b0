from typing import Optional, List
import uuid

from fastapi import APIRouter, HTTPException, status, Query
from fastapi.responses import StreamingResponse

from graphpos.api.deps import DB, CurrentUser, Tenant
from graphpos.schemas.order import (
    OrderBoardItem,
    OrderBoardResponse,
    OrderCreate,
    OrderCustomerSummary,
    OrderHistoryResponse,
    OrderPaymentCreate,
    OrderPaymentResponse,
    OrderResponse,
    OrderStatusUpdate,
    PaymentSummary,
    StatusDurationsResponse,
)
from graphpos.services.order_events import get_order_broker, stream_events
from graphpos.services.order_service import OrderNotFoundError, OrderService


router = APIRouter(tags=["Orders"])


def _build_board_response(order) -> OrderBoardResponse:
    """Build the board card from an Order model."""
    customer = None
    if order.customer:
        customer = OrderCustomerSummary(
            id=order.customer.id,
            name=order.customer.name,
            phone=order.customer.phone,
        )

    return OrderBoardResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        version=order.version,
        customer_id=order.customer_id,
        customer_name=order.display_customer_name,
        customer=customer,
        total=order.total,
        amount_paid=order.amount_paid,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[
            OrderBoardItem(product_name=item.product_name, quantity=item.quantity)
            for item in order.items
        ],
    )


def _not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=List[OrderBoardResponse])
async def list_orders(
    db: DB,
    tenant: Tenant,
    search: Optional[str] = Query(None, description="Order number or customer name"),
    status_filter: Optional[str] = Query(None, alias="status"),
):
    """All orders of the store for the status board, newest first."""
    orders = await OrderService(db).list_board_orders(
        tenant.company_id, search=search, status=status_filter
    )
    return [_build_board_response(o) for o in orders]


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(data: OrderCreate, db: DB, tenant: Tenant, current_user: CurrentUser):
    try:
        order = await OrderService(db).create_order(tenant.company_id, data, created_by=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return OrderResponse.model_validate(order)


@router.get("/events")
async def order_events(tenant: Tenant):
    """
    Server-Sent Events stream of order changes for the current store.

    Each event carries {type, order_id, updated_at}; boards refetch on it.
    """
    return StreamingResponse(
        stream_events(get_order_broker(), tenant.company_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: DB, tenant: Tenant):
    order = await OrderService(db).get_order(tenant.company_id, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pedido nao encontrado")
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    tenant: Tenant,
    current_user: CurrentUser,
):
    """
    Move an order to another status.

    Accepts the legacy "pronto" value. Cancelled orders can only be
    reactivated by admin or atendente.
    """
    try:
        order = await OrderService(db).update_status(
            tenant.company_id,
            order_id,
            data.status,
            user=current_user,
            notes=data.notes,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except OrderNotFoundError as e:
        raise _not_found(e)

    return OrderResponse.model_validate(order)


@router.get("/{order_id}/history", response_model=List[OrderHistoryResponse])
async def get_order_history(order_id: uuid.UUID, db: DB, tenant: Tenant):
    try:
        history = await OrderService(db).list_history(tenant.company_id, order_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
    return [OrderHistoryResponse.model_validate(h) for h in history]


@router.get("/{order_id}/durations", response_model=StatusDurationsResponse)
async def get_status_durations(order_id: uuid.UUID, db: DB, tenant: Tenant):
    """Seconds spent in each status and the last delivery time."""
    service = OrderService(db)
    try:
        durations = await service.status_durations(tenant.company_id, order_id)
        delivered_at = await service.last_delivered_at(tenant.company_id, order_id)
    except OrderNotFoundError as e:
        raise _not_found(e)

    return StatusDurationsResponse(
        order_id=order_id,
        durations=durations,
        last_delivered_at=delivered_at,
    )


@router.post(
    "/{order_id}/payments",
    response_model=OrderPaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(
    order_id: uuid.UUID,
    data: OrderPaymentCreate,
    db: DB,
    tenant: Tenant,
    current_user: CurrentUser,
):
    try:
        payment = await OrderService(db).add_payment(
            tenant.company_id,
            order_id,
            amount=data.amount,
            method=data.method,
            paid_at=data.paid_at,
            notes=data.notes,
            user_id=current_user.id,
        )
    except OrderNotFoundError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return OrderPaymentResponse.model_validate(payment)


@router.get("/{order_id}/payments", response_model=List[OrderPaymentResponse])
async def list_payments(order_id: uuid.UUID, db: DB, tenant: Tenant):
    try:
        payments = await OrderService(db).list_payments(tenant.company_id, order_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
    return [OrderPaymentResponse.model_validate(p) for p in payments]


@router.get("/{order_id}/payment-summary", response_model=PaymentSummary)
async def get_payment_summary(order_id: uuid.UUID, db: DB, tenant: Tenant):
    try:
        summary = await OrderService(db).get_payment_summary(tenant.company_id, order_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
    return PaymentSummary(**summary)
