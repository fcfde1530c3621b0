from typing import List, Optional, Dict
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, or_, cast, String
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from graphpos.core.enum_utils import get_enum_value, normalize_order_status
from graphpos.core.permissions import PermissionChecker
from graphpos.models.customer import Customer
from graphpos.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory,
    OrderPayment, OrderNotification, PaymentStatus,
)
from graphpos.models.user import User
from graphpos.schemas.order import OrderCreate
from graphpos.services.order_events import (
    OrderEventBroker, get_order_broker,
    ORDER_CREATED, ORDER_STATUS_CHANGED, ORDER_PAYMENT_ADDED,
)
from graphpos.services.order_state_machine import (
    history_note, parse_status, status_label, transition_order,
)

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Pedido nao encontrado"
STATUS_UPDATE_FORBIDDEN = "Sem permissão para alterar o status do pedido"


class OrderNotFoundError(LookupError):
    """Order does not exist in the tenant."""
    pass


class OrderPermissionError(PermissionError):
    """User role may not change order statuses."""
    pass


def payment_summary(total: Decimal, paid: Decimal) -> Dict[str, object]:
    """
    Remaining balance and payment status for an order.

    pago when paid covers the total, parcial when something was paid,
    pendente otherwise.
    """
    total = Decimal(total or 0)
    paid = Decimal(paid or 0)
    remaining = max(Decimal("0"), total - paid)
    if paid >= total:
        status = PaymentStatus.PAGO.value
    elif paid > 0:
        status = PaymentStatus.PARCIAL.value
    else:
        status = PaymentStatus.PENDENTE.value
    return {"total": total, "paid": paid, "remaining": remaining, "status": status}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderService:
    """Service for the order workflow: board listing, status moves, payments."""

    def __init__(self, db: AsyncSession, broker: Optional[OrderEventBroker] = None):
        self.db = db
        self.broker = broker or get_order_broker()

    # ==================== QUERIES ====================

    async def next_order_number(self, company_id: uuid.UUID) -> int:
        """Sequential display number per tenant."""
        stmt = select(func.max(Order.order_number)).where(Order.company_id == company_id)
        current = (await self.db.execute(stmt)).scalar()
        return (current or 0) + 1

    async def list_board_orders(
        self,
        company_id: uuid.UUID,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Order]:
        """Every order of the tenant for the board, newest first. Not paginated."""
        stmt = (
            select(Order)
            .options(
                selectinload(Order.customer),
                selectinload(Order.items),
            )
            .where(Order.company_id == company_id)
            .order_by(Order.created_at.desc())
        )

        if status:
            stmt = stmt.where(Order.status == status)

        if search:
            term = search.strip()
            search_filter = f"%{term}%"
            stmt = stmt.outerjoin(Customer, Order.customer_id == Customer.id).where(
                or_(
                    cast(Order.order_number, String).ilike(search_filter),
                    Order.customer_name.ilike(search_filter),
                    Customer.name.ilike(search_filter),
                )
            )

        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_order(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        include_all: bool = False,
    ) -> Optional[Order]:
        """Get order by ID within the tenant."""
        stmt = select(Order).where(
            Order.id == order_id,
            Order.company_id == company_id,
        )

        if include_all:
            stmt = stmt.options(
                selectinload(Order.customer),
                selectinload(Order.items),
                selectinload(Order.status_history),
                selectinload(Order.payments),
            )
        else:
            stmt = stmt.options(
                selectinload(Order.customer),
                selectinload(Order.items),
            )

        stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _require_order(self, company_id: uuid.UUID, order_id: uuid.UUID,
                             include_all: bool = False) -> Order:
        order = await self.get_order(company_id, order_id, include_all=include_all)
        if order is None:
            raise OrderNotFoundError(ORDER_NOT_FOUND)
        return order

    async def list_history(self, company_id: uuid.UUID, order_id: uuid.UUID) -> List[OrderStatusHistory]:
        """Status history of an order, oldest first."""
        await self._require_order(company_id, order_id)
        stmt = (
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def status_durations(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Dict[str, float]:
        """
        Seconds spent in each status, rebuilt from the history rows.

        Each row opens a segment that ends at the next row; the last one
        runs until now.
        """
        history = await self.list_history(company_id, order_id)
        now = now or datetime.now(timezone.utc)
        durations: Dict[str, float] = {}

        for index, entry in enumerate(history):
            start = _as_utc(entry.created_at)
            if index + 1 < len(history):
                end = _as_utc(history[index + 1].created_at)
            else:
                end = now
            seconds = max(0.0, (end - start).total_seconds())
            durations[entry.to_status] = durations.get(entry.to_status, 0.0) + seconds

        return durations

    async def last_delivered_at(self, company_id: uuid.UUID, order_id: uuid.UUID) -> Optional[datetime]:
        history = await self.list_history(company_id, order_id)
        delivered = [
            _as_utc(h.created_at) for h in history
            if h.to_status == OrderStatus.ENTREGUE.value
        ]
        return max(delivered) if delivered else None

    # ==================== COMMANDS ====================

    async def create_order(
        self,
        company_id: uuid.UUID,
        data: OrderCreate,
        created_by: Optional[uuid.UUID] = None,
    ) -> Order:
        """Create a new order with its items and first history row."""
        customer_name = data.customer_name
        if data.customer_id:
            customer = (await self.db.execute(
                select(Customer).where(
                    Customer.id == data.customer_id,
                    Customer.company_id == company_id,
                )
            )).scalar_one_or_none()
            if customer is None:
                raise ValueError("Cliente não encontrado")
            customer_name = customer_name or customer.name

        items = []
        subtotal = Decimal("0.00")
        for item_data in data.items:
            item_total = item_data.quantity * item_data.unit_price - item_data.discount
            if item_total < 0:
                raise ValueError(f"Desconto maior que o valor do item {item_data.product_name}")
            items.append(OrderItem(
                product_id=item_data.product_id,
                product_name=item_data.product_name,
                quantity=item_data.quantity,
                unit_price=item_data.unit_price,
                discount=item_data.discount,
                total=item_total,
                attributes=item_data.attributes,
                notes=item_data.notes,
            ))
            subtotal += item_total

        total = subtotal - data.discount
        if total < 0:
            raise ValueError("Desconto maior que o subtotal do pedido")

        status = get_enum_value(data.status)
        order_number = await self.next_order_number(company_id)

        try:
            order = Order(
                company_id=company_id,
                order_number=order_number,
                customer_id=data.customer_id,
                customer_name=customer_name,
                status=status,
                version=1,
                subtotal=subtotal,
                discount=data.discount,
                total=total,
                payment_method=get_enum_value(data.payment_method),
                payment_status=PaymentStatus.PENDENTE.value,
                amount_paid=Decimal("0.00"),
                notes=data.notes,
                created_by=created_by,
                updated_by=created_by,
                items=items,
            )
            self.db.add(order)
            await self.db.flush()

            self.db.add(OrderStatusHistory(
                order_id=order.id,
                from_status=None,
                to_status=status,
                changed_by=created_by,
                notes="Pedido criado",
            ))
            self.db.add(OrderNotification(
                company_id=company_id,
                order_id=order.id,
                type="new_order",
                title=f"Pedido #{order_number}",
                body=f"Novo pedido de {customer_name or 'Cliente'}",
            ))

            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error("Database integrity error creating order: %s", e)
            raise ValueError("Não foi possível criar o pedido")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database error creating order: %s", e)
            raise

        logger.info("Order #%s created for company %s", order_number, company_id)
        await self.broker.publish(company_id, ORDER_CREATED, order.id, order.updated_at)
        return await self._require_order(company_id, order.id, include_all=True)

    async def update_status(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        new_status: Optional[str],
        user: User,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Move an order to a new status.

        Raises:
            OrderTransitionError: Missing/unknown status or move not allowed (400)
            OrderPermissionError: Role may not change statuses (403)
            ReactivationForbiddenError: Canceled -> pendente by other roles (403)
            OrderNotFoundError: No such order in the tenant (404)
        """
        if not PermissionChecker(user).can_update_order_status():
            raise OrderPermissionError(STATUS_UPDATE_FORBIDDEN)

        target = parse_status(new_status)
        order = await self._require_order(company_id, order_id)

        if normalize_order_status(order.status) == target:
            return await self._require_order(company_id, order_id, include_all=True)

        previous = transition_order(order, target, user_id=user.id, role=user.role, notes=notes)
        label = status_label(target)
        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=previous,
            to_status=target,
            changed_by=user.id,
            notes=history_note(previous, target, notes),
        ))
        self.db.add(OrderNotification(
            company_id=company_id,
            order_id=order.id,
            type="status_change",
            title=f"Pedido #{order.order_number}",
            body=f"Status alterado para: {label}",
        ))

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database error updating status of order %s: %s", order_id, e)
            raise

        logger.info(
            "Order #%s moved %s -> %s by %s",
            order.order_number, previous, target, user.id,
        )
        await self.broker.publish(company_id, ORDER_STATUS_CHANGED, order.id, order.updated_at)
        return await self._require_order(company_id, order_id, include_all=True)

    async def add_payment(
        self,
        company_id: uuid.UUID,
        order_id: uuid.UUID,
        amount: Decimal,
        method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> OrderPayment:
        """Record a payment and recompute the order's paid amount and status."""
        if amount is None or Decimal(amount) <= 0:
            raise ValueError("Valor do pagamento deve ser maior que zero")

        order = await self._require_order(company_id, order_id, include_all=True)
        if order.status == OrderStatus.CANCELADO.value:
            raise ValueError("Pedido cancelado não pode receber pagamentos")

        now = datetime.now(timezone.utc)
        payment = OrderPayment(
            order_id=order.id,
            company_id=company_id,
            amount=Decimal(amount),
            status=PaymentStatus.PAGO.value,
            method=get_enum_value(method),
            paid_at=paid_at or now,
            notes=notes,
            created_by=user_id,
        )
        order.payments.append(payment)

        paid = sum(
            (p.amount for p in order.payments if p.status == PaymentStatus.PAGO.value),
            Decimal("0.00"),
        )
        summary = payment_summary(order.total, paid)
        order.amount_paid = paid
        order.payment_status = summary["status"]
        if method and not order.payment_method:
            order.payment_method = get_enum_value(method)
        order.updated_at = now
        order.version = (order.version or 0) + 1

        self.db.add(OrderNotification(
            company_id=company_id,
            order_id=order.id,
            type="payment",
            title=f"Pedido #{order.order_number}",
            body=f"Pagamento registrado: R$ {Decimal(amount):.2f}",
        ))

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Database error adding payment to order %s: %s", order_id, e)
            raise

        logger.info("Payment of %s recorded on order #%s", amount, order.order_number)
        await self.broker.publish(company_id, ORDER_PAYMENT_ADDED, order.id, order.updated_at)
        return payment

    async def get_payment_summary(self, company_id: uuid.UUID, order_id: uuid.UUID) -> Dict[str, object]:
        order = await self._require_order(company_id, order_id)
        return payment_summary(order.total, order.amount_paid)

    async def list_payments(self, company_id: uuid.UUID, order_id: uuid.UUID) -> List[OrderPayment]:
        order = await self._require_order(company_id, order_id, include_all=True)
        return list(order.payments)
