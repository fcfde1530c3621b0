from pydantic import BaseModel, Field, computed_field, field_validator

from graphpos.core.validators import format_order_number
from graphpos.models.order import ORDER_STATUS_LABELS, OrderStatus, PaymentMethod
from graphpos.schemas.base import BaseResponseSchema
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
import uuid


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseModel):
    """Order item creation schema."""
    product_id: Optional[uuid.UUID] = None
    product_name: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    attributes: Optional[dict] = None
    notes: Optional[str] = None


class OrderItemResponse(BaseResponseSchema):
    """Order item response schema."""
    id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    total: Decimal
    attributes: Optional[dict] = None
    notes: Optional[str] = None


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseModel):
    """Order creation schema."""
    customer_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = Field(None, max_length=200)
    status: OrderStatus = OrderStatus.ORCAMENTO
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    """
    Status change request.

    status is kept as a plain string so legacy values ("pronto") can be
    normalized by the service before validation.
    """
    status: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    user_id: Optional[uuid.UUID] = None

    @field_validator("notes")
    @classmethod
    def blank_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class OrderCustomerSummary(BaseResponseSchema):
    id: uuid.UUID
    name: str
    phone: Optional[str] = None


class OrderBoardItem(BaseModel):
    """Item line preview for kanban cards."""
    product_name: str
    quantity: Decimal


class OrderBoardResponse(BaseModel):
    """Order card on the status board."""
    id: uuid.UUID
    order_number: int
    status: str
    version: int
    customer_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    customer: Optional[OrderCustomerSummary] = None
    total: Decimal
    amount_paid: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderBoardItem] = []

    @computed_field
    @property
    def status_label(self) -> str:
        return ORDER_STATUS_LABELS.get(self.status, self.status)

    @computed_field
    @property
    def display_number(self) -> str:
        return format_order_number(self.order_number)


class OrderResponse(BaseResponseSchema):
    """Order detail response schema."""
    id: uuid.UUID
    company_id: uuid.UUID
    order_number: int
    status: str
    version: int
    customer_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    amount_paid: Decimal
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
    cancelled_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    @computed_field
    @property
    def status_label(self) -> str:
        return ORDER_STATUS_LABELS.get(self.status, self.status)

    @computed_field
    @property
    def balance_due(self) -> Decimal:
        return max(Decimal("0"), self.total - self.amount_paid)


class OrderHistoryResponse(BaseResponseSchema):
    id: uuid.UUID
    order_id: uuid.UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class StatusDurationsResponse(BaseModel):
    """Seconds spent in each status, plus last delivery time."""
    order_id: uuid.UUID
    durations: Dict[str, float]
    last_delivered_at: Optional[datetime] = None


# ==================== PAYMENT SCHEMAS ====================

class OrderPaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    method: Optional[PaymentMethod] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class OrderPaymentResponse(BaseResponseSchema):
    id: uuid.UUID
    order_id: uuid.UUID
    amount: Decimal
    status: str
    method: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime


class PaymentSummary(BaseModel):
    total: Decimal
    paid: Decimal
    remaining: Decimal
    status: str
