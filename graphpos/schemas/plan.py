from pydantic import BaseModel, Field

from graphpos.models.plan import BillingPeriod
from graphpos.schemas.base import BaseResponseSchema
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid


class PlanCreate(BaseModel):
    """Plan creation schema. period_days defaults from billing_period."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    period_days: Optional[int] = Field(None, ge=1)
    features: List[str] = []
    max_users: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    cakto_plan_id: Optional[str] = Field(None, max_length=100)
    stripe_price_id: Optional[str] = Field(None, max_length=100)
    stripe_product_id: Optional[str] = Field(None, max_length=100)


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    billing_period: Optional[BillingPeriod] = None
    period_days: Optional[int] = Field(None, ge=1)
    features: Optional[List[str]] = None
    max_users: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    cakto_plan_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_product_id: Optional[str] = None


class PlanResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    billing_period: str
    period_days: int
    features: List[str] = []
    max_users: Optional[int] = None
    is_active: bool
    cakto_plan_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_product_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
