import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from graphpos.database import Base
from graphpos.db_types import JSONType, UUIDType


class BillingPeriod(str, Enum):
    """Billing interval of a plan."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


DEFAULT_PERIOD_DAYS = {
    BillingPeriod.MONTHLY.value: 30,
    BillingPeriod.YEARLY.value: 365,
}


class Plan(Base):
    """Subscription tier offered to tenants."""
    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    billing_period: Mapped[str] = mapped_column(
        String(50),
        default="monthly",
        nullable=False,
        comment="monthly, yearly"
    )
    period_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    features: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    max_users: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # External billing provider linkage
    cakto_plan_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    stripe_product_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Plan(name='{self.name}', price={self.price})>"
