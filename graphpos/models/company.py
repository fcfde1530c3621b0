import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from graphpos.database import Base
from graphpos.db_types import JSONType, UUIDType

if TYPE_CHECKING:
    from graphpos.models.plan import Plan


class SubscriptionStatus(str, Enum):
    """Subscription status of a tenant."""
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


class Company(Base):
    """
    Tenant model. One row per store; every other table carries company_id.

    Catalog presentation lives in catalog_settings and is read through
    schemas.company.CatalogSettings, which supplies the defaults.
    """
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Contact
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    document: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    instagram: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    facebook: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Address
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)

    # Catalog
    minimum_order_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    catalog_settings: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Subscription
    plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True
    )
    subscription_status: Mapped[str] = mapped_column(
        String(50),
        default="trial",
        nullable=False,
        comment="trial, active, past_due, canceled, expired"
    )
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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

    plan: Mapped[Optional["Plan"]] = relationship("Plan")

    def __repr__(self) -> str:
        return f"<Company(slug='{self.slug}')>"
