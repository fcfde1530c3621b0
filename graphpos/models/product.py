import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from graphpos.database import Base
from graphpos.db_types import UUIDType


class Product(Base):
    """
    Product model with cost-based pricing and public catalog fields.

    catalog_visible replaces the two legacy flags catalog_enabled and
    show_in_catalog; both names remain readable through properties.
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint('company_id', 'slug', name='uq_product_company_slug'),
        Index('ix_product_company_catalog', 'company_id', 'catalog_visible', 'is_active'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Basic Info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(280), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), default="un", nullable=False)

    # Stock
    track_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"), nullable=False)
    min_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"), nullable=False)

    # Cost-based pricing
    base_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    labor_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    waste_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0.00"), nullable=False)
    profit_margin: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0.00"), nullable=False)
    final_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Fixed price overriding the suggested price"
    )

    # Promotion window
    promo_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    promo_start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    promo_end_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Public catalog
    catalog_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    catalog_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    catalog_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    catalog_min_order: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    catalog_sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    catalog_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    price_tiers: Mapped[List["PriceTier"]] = relationship(
        "PriceTier",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="PriceTier.min_quantity"
    )
    supplies: Mapped[List["ProductSupply"]] = relationship(
        "ProductSupply",
        back_populates="product",
        cascade="all, delete-orphan"
    )

    # Legacy flag names
    @property
    def catalog_enabled(self) -> bool:
        return self.catalog_visible

    @property
    def show_in_catalog(self) -> bool:
        return self.catalog_visible

    @property
    def supplies_cost(self) -> Decimal:
        """Cost of the supplies consumed by one unit."""
        return sum(
            (entry.quantity * entry.supply.cost_per_unit for entry in self.supplies if entry.supply),
            Decimal("0"),
        )

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', slug='{self.slug}')>"


class PriceTier(Base):
    """Volume price: applies when min_quantity <= qty <= max_quantity."""
    __tablename__ = "price_tiers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    max_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="NULL = open ended")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="price_tiers")

    def __repr__(self) -> str:
        return f"<PriceTier(min={self.min_quantity}, max={self.max_quantity}, price={self.price})>"


class Supply(Base):
    """Raw material consumed by products."""
    __tablename__ = "supplies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="un", nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<Supply(name='{self.name}')>"


class ProductSupply(Base):
    """Quantity of a supply used per product unit."""
    __tablename__ = "product_supplies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    supply_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("supplies.id", ondelete="CASCADE"),
        nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="supplies")
    supply: Mapped["Supply"] = relationship("Supply", lazy="joined")
