from pydantic import BaseModel, Field, field_validator, model_validator, computed_field

from graphpos.schemas.base import BaseResponseSchema
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid


# ==================== PRICE TIER SCHEMAS ====================

class PriceTierCreate(BaseModel):
    """Volume price tier. max_quantity None means open ended."""
    min_quantity: int = Field(..., ge=1)
    max_quantity: Optional[int] = Field(None, ge=1)
    price: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max_quantity is not None and self.max_quantity < self.min_quantity:
            raise ValueError("Quantidade máxima deve ser maior ou igual à mínima")
        return self


class PriceTierResponse(BaseResponseSchema):
    id: uuid.UUID
    min_quantity: int
    max_quantity: Optional[int] = None
    price: Decimal


# ==================== VISIBILITY ====================

class CatalogVisibilityInput(BaseModel):
    """
    Accepts the current catalog_visible flag and the two legacy flags.

    When any of the three is sent, the product is visible if at least one
    of the sent values is true.
    """
    catalog_visible: Optional[bool] = None
    catalog_enabled: Optional[bool] = None
    show_in_catalog: Optional[bool] = None

    def resolved_visibility(self) -> Optional[bool]:
        sent = [
            v for v in (self.catalog_visible, self.catalog_enabled, self.show_in_catalog)
            if v is not None
        ]
        if not sent:
            return None
        return any(sent)


# ==================== PRODUCT SCHEMAS ====================

class ProductBase(CatalogVisibilityInput):
    """Base product schema."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=280)
    sku: Optional[str] = Field(None, max_length=50)
    barcode: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    unit: str = Field(default="un", max_length=20)

    track_stock: bool = False
    stock_quantity: Decimal = Field(default=Decimal("0"))
    min_stock: Decimal = Field(default=Decimal("0"), ge=0)

    base_cost: Decimal = Field(default=Decimal("0"), ge=0)
    labor_cost: Decimal = Field(default=Decimal("0"), ge=0)
    waste_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    profit_margin: Decimal = Field(default=Decimal("0"), ge=0)
    final_price: Optional[Decimal] = Field(None, ge=0)

    promo_price: Optional[Decimal] = Field(None, ge=0)
    promo_start_at: Optional[datetime] = None
    promo_end_at: Optional[datetime] = None

    catalog_featured: bool = False
    catalog_price: Optional[Decimal] = Field(None, ge=0)
    catalog_min_order: int = Field(default=1, ge=1)
    catalog_sort_order: int = 0
    catalog_description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nome é obrigatório")
        return v

    @model_validator(mode="after")
    def check_promo_window(self):
        if self.promo_start_at and self.promo_end_at and self.promo_end_at < self.promo_start_at:
            raise ValueError("Fim da promoção deve ser posterior ao início")
        return self


class ProductCreate(ProductBase):
    """Product creation schema."""
    price_tiers: List[PriceTierCreate] = []


class ProductUpdate(CatalogVisibilityInput):
    """Product update schema. Only sent fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=280)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    unit: Optional[str] = None
    track_stock: Optional[bool] = None
    stock_quantity: Optional[Decimal] = None
    min_stock: Optional[Decimal] = Field(None, ge=0)
    base_cost: Optional[Decimal] = Field(None, ge=0)
    labor_cost: Optional[Decimal] = Field(None, ge=0)
    waste_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    profit_margin: Optional[Decimal] = Field(None, ge=0)
    final_price: Optional[Decimal] = Field(None, ge=0)
    promo_price: Optional[Decimal] = Field(None, ge=0)
    promo_start_at: Optional[datetime] = None
    promo_end_at: Optional[datetime] = None
    catalog_featured: Optional[bool] = None
    catalog_price: Optional[Decimal] = Field(None, ge=0)
    catalog_min_order: Optional[int] = Field(None, ge=1)
    catalog_sort_order: Optional[int] = None
    catalog_description: Optional[str] = None
    is_active: Optional[bool] = None
    price_tiers: Optional[List[PriceTierCreate]] = None


class ProductResponse(BaseResponseSchema):
    """Product response schema. Emits all three visibility keys."""
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    slug: str
    sku: Optional[str] = None
    barcode: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    unit: str
    track_stock: bool
    stock_quantity: Decimal
    min_stock: Decimal
    base_cost: Decimal
    labor_cost: Decimal
    waste_percentage: Decimal
    profit_margin: Decimal
    final_price: Optional[Decimal] = None
    promo_price: Optional[Decimal] = None
    promo_start_at: Optional[datetime] = None
    promo_end_at: Optional[datetime] = None
    catalog_visible: bool
    catalog_featured: bool
    catalog_price: Optional[Decimal] = None
    catalog_min_order: int
    catalog_sort_order: int
    catalog_description: Optional[str] = None
    is_active: bool
    price_tiers: List[PriceTierResponse] = []
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def catalog_enabled(self) -> bool:
        return self.catalog_visible

    @computed_field
    @property
    def show_in_catalog(self) -> bool:
        return self.catalog_visible


class ProductListResponse(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== PUBLIC CATALOG ====================

class CatalogProductResponse(BaseModel):
    """Product as shown on the public storefront."""
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    unit: str
    featured: bool
    min_order_quantity: int
    price: Optional[Decimal] = None
    base_price: Optional[Decimal] = None
    promotion_active: bool = False
    price_tiers: List[PriceTierResponse] = []


class CatalogProductListResponse(BaseModel):
    items: List[CatalogProductResponse]
    total: int
