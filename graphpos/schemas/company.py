from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
import re
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graphpos.schemas.base import BaseResponseSchema, BaseUpdateSchema

HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class CatalogLayout(str, Enum):
    GRID = "grid"
    LIST = "list"


class CatalogFont(str, Enum):
    INTER = "Inter"
    POPPINS = "Poppins"
    MONTSERRAT = "Montserrat"
    ROBOTO = "Roboto"
    PLAYFAIR = "Playfair Display"


class CatalogColors(BaseModel):
    """Storefront palette. Every color is #RRGGBB."""
    model_config = ConfigDict(extra='ignore')

    primary: str = "#1a3a8f"
    secondary: str = "#3d8bef"
    accent: str = "#c9a84c"
    text: str = "#0f172a"
    header_bg: str = "#0f1b3d"
    header_text: str = "#ffffff"
    footer_bg: str = "#0f1b3d"
    footer_text: str = "#ffffff"
    price: str = "#1a3a8f"
    badge_bg: str = "#c9a84c"
    badge_text: str = "#2f2406"
    button_bg: str = "#3d8bef"
    button_text: str = "#ffffff"
    button_outline: str = "#3d8bef"
    card_bg: str = "#ffffff"
    card_border: str = "#e2e8f0"
    filter_bg: str = "#f1f5f9"
    filter_text: str = "#0f172a"

    @field_validator("*", mode="before")
    @classmethod
    def validate_hex(cls, v):
        if v is None:
            return v
        value = str(v).strip()
        if not HEX_COLOR.match(value):
            raise ValueError(f"Cor inválida: {value}")
        return value.lower()


class CatalogSettings(BaseModel):
    """
    Structured storefront configuration.

    Stored as JSON on Company.catalog_settings. Missing keys take the
    defaults below, so a company with no saved settings still renders.
    """
    model_config = ConfigDict(extra='ignore')

    title: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=1000)
    share_image_url: Optional[str] = None
    button_text: str = Field("Fazer pedido", max_length=40)
    show_prices: bool = True
    show_contact: bool = True
    contact_url: Optional[str] = None
    whatsapp_message_template: Optional[str] = None
    font: CatalogFont = CatalogFont.INTER
    layout: CatalogLayout = CatalogLayout.GRID
    columns_mobile: int = Field(2, ge=1, le=2)
    columns_desktop: int = Field(4, ge=2, le=6)
    colors: CatalogColors = Field(default_factory=CatalogColors)

    @classmethod
    def from_stored(cls, data: Optional[dict]) -> "CatalogSettings":
        """Build settings from the stored JSON, ignoring null values."""
        if not data:
            return cls()
        cleaned = {k: v for k, v in data.items() if v is not None}
        if isinstance(cleaned.get("colors"), dict):
            cleaned["colors"] = {k: v for k, v in cleaned["colors"].items() if v is not None}
        return cls.model_validate(cleaned)


class CompanyUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=2, max_length=120)
    logo_url: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    document: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    minimum_order_value: Optional[Decimal] = Field(None, ge=0)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError("Slug deve conter apenas letras minúsculas, números e hífens")
        return v

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class CompanyResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    slug: str
    logo_url: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    document: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    minimum_order_value: Optional[Decimal] = None
    plan_id: Optional[uuid.UUID] = None
    subscription_status: str
    trial_ends_at: Optional[datetime] = None
    is_active: bool
    catalog: CatalogSettings


class PublicCompanyResponse(BaseModel):
    """What the storefront needs to render its chrome."""
    id: uuid.UUID
    name: str
    slug: str
    logo_url: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    minimum_order_value: Optional[Decimal] = None
    catalog: CatalogSettings
