from pydantic import BaseModel, Field

from typing import Optional, List, Literal
from decimal import Decimal


class CartItem(BaseModel):
    """Sanitized cart line. quantity is never below min_order_quantity."""
    product_id: str
    product_slug: Optional[str] = None
    name: str
    image_url: Optional[str] = None
    unit_price: Decimal = Decimal("0")
    quantity: int = 1
    min_order_quantity: int = 1
    notes: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartItemInput(BaseModel):
    """Raw line sent by the storefront; sanitized by the cart repository."""
    product_id: str
    product_slug: Optional[str] = None
    name: str
    image_url: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: Optional[float] = None
    min_order_quantity: Optional[float] = None
    notes: Optional[str] = None


class CartUpsertRequest(CartItemInput):
    mode: Literal["sum", "replace"] = "sum"


class CartReplaceRequest(BaseModel):
    items: List[CartItemInput] = []


class CartQuantityUpdate(BaseModel):
    quantity: Optional[float] = Field(None)


class CartResponse(BaseModel):
    company_id: str
    items: List[CartItem]
    count: int
    subtotal: Decimal
    minimum_order_value: Optional[Decimal] = None
    meets_minimum: bool
