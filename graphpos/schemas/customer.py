from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator

from graphpos.core.validators import only_digits, validate_cpf_cnpj, validate_phone
from graphpos.schemas.base import BaseResponseSchema
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
import uuid

INVALID_DOCUMENT = "CPF/CNPJ inválido"
INVALID_PHONE = "Telefone inválido. Use um celular brasileiro válido."


def _clean_document(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    digits = only_digits(v)
    if not digits:
        return None
    if not validate_cpf_cnpj(digits):
        raise ValueError(INVALID_DOCUMENT)
    return digits


def _clean_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    digits = only_digits(v)
    if not digits:
        return None
    if not validate_phone(digits):
        raise ValueError(INVALID_PHONE)
    return digits


# ==================== CUSTOMER SCHEMAS ====================

class CustomerBase(BaseModel):
    """Base customer schema. Document and phone leave here as digits."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    document: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    photo_url: Optional[str] = Field(None, max_length=500)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=2)
    zip_code: Optional[str] = Field(None, max_length=9)
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nome é obrigatório")
        return v

    @field_validator("document")
    @classmethod
    def check_document(cls, v: Optional[str]) -> Optional[str]:
        return _clean_document(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return _clean_phone(v)

    @field_validator("zip_code")
    @classmethod
    def zip_digits(cls, v: Optional[str]) -> Optional[str]:
        return only_digits(v) or None if v is not None else None


class CustomerCreate(CustomerBase):
    """Customer creation schema."""
    pass


class CustomerUpdate(BaseModel):
    """Customer update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    document: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("document")
    @classmethod
    def check_document(cls, v: Optional[str]) -> Optional[str]:
        return _clean_document(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return _clean_phone(v)


class CustomerResponse(BaseResponseSchema):
    """Customer response schema."""
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    document: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class CustomerListResponse(BaseModel):
    """Paginated customer list."""
    items: List[CustomerResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class CustomerBirthday(BaseModel):
    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    date_of_birth: date
    age: Optional[int] = None
    days_until: int
    is_today: bool


class CustomerOrderSummary(BaseModel):
    id: uuid.UUID
    order_number: int
    status: str
    total: Decimal
    amount_paid: Decimal
    created_at: datetime


class CustomerHistory(BaseModel):
    """Orders of a customer with spending totals."""
    customer: CustomerResponse
    orders: List[CustomerOrderSummary]
    order_count: int
    total_spent: Decimal
    pending_balance: Decimal
