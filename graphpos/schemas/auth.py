from typing import Optional
import uuid

from pydantic import BaseModel, EmailStr, Field, field_validator

from graphpos.core.permissions import AppRole
from graphpos.schemas.base import BaseResponseSchema, BaseCreateSchema


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class UserResponse(BaseResponseSchema):
    id: uuid.UUID
    email: str
    full_name: str
    role: str
    company_id: Optional[uuid.UUID] = None
    is_active: bool


class UserCreate(BaseCreateSchema):
    """Staff member created by a company admin."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: AppRole = AppRole.ATENDENTE

    @field_validator("role")
    @classmethod
    def no_platform_roles(cls, v: AppRole) -> AppRole:
        if v == AppRole.SUPER_ADMIN:
            raise ValueError("Papel não permitido")
        return v


class SignupRequest(BaseCreateSchema):
    """Creates a company and its first admin user."""
    company_name: str = Field(..., min_length=1, max_length=255)
    company_slug: Optional[str] = Field(None, max_length=120)
    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)
