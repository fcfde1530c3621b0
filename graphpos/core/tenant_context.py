"""
Tenant Context for the multi-tenant shop

Every store is a Company row; operational tables carry company_id.
Request handlers receive an explicit TenantContext instead of reading
ambient state, and services take the company id as an argument.

Resolution order (see middleware.tenant):
1. X-Tenant-ID header (company id)
2. X-Tenant-Slug header or subdomain (company slug)
3. company_id of the authenticated user

Usage:

    @router.get("/orders")
    async def list_orders(db: DB, tenant: Tenant):
        return await OrderService(db).list_board_orders(tenant.company_id)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.models.company import Company

logger = logging.getLogger(__name__)


class TenantNotFoundError(Exception):
    """Raised when tenant cannot be found."""
    pass


class TenantInactiveError(Exception):
    """Raised when tenant is not active."""
    pass


@dataclass(frozen=True)
class TenantRef:
    """Unresolved tenant identifier extracted from a request."""
    kind: str  # "id" or "slug"
    value: str


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant attached to a request."""
    company_id: uuid.UUID
    slug: str
    name: str

    @classmethod
    def from_company(cls, company: Company) -> "TenantContext":
        return cls(company_id=company.id, slug=company.slug, name=company.name)


async def get_company_by_id(db: AsyncSession, company_id: uuid.UUID | str) -> Optional[Company]:
    if not isinstance(company_id, uuid.UUID):
        try:
            company_id = uuid.UUID(str(company_id))
        except ValueError:
            return None
    result = await db.execute(select(Company).where(Company.id == company_id))
    return result.scalar_one_or_none()


async def get_company_by_slug(db: AsyncSession, slug: str) -> Optional[Company]:
    result = await db.execute(select(Company).where(Company.slug == slug.strip().lower()))
    return result.scalar_one_or_none()


async def resolve_tenant(db: AsyncSession, ref: TenantRef) -> TenantContext:
    """
    Resolve a TenantRef into an active TenantContext.

    Raises:
        TenantNotFoundError: If no company matches
        TenantInactiveError: If the company is disabled
    """
    if ref.kind == "id":
        company = await get_company_by_id(db, ref.value)
    else:
        company = await get_company_by_slug(db, ref.value)

    if company is None:
        raise TenantNotFoundError(f"Tenant {ref.kind}={ref.value} not found")
    if not company.is_active:
        raise TenantInactiveError(f"Tenant {company.slug} is not active")

    logger.debug("Tenant resolved: %s (%s)", company.slug, company.id)
    return TenantContext.from_company(company)


def get_tenant_ref(request: Request) -> Optional[TenantRef]:
    """Tenant identifier stored on request.state by the tenant middleware."""
    return getattr(request.state, "tenant_ref", None)
