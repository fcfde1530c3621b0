from typing import Optional
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.core.tenant_context import get_company_by_id
from graphpos.models.company import Company
from graphpos.schemas.company import CatalogSettings, CompanyResponse, CompanyUpdate
from graphpos.services.cache_service import CacheService, get_cache

logger = logging.getLogger(__name__)


def build_company_response(company: Company) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        name=company.name,
        slug=company.slug,
        logo_url=company.logo_url,
        description=company.description,
        phone=company.phone,
        whatsapp=company.whatsapp,
        email=company.email,
        document=company.document,
        instagram=company.instagram,
        facebook=company.facebook,
        address=company.address,
        city=company.city,
        state=company.state,
        minimum_order_value=company.minimum_order_value,
        plan_id=company.plan_id,
        subscription_status=company.subscription_status,
        trial_ends_at=company.trial_ends_at,
        is_active=company.is_active,
        catalog=CatalogSettings.from_stored(company.catalog_settings),
    )


class CompanyService:
    """Tenant profile and storefront configuration."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or get_cache()

    async def get_company(self, company_id: uuid.UUID) -> Optional[Company]:
        return await get_company_by_id(self.db, company_id)

    async def update_company(self, company_id: uuid.UUID, data: CompanyUpdate) -> Optional[Company]:
        company = await self.get_company(company_id)
        if not company:
            return None

        update_data = data.model_dump(exclude_unset=True)
        new_slug = update_data.get("slug")
        if new_slug and new_slug != company.slug:
            clash = await self.db.execute(
                select(Company.id).where(Company.slug == new_slug, Company.id != company.id)
            )
            if clash.first() is not None:
                raise ValueError("Slug já está em uso por outra loja")

        for key, value in update_data.items():
            setattr(company, key, value)

        await self.db.commit()
        await self.cache.invalidate_storefront(company_id)
        logger.info("Company %s updated", company.slug)
        return company

    async def update_catalog_settings(
        self,
        company_id: uuid.UUID,
        catalog: CatalogSettings,
    ) -> Optional[Company]:
        """Replace the storefront configuration record."""
        company = await self.get_company(company_id)
        if not company:
            return None

        company.catalog_settings = catalog.model_dump(mode="json")
        await self.db.commit()
        await self.cache.invalidate_storefront(company_id)
        return company
