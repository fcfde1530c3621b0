"""
Public catalog reads.

Resolves a company by slug, lists its visible products with storefront
prices and caches the listings per tenant. No authentication.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, or_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.config import settings
from graphpos.core.tenant_context import get_company_by_slug
from graphpos.models.company import Company
from graphpos.models.product import Product, ProductSupply
from graphpos.schemas.company import CatalogSettings, PublicCompanyResponse
from graphpos.schemas.product import CatalogProductResponse, PriceTierResponse
from graphpos.services.cache_service import CacheService, get_cache
from graphpos.services.pricing_service import (
    is_promotion_active, money, resolve_product_base_price, resolve_product_price,
)

logger = logging.getLogger(__name__)

CATALOG_NOT_FOUND = "Catálogo não encontrado"


class CatalogNotFoundError(LookupError):
    pass


def build_catalog_product(product: Product, show_prices: bool = True) -> CatalogProductResponse:
    """Storefront view of a product with its resolved prices."""
    tiers = list(product.price_tiers or [])
    supplies_cost = product.supplies_cost
    minimum = max(1, product.catalog_min_order or 1)

    price = base_price = None
    promotion = False
    if show_prices:
        price = money(resolve_product_price(product, minimum, tiers, supplies_cost))
        base_price = money(resolve_product_base_price(product, minimum, tiers, supplies_cost))
        promotion = is_promotion_active(product)

    return CatalogProductResponse(
        id=product.id,
        name=product.name,
        slug=product.slug,
        description=product.catalog_description or product.description,
        image_url=product.image_url,
        unit=product.unit,
        featured=product.catalog_featured,
        min_order_quantity=minimum,
        price=price,
        base_price=base_price,
        promotion_active=promotion,
        price_tiers=[PriceTierResponse.model_validate(t) for t in tiers] if show_prices else [],
    )


def listing_ttl(products: Iterable[Product], now: Optional[datetime] = None) -> int:
    """
    Seconds a listing may stay cached.

    Prices flip when a promotion starts or ends, so the entry must expire
    no later than the next such boundary. 0 means do not cache.
    """
    now = now or datetime.now(timezone.utc)
    ttl = settings.CATALOG_CACHE_TTL
    for product in products:
        if not product.promo_price:
            continue
        for boundary in (product.promo_start_at, product.promo_end_at):
            if boundary is None:
                continue
            if boundary.tzinfo is None:
                boundary = boundary.replace(tzinfo=timezone.utc)
            remaining = (boundary - now).total_seconds()
            if remaining >= 0:
                ttl = min(ttl, int(remaining))
    return ttl


class CatalogService:
    """Public storefront queries scoped by company slug."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or get_cache()

    async def get_company(self, slug: str) -> Company:
        """
        Active company for a catalog slug.

        Raises:
            CatalogNotFoundError: Unknown or inactive slug
        """
        company = await get_company_by_slug(self.db, slug)
        if company is None or not company.is_active:
            raise CatalogNotFoundError(CATALOG_NOT_FOUND)
        return company

    async def get_public_company(self, slug: str) -> Tuple[PublicCompanyResponse, bool]:
        """Company chrome and catalog settings. Returns (payload, cache_hit)."""
        company = await self.get_company(slug)

        cached = await self.cache.get_company(company.id)
        if cached:
            return PublicCompanyResponse(**cached), True

        payload = PublicCompanyResponse(
            id=company.id,
            name=company.name,
            slug=company.slug,
            logo_url=company.logo_url,
            description=company.description,
            phone=company.phone,
            whatsapp=company.whatsapp,
            instagram=company.instagram,
            facebook=company.facebook,
            city=company.city,
            state=company.state,
            minimum_order_value=company.minimum_order_value,
            catalog=CatalogSettings.from_stored(company.catalog_settings),
        )
        await self.cache.set_company(company.id, payload.model_dump(mode="json"))
        return payload, False

    def _visible_products(self, company_id: uuid.UUID):
        return (
            select(Product)
            .options(
                selectinload(Product.price_tiers),
                selectinload(Product.supplies).selectinload(ProductSupply.supply),
            )
            .where(
                Product.company_id == company_id,
                Product.is_active == True,
                Product.catalog_visible == True,
            )
        )

    async def list_products(
        self,
        slug: str,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> Tuple[dict, bool]:
        """
        Visible products ordered by featured, sort order, name.

        Returns:
            (payload, cache_hit) where payload is {"items": [...], "total": n}
        """
        company = await self.get_company(slug)
        params = {"search": (search or "").strip().lower(), "featured": featured}

        cached = await self.cache.get_catalog_products(company.id, params)
        if cached:
            return cached, True

        stmt = self._visible_products(company.id)
        if featured is not None:
            stmt = stmt.where(Product.catalog_featured == featured)
        if params["search"]:
            term = f"%{params['search']}%"
            stmt = stmt.where(or_(Product.name.ilike(term), Product.description.ilike(term)))
        stmt = stmt.order_by(
            Product.catalog_featured.desc(),
            Product.catalog_sort_order.asc(),
            Product.name.asc(),
        )

        products = (await self.db.execute(stmt)).scalars().unique().all()
        show_prices = CatalogSettings.from_stored(company.catalog_settings).show_prices
        items: List[CatalogProductResponse] = [build_catalog_product(p, show_prices) for p in products]

        payload = {
            "items": [item.model_dump(mode="json") for item in items],
            "total": len(items),
        }
        ttl = listing_ttl(products)
        if ttl > 0:
            await self.cache.set_catalog_products(company.id, params, payload, ttl)
            logger.debug("Catalog %s listing cached with %d products for %ds", slug, len(items), ttl)
        return payload, False

    async def get_product(self, slug: str, product_slug: str) -> CatalogProductResponse:
        company = await self.get_company(slug)
        stmt = self._visible_products(company.id).where(Product.slug == product_slug)
        product = (await self.db.execute(stmt)).scalar_one_or_none()
        if product is None:
            raise CatalogNotFoundError("Produto não encontrado")
        show_prices = CatalogSettings.from_stored(company.catalog_settings).show_prices
        return build_catalog_product(product, show_prices)
