from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, or_, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.core.validators import slugify
from graphpos.models.product import Product, PriceTier, ProductSupply
from graphpos.schemas.product import ProductCreate, ProductUpdate, PriceTierCreate
from graphpos.services.cache_service import CacheService, get_cache

logger = logging.getLogger(__name__)

VISIBILITY_KEYS = {"catalog_visible", "catalog_enabled", "show_in_catalog"}


class ProductService:
    """Service for managing the tenant's products and price tiers."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or get_cache()

    def _with_relations(self, stmt):
        return stmt.options(
            selectinload(Product.price_tiers),
            selectinload(Product.supplies).selectinload(ProductSupply.supply),
        )

    async def get_products(
        self,
        company_id: uuid.UUID,
        search: Optional[str] = None,
        is_active: Optional[bool] = True,
        catalog_visible: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Product], int]:
        """Get products with filters."""
        filters = [Product.company_id == company_id]

        if is_active is not None:
            filters.append(Product.is_active == is_active)

        if catalog_visible is not None:
            filters.append(Product.catalog_visible == catalog_visible)

        if search:
            search_filter = f"%{search.strip()}%"
            filters.append(
                or_(
                    Product.name.ilike(search_filter),
                    Product.sku.ilike(search_filter),
                    Product.barcode.ilike(search_filter),
                )
            )

        count_stmt = select(func.count(Product.id)).where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            self._with_relations(select(Product))
            .where(and_(*filters))
            .order_by(Product.name.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all()), total

    async def get_product(self, company_id: uuid.UUID, product_id: uuid.UUID) -> Optional[Product]:
        stmt = (
            self._with_relations(select(Product))
            .where(Product.id == product_id, Product.company_id == company_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _unique_slug(
        self,
        company_id: uuid.UUID,
        base: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> str:
        """Slug unique within the tenant: "caneca", "caneca-2", ..."""
        root = slugify(base) or "produto"
        candidate = root
        suffix = 2
        while True:
            stmt = select(Product.id).where(
                Product.company_id == company_id,
                Product.slug == candidate,
            )
            if exclude_id is not None:
                stmt = stmt.where(Product.id != exclude_id)
            if (await self.db.execute(stmt)).first() is None:
                return candidate
            candidate = f"{root}-{suffix}"
            suffix += 1

    @staticmethod
    def _build_tiers(tiers: List[PriceTierCreate]) -> List[PriceTier]:
        ordered = sorted(tiers, key=lambda t: t.min_quantity)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.max_quantity is None or previous.max_quantity >= current.min_quantity:
                raise ValueError("Faixas de preço não podem se sobrepor")
        return [PriceTier(**t.model_dump()) for t in ordered]

    async def create_product(self, company_id: uuid.UUID, data: ProductCreate) -> Product:
        """Create a product; the slug comes from the name when absent."""
        product_data = data.model_dump(exclude={"price_tiers", "slug"} | VISIBILITY_KEYS)
        product = Product(
            company_id=company_id,
            slug=await self._unique_slug(company_id, data.slug or data.name),
            catalog_visible=bool(data.resolved_visibility()),
            price_tiers=self._build_tiers(data.price_tiers),
            **product_data,
        )
        self.db.add(product)
        await self.db.commit()
        await self.cache.invalidate_catalog(company_id)

        logger.info("Product %s created for company %s", product.slug, company_id)
        return await self.get_product(company_id, product.id)

    async def update_product(
        self,
        company_id: uuid.UUID,
        product_id: uuid.UUID,
        data: ProductUpdate,
    ) -> Optional[Product]:
        """Update a product. Any sent visibility key updates catalog_visible."""
        product = await self.get_product(company_id, product_id)
        if not product:
            return None

        update_data = data.model_dump(exclude_unset=True, exclude={"price_tiers"} | VISIBILITY_KEYS)

        if "slug" in update_data:
            slug = update_data.pop("slug")
            if slug:
                product.slug = await self._unique_slug(company_id, slug, exclude_id=product.id)

        for key, value in update_data.items():
            setattr(product, key, value)

        visible = data.resolved_visibility()
        if visible is not None:
            product.catalog_visible = visible

        if data.price_tiers is not None:
            product.price_tiers = self._build_tiers(data.price_tiers)

        await self.db.commit()
        await self.cache.invalidate_catalog(company_id)
        return await self.get_product(company_id, product_id)

    async def delete_product(self, company_id: uuid.UUID, product_id: uuid.UUID) -> bool:
        """Soft delete a product by deactivating it and hiding it from the catalog."""
        product = await self.get_product(company_id, product_id)
        if not product:
            return False

        product.is_active = False
        product.catalog_visible = False
        await self.db.commit()
        await self.cache.invalidate_catalog(company_id)
        return True
