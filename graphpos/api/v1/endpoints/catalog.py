"""Public catalog API endpoints.

These endpoints are accessible without authentication; the store is
picked by the slug in the path. Listings are cached per store.
"""
import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from graphpos.api.deps import DB
from graphpos.models.company import Company
from graphpos.schemas.cart import (
    CartItem,
    CartQuantityUpdate,
    CartReplaceRequest,
    CartResponse,
    CartUpsertRequest,
)
from graphpos.schemas.company import PublicCompanyResponse
from graphpos.schemas.product import CatalogProductListResponse, CatalogProductResponse
from graphpos.services.cache_service import get_cache
from graphpos.services.cart_service import CartRepository, cart_subtotal, meets_minimum
from graphpos.services.catalog_service import CatalogNotFoundError, CatalogService

router = APIRouter(tags=["Catalog"])


def _timing(response: Response, start_time: float, hit: bool) -> None:
    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    response.headers["X-Response-Time"] = f"{(time.time() - start_time) * 1000:.2f}ms"


async def _get_company(db, slug: str) -> Company:
    try:
        return await CatalogService(db).get_company(slug)
    except CatalogNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{slug}", response_model=PublicCompanyResponse)
async def get_catalog(slug: str, db: DB, response: Response):
    """Store details and catalog appearance settings."""
    start_time = time.time()
    try:
        payload, hit = await CatalogService(db).get_public_company(slug)
    except CatalogNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    _timing(response, start_time, hit)
    return payload


@router.get("/{slug}/products", response_model=CatalogProductListResponse)
async def list_catalog_products(
    slug: str,
    db: DB,
    response: Response,
    search: Optional[str] = Query(None, description="Search by name or description"),
    featured: Optional[bool] = Query(None),
):
    """
    Visible products of the store with resolved prices.

    Ordered by featured first, then sort order and name.
    """
    start_time = time.time()
    try:
        payload, hit = await CatalogService(db).list_products(slug, search=search, featured=featured)
    except CatalogNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    _timing(response, start_time, hit)
    return CatalogProductListResponse(**payload)


@router.get("/{slug}/products/{product_slug}", response_model=CatalogProductResponse)
async def get_catalog_product(slug: str, product_slug: str, db: DB):
    try:
        return await CatalogService(db).get_product(slug, product_slug)
    except CatalogNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ==================== Cart ====================

def _cart_response(company: Company, items: List[CartItem]) -> CartResponse:
    return CartResponse(
        company_id=str(company.id),
        items=items,
        count=sum(item.quantity for item in items),
        subtotal=cart_subtotal(items),
        minimum_order_value=company.minimum_order_value,
        meets_minimum=meets_minimum(items, company.minimum_order_value),
    )


def _cart(cart_id: str) -> CartRepository:
    return CartRepository(get_cache(), owner_id=cart_id)


@router.get("/{slug}/cart/{cart_id}", response_model=CartResponse)
async def get_cart(slug: str, cart_id: str, db: DB):
    company = await _get_company(db, slug)
    return _cart_response(company, await _cart(cart_id).get(company.id))


@router.put("/{slug}/cart/{cart_id}", response_model=CartResponse)
async def replace_cart(slug: str, cart_id: str, data: CartReplaceRequest, db: DB):
    """Replace the whole cart. Invalid lines are dropped."""
    company = await _get_company(db, slug)
    items = await _cart(cart_id).set(company.id, [i.model_dump() for i in data.items])
    return _cart_response(company, items)


@router.delete("/{slug}/cart/{cart_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(slug: str, cart_id: str, db: DB):
    company = await _get_company(db, slug)
    await _cart(cart_id).clear(company.id)


@router.post("/{slug}/cart/{cart_id}/items", response_model=CartResponse)
async def add_cart_item(slug: str, cart_id: str, data: CartUpsertRequest, db: DB):
    """
    Add a product to the cart.

    mode "sum" adds to the current quantity, "replace" overwrites it.
    """
    company = await _get_company(db, slug)
    try:
        items = await _cart(cart_id).upsert(
            company.id, data.model_dump(exclude={"mode"}), mode=data.mode
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _cart_response(company, items)


@router.patch("/{slug}/cart/{cart_id}/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    slug: str,
    cart_id: str,
    product_id: str,
    data: CartQuantityUpdate,
    db: DB,
):
    company = await _get_company(db, slug)
    items = await _cart(cart_id).set_quantity(company.id, product_id, data.quantity)
    return _cart_response(company, items)


@router.delete("/{slug}/cart/{cart_id}/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(slug: str, cart_id: str, product_id: str, db: DB):
    company = await _get_company(db, slug)
    items = await _cart(cart_id).remove(company.id, product_id)
    return _cart_response(company, items)
