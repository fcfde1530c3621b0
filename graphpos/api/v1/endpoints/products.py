from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query, Depends

from graphpos.api.deps import DB, Tenant, require_roles
from graphpos.core.permissions import AppRole
from graphpos.schemas.product import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from graphpos.services.product_service import ProductService


router = APIRouter(tags=["Products"])

PRODUCT_NOT_FOUND = "Produto não encontrado"


@router.get("", response_model=ProductListResponse)
async def list_products(
    db: DB,
    tenant: Tenant,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, SKU or barcode"),
    is_active: Optional[bool] = Query(True),
    catalog_visible: Optional[bool] = Query(None),
):
    """
    Get paginated list of products with price tiers.
    """
    skip = (page - 1) * size
    products, total = await ProductService(db).get_products(
        tenant.company_id,
        search=search,
        is_active=is_active,
        catalog_visible=catalog_visible,
        skip=skip,
        limit=size,
    )

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: DB, tenant: Tenant):
    product = await ProductService(db).get_product(tenant.company_id, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PRODUCT_NOT_FOUND)
    return ProductResponse.model_validate(product)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(AppRole.ADMIN.value))],
)
async def create_product(data: ProductCreate, db: DB, tenant: Tenant):
    """
    Create a product.

    Accepts catalog_visible, catalog_enabled or show_in_catalog; the
    product is visible when any of them is true.
    """
    try:
        product = await ProductService(db).create_product(tenant.company_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ProductResponse.model_validate(product)


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(require_roles(AppRole.ADMIN.value))],
)
async def update_product(product_id: uuid.UUID, data: ProductUpdate, db: DB, tenant: Tenant):
    try:
        product = await ProductService(db).update_product(tenant.company_id, product_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PRODUCT_NOT_FOUND)
    return ProductResponse.model_validate(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(AppRole.ADMIN.value))],
)
async def delete_product(product_id: uuid.UUID, db: DB, tenant: Tenant):
    deleted = await ProductService(db).delete_product(tenant.company_id, product_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PRODUCT_NOT_FOUND)
