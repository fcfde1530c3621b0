from fastapi import APIRouter

from graphpos.api.v1.endpoints import (
    # Access
    auth,
    company,
    plans,
    # Store operations
    orders,
    customers,
    products,
    reports,
    # Public storefront
    catalog,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)
api_router.include_router(
    company.router,
    prefix="/company",
    tags=["Company"]
)
api_router.include_router(
    plans.router,
    prefix="/plans",
    tags=["Plans"]
)

# ==================== Store operations ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)
api_router.include_router(
    customers.router,
    prefix="/customers",
    tags=["Customers"]
)
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)
api_router.include_router(
    reports.router,
    prefix="/reports",
    tags=["Reports"]
)

# ==================== Public catalog (no auth) ====================
api_router.include_router(
    catalog.router,
    prefix="/catalog",
    tags=["Catalog"]
)
