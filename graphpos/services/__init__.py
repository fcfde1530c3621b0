# Services module
from graphpos.services.auth_service import AuthService
from graphpos.services.company_service import CompanyService
from graphpos.services.customer_service import CustomerService
from graphpos.services.product_service import ProductService
from graphpos.services.plan_service import PlanService
from graphpos.services.order_service import OrderService
from graphpos.services.report_service import ReportService

# Storefront
from graphpos.services.catalog_service import CatalogService
from graphpos.services.cart_service import CartRepository
from graphpos.services.cache_service import CacheService, get_cache

__all__ = [
    "AuthService",
    "CompanyService",
    "CustomerService",
    "ProductService",
    "PlanService",
    "OrderService",
    "ReportService",
    # Storefront
    "CatalogService",
    "CartRepository",
    "CacheService",
    "get_cache",
]
