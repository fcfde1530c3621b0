"""
Tenant middleware for multi-tenant request handling
"""
import logging
from typing import Optional

from fastapi import Request

from graphpos.core.tenant_context import TenantRef

logger = logging.getLogger(__name__)

# Hosts whose first label is not a tenant slug
RESERVED_SUBDOMAINS = {"www", "api", "admin", "app", "localhost"}

PUBLIC_ROUTES = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/",
}

# Public catalog routes carry the tenant slug in the path
PUBLIC_PREFIXES = (
    "/static",
    "/api/v1/catalog",
    "/api/v1/plans",
)


def extract_tenant_ref(request: Request) -> Optional[TenantRef]:
    """
    Extract tenant identifier from request (header or subdomain).

    Priority:
    1. X-Tenant-ID header - for API calls
    2. X-Tenant-Slug header - for storefront/API calls by slug
    3. Subdomain - for browser access

    The JWT fallback happens later, in api.deps.get_tenant, because it
    needs the authenticated user.
    """
    tenant_id = request.headers.get("X-Tenant-ID")
    if tenant_id:
        return TenantRef(kind="id", value=tenant_id.strip())

    tenant_slug = request.headers.get("X-Tenant-Slug")
    if tenant_slug:
        return TenantRef(kind="slug", value=tenant_slug.strip().lower())

    host = request.headers.get("host", "").split(":")[0]
    if host.count(".") >= 2:
        subdomain = host.split(".")[0].lower()
        if subdomain not in RESERVED_SUBDOMAINS:
            return TenantRef(kind="slug", value=subdomain)

    return None


async def tenant_middleware(request: Request, call_next):
    """
    Middleware to inject the tenant identifier into request state.

    The identifier is resolved against the database by the get_tenant
    dependency so that handlers share the request's session.
    Public routes (health check, docs, public catalog) skip this step.
    """
    path = request.url.path
    if path in PUBLIC_ROUTES or path.startswith(PUBLIC_PREFIXES):
        return await call_next(request)

    ref = extract_tenant_ref(request)
    request.state.tenant_ref = ref
    if ref is not None:
        logger.debug("Tenant reference for %s: %s=%s", path, ref.kind, ref.value)

    return await call_next(request)
