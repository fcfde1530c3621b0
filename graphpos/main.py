from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from graphpos.config import settings
from graphpos.api.v1.router import api_router
from graphpos.database import init_db, async_session_factory
from graphpos.middleware.tenant import tenant_middleware

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup creates missing tables; stores and their users are created
    through signup.
    """
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await init_db()

    yield

    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT-based authentication, signup and staff users"},
    {"name": "Company", "description": "Store profile and catalog appearance settings"},
    {"name": "Plans", "description": "Subscription plans (public listing, platform admin writes)"},
    {"name": "Orders", "description": "Order board, status workflow, payments and live events"},
    {"name": "Customers", "description": "Customer book, birthdays and purchase history"},
    {"name": "Products", "description": "Products, price tiers and catalog visibility"},
    {"name": "Reports", "description": "Cash, financial, sales, customer and product reports"},
    {"name": "Catalog", "description": "Public storefront and visitor carts"},
]

FULL_API_DESCRIPTION = """
## GraphPOS API

Order management and public catalog for print shops.

### Authentication

All endpoints except `/api/v1/catalog/*`, `GET /api/v1/plans` and
`/api/v1/auth/login|refresh|signup` require JWT authentication.
Include token in Authorization header: `Bearer <token>`

The store is taken from `X-Tenant-ID`, `X-Tenant-Slug`, the subdomain,
or the authenticated user's company.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Validation failed or status change not allowed |
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Insufficient role |
| 404 | Not Found - Resource doesn't exist |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add tenant middleware for multi-tenant support
app.middleware("http")(tenant_middleware)

# Include API router
app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return unhandled errors as JSON."""
    if isinstance(exc, HTTPException):
        status_code = exc.status_code
        error_message = exc.detail
    else:
        status_code = 500
        error_message = str(exc) if settings.DEBUG else "Internal server error"
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    error_detail = {
        "error": error_message,
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    response = JSONResponse(status_code=status_code, content=error_detail)

    # Error responses bypass CORSMiddleware
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
