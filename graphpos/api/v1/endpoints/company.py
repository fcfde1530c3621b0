from fastapi import APIRouter, HTTPException, status, Depends

from graphpos.api.deps import DB, Tenant, require_roles
from graphpos.core.permissions import AppRole
from graphpos.schemas.company import CatalogSettings, CompanyResponse, CompanyUpdate
from graphpos.services.company_service import CompanyService, build_company_response


router = APIRouter(tags=["Company"])

COMPANY_NOT_FOUND = "Empresa não encontrada"


@router.get("", response_model=CompanyResponse)
async def get_company(db: DB, tenant: Tenant):
    """Profile and catalog settings of the current store."""
    company = await CompanyService(db).get_company(tenant.company_id)
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=COMPANY_NOT_FOUND)
    return build_company_response(company)


@router.put(
    "",
    response_model=CompanyResponse,
    dependencies=[Depends(require_roles(AppRole.ADMIN.value))],
)
async def update_company(data: CompanyUpdate, db: DB, tenant: Tenant):
    try:
        company = await CompanyService(db).update_company(tenant.company_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=COMPANY_NOT_FOUND)
    return build_company_response(company)


@router.put(
    "/catalog",
    response_model=CompanyResponse,
    dependencies=[Depends(require_roles(AppRole.ADMIN.value))],
)
async def update_catalog_settings(data: CatalogSettings, db: DB, tenant: Tenant):
    """
    Replace the storefront settings.

    Fields left out take their defaults.
    """
    company = await CompanyService(db).update_catalog_settings(tenant.company_id, data)
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=COMPANY_NOT_FOUND)
    return build_company_response(company)
