from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Query, Depends
from pydantic import ValidationError

from graphpos.api.deps import DB, Tenant, require_roles
from graphpos.core.permissions import AppRole
from graphpos.schemas.report import ReportFilters, ReportType
from graphpos.services.report_service import ReportService


router = APIRouter(tags=["Reports"])


@router.get("", dependencies=[Depends(require_roles(AppRole.ADMIN.value))])
async def get_reports(
    db: DB,
    tenant: Tenant,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status_filter: str = Query("all", alias="status"),
    report: ReportType = Query(ReportType.ALL),
):
    """
    Cash, financial, sales, customer and product reports for a date range.

    Without dates the last 30 days are used. `report` narrows the
    response to one section.
    """
    try:
        filters = ReportFilters(start_date=start_date, end_date=end_date, status=status_filter)
    except ValidationError as e:
        message = e.errors()[0]["msg"].removeprefix("Value error, ")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    return await ReportService(db).load(tenant.company_id, filters, report=report)
