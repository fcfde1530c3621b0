from typing import List
import uuid

from fastapi import APIRouter, HTTPException, status, Depends

from graphpos.api.deps import DB, require_roles
from graphpos.core.permissions import AppRole
from graphpos.schemas.plan import PlanCreate, PlanResponse, PlanUpdate
from graphpos.services.plan_service import PlanService


router = APIRouter(tags=["Plans"])

PLAN_NOT_FOUND = "Plano não encontrado"

# Plan writes are platform-level
platform_admin = Depends(require_roles(AppRole.SUPER_ADMIN.value))


@router.get("", response_model=List[PlanResponse])
async def list_plans(db: DB):
    """Active plans ordered by price. Public."""
    plans = await PlanService(db).list_plans(active_only=True)
    return [PlanResponse.model_validate(p) for p in plans]


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: uuid.UUID, db: DB):
    plan = await PlanService(db).get_plan(plan_id)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PLAN_NOT_FOUND)
    return PlanResponse.model_validate(plan)


@router.post(
    "",
    response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[platform_admin],
)
async def create_plan(data: PlanCreate, db: DB):
    plan = await PlanService(db).create_plan(data)
    return PlanResponse.model_validate(plan)


@router.put("/{plan_id}", response_model=PlanResponse, dependencies=[platform_admin])
async def update_plan(plan_id: uuid.UUID, data: PlanUpdate, db: DB):
    plan = await PlanService(db).update_plan(plan_id, data)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PLAN_NOT_FOUND)
    return PlanResponse.model_validate(plan)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[platform_admin])
async def delete_plan(plan_id: uuid.UUID, db: DB):
    """Deactivate a plan."""
    deleted = await PlanService(db).delete_plan(plan_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PLAN_NOT_FOUND)
