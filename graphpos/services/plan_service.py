from typing import List, Optional
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.core.enum_utils import get_enum_value
from graphpos.models.plan import Plan, DEFAULT_PERIOD_DAYS
from graphpos.schemas.plan import PlanCreate, PlanUpdate

logger = logging.getLogger(__name__)


class PlanService:
    """Subscription plan catalogue. Writes are platform-admin only."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_plans(self, active_only: bool = False) -> List[Plan]:
        stmt = select(Plan).order_by(Plan.price.asc(), Plan.name.asc())
        if active_only:
            stmt = stmt.where(Plan.is_active == True)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_plan(self, plan_id: uuid.UUID) -> Optional[Plan]:
        return (await self.db.execute(select(Plan).where(Plan.id == plan_id))).scalar_one_or_none()

    async def create_plan(self, data: PlanCreate) -> Plan:
        values = data.model_dump()
        values["billing_period"] = get_enum_value(data.billing_period)
        if values["period_days"] is None:
            values["period_days"] = DEFAULT_PERIOD_DAYS[values["billing_period"]]

        plan = Plan(**values)
        self.db.add(plan)
        await self.db.commit()
        await self.db.refresh(plan)
        logger.info("Plan %s created", plan.name)
        return plan

    async def update_plan(self, plan_id: uuid.UUID, data: PlanUpdate) -> Optional[Plan]:
        plan = await self.get_plan(plan_id)
        if not plan:
            return None

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("period_days") is None:
            update_data.pop("period_days", None)
        if update_data.get("billing_period") is not None:
            update_data["billing_period"] = get_enum_value(update_data["billing_period"])
            # Keep the default length in step with the interval unless sent
            if "period_days" not in update_data:
                update_data["period_days"] = DEFAULT_PERIOD_DAYS[update_data["billing_period"]]

        for key, value in update_data.items():
            setattr(plan, key, value)

        await self.db.commit()
        await self.db.refresh(plan)
        return plan

    async def delete_plan(self, plan_id: uuid.UUID) -> bool:
        """Deactivate a plan; companies on it keep their reference."""
        plan = await self.get_plan(plan_id)
        if not plan:
            return False
        plan.is_active = False
        await self.db.commit()
        return True
