from pydantic import BaseModel, Field, model_validator

from typing import Optional
from datetime import date
from enum import Enum


class ReportType(str, Enum):
    ALL = "all"
    CASH = "cash"
    FINANCIAL = "financial"
    SALES = "sales"
    CUSTOMERS = "customers"
    PRODUCTS = "products"


class PeriodGrouping(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    SHIFT = "shift"


class ReportFilters(BaseModel):
    """Report query. Missing dates fall back to the default range."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = Field(default="all", max_length=50)

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Data final deve ser posterior à data inicial")
        return self
