from typing import Optional, List
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from graphpos.api.deps import DB, Tenant
from graphpos.schemas.customer import (
    CustomerBirthday,
    CustomerCreate,
    CustomerHistory,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
)
from graphpos.services.customer_service import CustomerService


router = APIRouter(tags=["Customers"])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    db: DB,
    tenant: Tenant,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, phone, document"),
    is_active: bool = Query(True),
):
    """
    Get paginated list of customers.
    """
    skip = (page - 1) * size
    customers, total = await CustomerService(db).get_customers(
        tenant.company_id,
        search=search,
        is_active=is_active,
        skip=skip,
        limit=size,
    )

    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/birthdays", response_model=List[CustomerBirthday])
async def list_birthdays(
    db: DB,
    tenant: Tenant,
    days: int = Query(7, ge=0, le=366),
):
    """Customers with a birthday within the next `days` days."""
    birthdays = await CustomerService(db).get_birthdays(tenant.company_id, days_ahead=days)
    return [CustomerBirthday(**b) for b in birthdays]


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: uuid.UUID, db: DB, tenant: Tenant):
    customer = await CustomerService(db).get_customer(tenant.company_id, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente não encontrado")
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}/history", response_model=CustomerHistory)
async def get_customer_history(customer_id: uuid.UUID, db: DB, tenant: Tenant):
    """Orders of the customer with total spent and pending balance."""
    history = await CustomerService(db).get_history(tenant.company_id, customer_id)
    if not history:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente não encontrado")

    history["customer"] = CustomerResponse.model_validate(history["customer"])
    return CustomerHistory(**history)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(data: CustomerCreate, db: DB, tenant: Tenant):
    try:
        customer = await CustomerService(db).create_customer(tenant.company_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CustomerResponse.model_validate(customer)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: uuid.UUID, data: CustomerUpdate, db: DB, tenant: Tenant):
    try:
        customer = await CustomerService(db).update_customer(tenant.company_id, customer_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente não encontrado")
    return CustomerResponse.model_validate(customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: uuid.UUID, db: DB, tenant: Tenant):
    """Deactivate a customer."""
    deleted = await CustomerService(db).delete_customer(tenant.company_id, customer_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cliente não encontrado")
