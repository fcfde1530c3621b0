from typing import List, Optional, Tuple
from datetime import date
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.core.birthdays import (
    calculate_age, days_until_birthday, is_birthday_today, is_birthday_within_days,
)
from graphpos.core.validators import only_digits
from graphpos.models.customer import Customer
from graphpos.models.order import Order, OrderStatus
from graphpos.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)

DUPLICATE_DOCUMENT = "CPF/CNPJ já cadastrado para outro cliente."


class DuplicateDocumentError(ValueError):
    pass


class CustomerService:
    """Service for the tenant's customer book."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customers(
        self,
        company_id: uuid.UUID,
        search: Optional[str] = None,
        is_active: Optional[bool] = True,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Customer], int]:
        """Get paginated customers; search matches name, phone or document."""
        filters = [Customer.company_id == company_id]

        if is_active is not None:
            filters.append(Customer.is_active == is_active)

        if search:
            term = search.strip()
            conditions = [Customer.name.ilike(f"%{term}%"), Customer.email.ilike(f"%{term}%")]
            digits = only_digits(term)
            if digits:
                conditions.append(Customer.phone.like(f"%{digits}%"))
                conditions.append(Customer.document.like(f"%{digits}%"))
            filters.append(or_(*conditions))

        count_stmt = select(func.count(Customer.id)).where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Customer)
            .where(and_(*filters))
            .order_by(Customer.name.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_customer(self, company_id: uuid.UUID, customer_id: uuid.UUID) -> Optional[Customer]:
        stmt = select(Customer).where(
            Customer.id == customer_id,
            Customer.company_id == company_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _ensure_unique_document(
        self,
        company_id: uuid.UUID,
        document: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not document:
            return
        stmt = select(Customer.id).where(
            Customer.company_id == company_id,
            Customer.document == document,
        )
        if exclude_id is not None:
            stmt = stmt.where(Customer.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise DuplicateDocumentError(DUPLICATE_DOCUMENT)

    async def create_customer(self, company_id: uuid.UUID, data: CustomerCreate) -> Customer:
        """Create a customer. Document and phone arrive as digits from the schema."""
        await self._ensure_unique_document(company_id, data.document)

        customer = Customer(company_id=company_id, **data.model_dump())
        self.db.add(customer)
        await self.db.commit()
        await self.db.refresh(customer)
        logger.info("Customer %s created for company %s", customer.id, company_id)
        return customer

    async def update_customer(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        data: CustomerUpdate,
    ) -> Optional[Customer]:
        customer = await self.get_customer(company_id, customer_id)
        if not customer:
            return None

        update_data = data.model_dump(exclude_unset=True)
        if "document" in update_data:
            await self._ensure_unique_document(company_id, update_data["document"], exclude_id=customer.id)

        for key, value in update_data.items():
            setattr(customer, key, value)

        await self.db.commit()
        await self.db.refresh(customer)
        return customer

    async def delete_customer(self, company_id: uuid.UUID, customer_id: uuid.UUID) -> bool:
        """Soft delete; orders keep pointing at the row."""
        customer = await self.get_customer(company_id, customer_id)
        if not customer:
            return False
        customer.is_active = False
        await self.db.commit()
        return True

    async def get_birthdays(
        self,
        company_id: uuid.UUID,
        days_ahead: int = 7,
        reference: Optional[date] = None,
    ) -> List[dict]:
        """Active customers whose birthday falls within the next days_ahead days."""
        reference = reference or date.today()
        stmt = select(Customer).where(
            Customer.company_id == company_id,
            Customer.is_active == True,
            Customer.date_of_birth.is_not(None),
        )
        customers = (await self.db.execute(stmt)).scalars().all()

        upcoming = []
        for customer in customers:
            if not is_birthday_within_days(customer.date_of_birth, days_ahead, reference):
                continue
            upcoming.append({
                "id": customer.id,
                "name": customer.name,
                "phone": customer.phone,
                "date_of_birth": customer.date_of_birth,
                "age": calculate_age(customer.date_of_birth, reference),
                "days_until": days_until_birthday(customer.date_of_birth, reference),
                "is_today": is_birthday_today(customer.date_of_birth, reference),
            })

        upcoming.sort(key=lambda c: (c["days_until"], c["name"]))
        return upcoming

    async def get_history(self, company_id: uuid.UUID, customer_id: uuid.UUID) -> Optional[dict]:
        """Orders of a customer, newest first, with spending totals."""
        customer = await self.get_customer(company_id, customer_id)
        if not customer:
            return None

        stmt = (
            select(Order)
            .where(Order.company_id == company_id, Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
        )
        orders = list((await self.db.execute(stmt)).scalars().all())

        active = [o for o in orders if o.status not in (OrderStatus.CANCELADO.value, OrderStatus.ORCAMENTO.value)]
        total_spent = sum((o.amount_paid for o in active), Decimal("0.00"))
        pending_balance = sum((max(Decimal("0"), o.total - o.amount_paid) for o in active), Decimal("0.00"))

        return {
            "customer": customer,
            "orders": [
                {
                    "id": o.id,
                    "order_number": o.order_number,
                    "status": o.status,
                    "total": o.total,
                    "amount_paid": o.amount_paid,
                    "created_at": o.created_at,
                }
                for o in orders
            ],
            "order_count": len(orders),
            "total_spent": total_spent,
            "pending_balance": pending_balance,
        }
