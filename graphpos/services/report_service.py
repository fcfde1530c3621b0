"""
Reporting aggregation.

ReportService.load() fetches the raw rows of a tenant for a date range
and the build_* functions group and sum them in memory. Nothing is
persisted. The builders take plain row objects, so they also work on
lists built by hand.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.config import settings
from graphpos.models.customer import Customer
from graphpos.models.finance import ExpenseCategory, FinancialEntry, Sale, SaleItem
from graphpos.models.order import Order, OrderItem, OrderPayment
from graphpos.models.product import Product, ProductSupply
from graphpos.schemas.report import PeriodGrouping, ReportFilters, ReportType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
SALES_PERIODS = (
    PeriodGrouping.DAILY.value,
    PeriodGrouping.WEEKLY.value,
    PeriodGrouping.MONTHLY.value,
    PeriodGrouping.ANNUAL.value,
)


@dataclass
class ReportSources:
    """Raw rows a report bundle is built from."""
    orders: List[Any] = field(default_factory=list)
    order_items: List[Any] = field(default_factory=list)
    order_payments: List[Any] = field(default_factory=list)
    sales: List[Any] = field(default_factory=list)
    sale_items: List[Any] = field(default_factory=list)
    customers: List[Any] = field(default_factory=list)
    products: List[Any] = field(default_factory=list)
    product_supplies: List[Any] = field(default_factory=list)
    financial_entries: List[Any] = field(default_factory=list)
    expense_categories: List[Any] = field(default_factory=list)


# ==================== Helpers ====================

def _dec(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _sum(rows: Iterable[Any], get_value: Callable[[Any], Decimal]) -> Decimal:
    return sum((get_value(row) for row in rows), ZERO)


def _group(rows: Iterable[Any], get_key: Callable[[Any], Any]) -> "OrderedDict[Any, list]":
    grouped: "OrderedDict[Any, list]" = OrderedDict()
    for row in rows:
        grouped.setdefault(get_key(row), []).append(row)
    return grouped


def _is_paid_order(order: Any) -> bool:
    return order.status != "orcamento" and order.payment_status == "pago"


def _is_settled_sale(sale: Any) -> bool:
    return _dec(sale.amount_paid) >= _dec(sale.total)


def normalize_range(filters: ReportFilters, today: Optional[date] = None) -> tuple[datetime, datetime]:
    """Start at 00:00 and end at 23:59:59.999999; default is the last N days."""
    today = today or date.today()
    start_day = filters.start_date or (today - timedelta(days=settings.REPORT_DEFAULT_RANGE_DAYS))
    end_day = filters.end_date or today
    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day, time.max, tzinfo=timezone.utc)
    return start, end


def _day_label(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y")


def _shift_index(hour: int) -> int:
    if 6 <= hour < 14:
        return 0
    if 14 <= hour < 22:
        return 1
    return 2


SHIFT_NAMES = ("Manha", "Tarde", "Noite")


def _period_key(moment: datetime, period: str) -> tuple[str, tuple]:
    """(label, sort key) of a moment for a grouping."""
    if period == PeriodGrouping.SHIFT.value:
        index = _shift_index(moment.hour)
        return f"{_day_label(moment)} - {SHIFT_NAMES[index]}", (moment.date(), index)
    if period == PeriodGrouping.WEEKLY.value:
        # Weeks start on Sunday
        first = moment.date() - timedelta(days=(moment.weekday() + 1) % 7)
        return f"Sem {first.strftime('%d/%m/%Y')}", (first,)
    if period == PeriodGrouping.MONTHLY.value:
        return f"{moment.month}/{moment.year}", (moment.year, moment.month)
    if period == PeriodGrouping.ANNUAL.value:
        return f"{moment.year}", (moment.year,)
    return _day_label(moment), (moment.date(),)


def build_period_series(transactions: Iterable[dict], period: str) -> List[dict]:
    """Inflow, outflow and net per period label, in chronological order."""
    buckets: Dict[str, dict] = {}
    for tx in transactions:
        label, sort_key = _period_key(_as_utc(tx["date"]), period)
        bucket = buckets.setdefault(label, {"label": label, "inflow": ZERO, "outflow": ZERO, "_key": sort_key})
        if tx["type"] == "entrada":
            bucket["inflow"] += _dec(tx["amount"])
        elif tx["type"] == "saida":
            bucket["outflow"] += _dec(tx["amount"])

    entries = sorted(buckets.values(), key=lambda b: b["_key"])
    return [
        {
            "label": b["label"],
            "inflow": b["inflow"],
            "outflow": b["outflow"],
            "net": b["inflow"] - b["outflow"],
        }
        for b in entries
    ]


# ==================== Cash ====================

def build_cash_transactions(sources: ReportSources) -> List[dict]:
    """Money in and out from payments, settled sales and paid entries, newest first."""
    transactions = []

    for payment in sources.order_payments:
        if payment.status != "pago":
            continue
        transactions.append({
            "id": str(payment.id),
            "date": _as_utc(payment.paid_at or payment.created_at),
            "type": "entrada",
            "origin": "pedido",
            "description": f"Pagamento pedido {payment.order_id}",
            "amount": _dec(payment.amount),
            "method": payment.method or None,
            "status": payment.status,
        })

    for sale in sources.sales:
        if not _is_settled_sale(sale):
            continue
        transactions.append({
            "id": str(sale.id),
            "date": _as_utc(sale.created_at),
            "type": "entrada",
            "origin": "pdv",
            "description": f"Venda PDV {sale.id}",
            "amount": _dec(sale.total),
            "method": sale.payment_method or None,
            "status": "pago",
        })

    for entry in sources.financial_entries:
        if entry.status != "pago":
            continue
        transactions.append({
            "id": str(entry.id),
            "date": _as_utc(entry.paid_at or entry.occurred_at),
            "type": "entrada" if entry.type == "receita" else "saida",
            "origin": entry.origin or "manual",
            "description": entry.description or entry.notes or "Lancamento manual",
            "amount": _dec(entry.amount),
            "method": entry.payment_method or None,
            "status": entry.status,
        })

    transactions.sort(key=lambda tx: tx["date"], reverse=True)
    return transactions


def opening_balance_from(payments: Iterable[Any], sales: Iterable[Any], entries: Iterable[Any]) -> Decimal:
    """Net of the cash sources recorded before the report start."""
    payment_total = _sum((p for p in payments if p.status == "pago"), lambda p: _dec(p.amount))
    sales_total = _sum((s for s in sales if _is_settled_sale(s)), lambda s: _dec(s.total))
    entry_total = _sum(
        (e for e in entries if e.status == "pago"),
        lambda e: _dec(e.amount) if e.type == "receita" else -_dec(e.amount),
    )
    return payment_total + sales_total + entry_total


def build_cash_report(sources: ReportSources, opening_balance: Decimal = ZERO) -> dict:
    transactions = build_cash_transactions(sources)
    total_in = _sum(transactions, lambda tx: tx["amount"] if tx["type"] == "entrada" else ZERO)
    total_out = _sum(transactions, lambda tx: tx["amount"] if tx["type"] == "saida" else ZERO)
    return {
        "transactions": transactions,
        "summary": {
            "total_in": total_in,
            "total_out": total_out,
            "opening_balance": opening_balance,
            "closing_balance": opening_balance + total_in - total_out,
        },
        "series": {
            period.value: build_period_series(transactions, period.value)
            for period in PeriodGrouping
        },
    }


# ==================== Financial ====================

def build_financial_report(sources: ReportSources) -> dict:
    paid_payments = [p for p in sources.order_payments if p.status == "pago"]
    settled_sales = [s for s in sources.sales if _is_settled_sale(s)]
    paid_entries = [e for e in sources.financial_entries if e.status == "pago"]
    paid_revenue_entries = [e for e in paid_entries if e.type == "receita"]

    revenue_from_orders = _sum(paid_payments, lambda p: _dec(p.amount))
    revenue_from_sales = _sum(settled_sales, lambda s: _dec(s.total))
    revenue_from_manual = _sum(paid_revenue_entries, lambda e: _dec(e.amount))
    expense_total = _sum((e for e in paid_entries if e.type == "despesa"), lambda e: _dec(e.amount))

    revenue_total = revenue_from_orders + revenue_from_sales + revenue_from_manual
    profit = revenue_total - expense_total
    margin = (profit / revenue_total * 100) if revenue_total > 0 else ZERO

    revenue_by_method: Dict[str, Decimal] = {}
    for payment in paid_payments:
        key = payment.method or "indefinido"
        revenue_by_method[key] = revenue_by_method.get(key, ZERO) + _dec(payment.amount)
    for sale in settled_sales:
        key = sale.payment_method or "indefinido"
        revenue_by_method[key] = revenue_by_method.get(key, ZERO) + _dec(sale.total)
    for entry in paid_revenue_entries:
        key = entry.payment_method or "indefinido"
        revenue_by_method[key] = revenue_by_method.get(key, ZERO) + _dec(entry.amount)

    category_names = {str(c.id): c.name for c in sources.expense_categories}
    expenses_by_category: Dict[str, Decimal] = {}
    expenses_by_status: Dict[str, Decimal] = {}
    for entry in sources.financial_entries:
        if entry.type != "despesa":
            continue
        category = category_names.get(str(entry.category_id), "Sem categoria") if entry.category_id else "Sem categoria"
        expenses_by_category[category] = expenses_by_category.get(category, ZERO) + _dec(entry.amount)
        expenses_by_status[entry.status] = expenses_by_status.get(entry.status, ZERO) + _dec(entry.amount)

    return {
        "revenue_total": revenue_total,
        "expense_total": expense_total,
        "profit": profit,
        "margin": margin,
        "revenue_by_origin": {
            "pedido": revenue_from_orders,
            "pdv": revenue_from_sales,
            "manual": revenue_from_manual,
        },
        "revenue_by_method": revenue_by_method,
        "expenses_by_category": expenses_by_category,
        "expenses_by_status": expenses_by_status,
        "cashflow": build_period_series(build_cash_transactions(sources), PeriodGrouping.DAILY.value),
    }


# ==================== Sales ====================

def _customer_key(order: Any) -> str:
    return str(order.customer_id or order.customer_name or "sem-cliente")


def _customer_name(order: Any, customers_by_id: Dict[str, Any]) -> str:
    if order.customer_name:
        return order.customer_name
    customer = customers_by_id.get(str(order.customer_id)) if order.customer_id else None
    return customer.name if customer is not None else "Cliente"


def _item_rows(items: Iterable[Any]) -> List[dict]:
    return [
        {
            "id": str(item.product_id or item.product_name),
            "name": item.product_name,
            "quantity": _dec(item.quantity),
            "total": _dec(item.total),
        }
        for item in items
    ]


def _aggregate_items(rows: List[dict]) -> List[dict]:
    return [
        {
            "id": group[0]["id"],
            "name": group[0]["name"],
            "quantity": _sum(group, lambda r: r["quantity"]),
            "total": _sum(group, lambda r: r["total"]),
        }
        for group in _group(rows, lambda r: r["id"]).values()
    ]


def build_sales_report(sources: ReportSources) -> dict:
    paid_orders = [o for o in sources.orders if _is_paid_order(o)]
    settled_sales = [s for s in sources.sales if _is_settled_sale(s)]
    paid_order_ids = {o.id for o in paid_orders}
    settled_sale_ids = {s.id for s in settled_sales}

    total_sales = _sum(paid_orders, lambda o: _dec(o.total)) + _sum(settled_sales, lambda s: _dec(s.total))
    total_count = len(paid_orders) + len(settled_sales)
    ticket_average = total_sales / total_count if total_count > 0 else ZERO

    status_counts: Dict[str, int] = {}
    for order in sources.orders:
        status_counts[order.status] = status_counts.get(order.status, 0) + 1

    rows = _item_rows(i for i in sources.order_items if i.order_id in paid_order_ids)
    rows += _item_rows(i for i in sources.sale_items if i.sale_id in settled_sale_ids)
    sales_by_product = sorted(_aggregate_items(rows), key=lambda r: r["total"], reverse=True)

    customers_by_id = {str(c.id): c for c in sources.customers}
    sales_by_customer = sorted(
        (
            {
                "id": _customer_key(group[0]),
                "name": _customer_name(group[0], customers_by_id),
                "orders": len(group),
                "total": _sum(group, lambda o: _dec(o.total)),
            }
            for group in _group(paid_orders, _customer_key).values()
        ),
        key=lambda r: r["total"],
        reverse=True,
    )

    sales_transactions = [
        {"date": _as_utc(o.created_at), "type": "entrada", "amount": _dec(o.total)}
        for o in paid_orders
    ] + [
        {"date": _as_utc(s.created_at), "type": "entrada", "amount": _dec(s.total)}
        for s in settled_sales
    ]
    sales_by_period = {
        period: [
            {"label": entry["label"], "total": entry["inflow"]}
            for entry in build_period_series(sales_transactions, period)
        ]
        for period in SALES_PERIODS
    }

    return {
        "total_sales": total_sales,
        "order_count": total_count,
        "ticket_average": ticket_average,
        "status_counts": status_counts,
        "sales_by_period": sales_by_period,
        "sales_by_product": sales_by_product,
        "sales_by_customer": sales_by_customer,
    }


# ==================== Customers ====================

def build_customer_report(sources: ReportSources) -> dict:
    paid_order_ids = {o.id for o in sources.orders if _is_paid_order(o)}
    customers_by_id = {str(c.id): c for c in sources.customers}

    stats = []
    for group in _group(sources.orders, _customer_key).values():
        last_order_at = max(_as_utc(o.created_at) for o in group)
        stats.append({
            "id": _customer_key(group[0]),
            "name": _customer_name(group[0], customers_by_id),
            "orders": len(group),
            "total": _sum((o for o in group if o.id in paid_order_ids), lambda o: _dec(o.total)),
            "balance": _sum(group, lambda o: max(ZERO, _dec(o.total) - _dec(o.amount_paid))),
            "last_order_at": last_order_at,
        })

    most_active = sorted(stats, key=lambda r: r["orders"], reverse=True)[:5]
    highest_revenue = sorted(stats, key=lambda r: r["total"], reverse=True)[:5]
    pending_balances = [
        {"id": r["id"], "name": r["name"], "balance": r["balance"]}
        for r in sorted((r for r in stats if r["balance"] > 0), key=lambda r: r["balance"], reverse=True)[:5]
    ]

    insights = []
    if most_active:
        insights.append(f"Cliente mais ativo: {most_active[0]['name']}.")
    if pending_balances:
        insights.append("Existem clientes com saldo pendente a receber.")
    if highest_revenue:
        insights.append(f"Maior faturamento: {highest_revenue[0]['name']}.")

    with_date = sorted((r for r in stats if r["last_order_at"]), key=lambda r: r["last_order_at"], reverse=True)
    without_date = [r for r in stats if not r["last_order_at"]]

    return {
        "most_active": most_active,
        "highest_revenue": [{"id": r["id"], "name": r["name"], "total": r["total"]} for r in highest_revenue],
        "pending_balances": pending_balances,
        "insights": insights,
        "history": with_date + without_date,
    }


# ==================== Products ====================

def build_product_report(sources: ReportSources) -> dict:
    supplies_cost: Dict[str, Decimal] = {}
    for entry in sources.product_supplies:
        supply = getattr(entry, "supply", None)
        cost = _dec(supply.cost_per_unit) if supply is not None else ZERO
        key = str(entry.product_id)
        supplies_cost[key] = supplies_cost.get(key, ZERO) + _dec(entry.quantity) * cost

    paid_order_ids = {o.id for o in sources.orders if _is_paid_order(o)}
    rows = _aggregate_items(_item_rows(i for i in sources.order_items if i.order_id in paid_order_ids))
    products_by_id = {str(p.id): p for p in sources.products}

    margin_by_product = []
    for row in rows:
        product = products_by_id.get(row["id"])
        base_cost = (_dec(product.base_cost) + _dec(product.labor_cost)) if product else ZERO
        waste_pct = _dec(product.waste_percentage) if product else ZERO
        cost_with_waste = (base_cost + supplies_cost.get(row["id"], ZERO)) * (1 + waste_pct / 100)
        margin = row["total"] - cost_with_waste * row["quantity"]
        margin_pct = (margin / row["total"] * 100) if row["total"] > 0 else ZERO
        margin_by_product.append({
            "id": row["id"],
            "name": row["name"],
            "margin": margin,
            "margin_pct": margin_pct,
        })

    by_quantity_asc = sorted(rows, key=lambda r: r["quantity"])
    return {
        "most_sold": sorted(rows, key=lambda r: r["quantity"], reverse=True)[:5],
        "least_sold": by_quantity_asc[:5],
        "revenue_by_product": [
            {"id": r["id"], "name": r["name"], "total": r["total"]}
            for r in sorted(rows, key=lambda r: r["total"], reverse=True)[:10]
        ],
        "margin_by_product": margin_by_product,
        "low_turnover": [
            {"id": r["id"], "name": r["name"], "quantity": r["quantity"]}
            for r in by_quantity_asc[:5]
        ],
    }


# ==================== Service ====================

class ReportService:
    """Loads report sources for a tenant and builds the bundle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rows(self, stmt) -> list:
        return list((await self.db.execute(stmt)).scalars().all())

    async def load_sources(self, company_id: uuid.UUID, filters: ReportFilters) -> ReportSources:
        start, end = normalize_range(filters)
        status_filter = filters.status if filters.status and filters.status != "all" else None

        orders_stmt = select(Order).where(
            Order.company_id == company_id,
            Order.created_at >= start,
            Order.created_at <= end,
        )
        if status_filter:
            orders_stmt = orders_stmt.where(Order.status == status_filter)
        orders = await self._rows(orders_stmt)
        order_ids = [o.id for o in orders]

        order_items = await self._rows(
            select(OrderItem).where(OrderItem.order_id.in_(order_ids))
        ) if order_ids else []

        payments = await self._rows(select(OrderPayment).where(
            OrderPayment.company_id == company_id,
            OrderPayment.created_at >= start,
            OrderPayment.created_at <= end,
        ))
        sales = await self._rows(select(Sale).where(
            Sale.company_id == company_id,
            Sale.created_at >= start,
            Sale.created_at <= end,
        ))
        sale_ids = [s.id for s in sales]
        sale_items = await self._rows(
            select(SaleItem).where(SaleItem.sale_id.in_(sale_ids))
        ) if sale_ids else []

        entries = await self._rows(select(FinancialEntry).where(
            FinancialEntry.company_id == company_id,
            FinancialEntry.occurred_at >= start,
            FinancialEntry.occurred_at <= end,
        ))
        categories = await self._rows(
            select(ExpenseCategory).where(ExpenseCategory.company_id == company_id)
        )
        products = await self._rows(select(Product).where(Product.company_id == company_id))
        product_ids = [p.id for p in products]
        supplies = await self._rows(
            select(ProductSupply)
            .options(selectinload(ProductSupply.supply))
            .where(ProductSupply.product_id.in_(product_ids))
        ) if product_ids else []

        customer_ids = list({o.customer_id for o in orders if o.customer_id})
        customers = await self._rows(
            select(Customer).where(Customer.id.in_(customer_ids))
        ) if customer_ids else []

        return ReportSources(
            orders=orders,
            order_items=order_items,
            order_payments=payments,
            sales=sales,
            sale_items=sale_items,
            customers=customers,
            products=products,
            product_supplies=supplies,
            financial_entries=entries,
            expense_categories=categories,
        )

    async def opening_balance(self, company_id: uuid.UUID, filters: ReportFilters) -> Decimal:
        """Zero unless the caller picked a start date."""
        if not filters.start_date:
            return ZERO
        start, _ = normalize_range(filters)

        payments = await self._rows(select(OrderPayment).where(
            OrderPayment.company_id == company_id,
            OrderPayment.created_at < start,
        ))
        sales = await self._rows(select(Sale).where(
            Sale.company_id == company_id,
            Sale.created_at < start,
        ))
        entries = await self._rows(select(FinancialEntry).where(
            FinancialEntry.company_id == company_id,
            FinancialEntry.occurred_at < start,
        ))
        return opening_balance_from(payments, sales, entries)

    async def load(
        self,
        company_id: uuid.UUID,
        filters: ReportFilters,
        report: ReportType = ReportType.ALL,
    ) -> dict:
        """Report bundle, or a single section when report is not ALL."""
        sources = await self.load_sources(company_id, filters)
        builders = {
            ReportType.FINANCIAL: build_financial_report,
            ReportType.SALES: build_sales_report,
            ReportType.CUSTOMERS: build_customer_report,
            ReportType.PRODUCTS: build_product_report,
        }

        bundle = {}
        if report in (ReportType.ALL, ReportType.CASH):
            bundle["cash"] = build_cash_report(sources, await self.opening_balance(company_id, filters))
        for kind, builder in builders.items():
            if report in (ReportType.ALL, kind):
                bundle[kind.value] = builder(sources)

        logger.info(
            "Report %s built for company %s: %d orders, %d payments",
            report.value, company_id, len(sources.orders), len(sources.order_payments),
        )
        return bundle
