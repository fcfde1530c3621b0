# Models module - importing registers every table on Base.metadata
from graphpos.models.plan import Plan, BillingPeriod
from graphpos.models.company import Company, SubscriptionStatus
from graphpos.models.user import User
from graphpos.models.customer import Customer
from graphpos.models.product import Product, PriceTier, Supply, ProductSupply
from graphpos.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory,
    OrderPayment, OrderNotification, PaymentStatus, PaymentMethod,
    ORDER_STATUS_LABELS,
)
from graphpos.models.finance import (
    Sale, SaleItem, ExpenseCategory, FinancialEntry,
    FinancialEntryType, FinancialEntryStatus,
)

__all__ = [
    "Plan",
    "BillingPeriod",
    "Company",
    "SubscriptionStatus",
    "User",
    "Customer",
    "Product",
    "PriceTier",
    "Supply",
    "ProductSupply",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "OrderPayment",
    "OrderNotification",
    "PaymentStatus",
    "PaymentMethod",
    "ORDER_STATUS_LABELS",
    "Sale",
    "SaleItem",
    "ExpenseCategory",
    "FinancialEntry",
    "FinancialEntryType",
    "FinancialEntryStatus",
]
