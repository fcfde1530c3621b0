"""
Enum Utilities for VARCHAR-based Status Fields

ARCHITECTURE STANDARD:
━━━━━━━━━━━━━━━━━━━━━
• Database: VARCHAR(50) - NOT PostgreSQL ENUM
• SQLAlchemy: String(50) with Mapped[str]
• Pydantic: Python Enum for API validation
• API Response: Use string directly (NO .value needed)
• Case: All enum values stored in lowercase snake_case ("em_producao")

DATA FLOW:
━━━━━━━━━━
INPUT (API Request):
    Pydantic Enum → .value → String → Database
    Example: OrderStatus.EM_PRODUCAO → "em_producao" → VARCHAR

OUTPUT (API Response):
    Database → String → Return directly

LEGACY VALUES:
━━━━━━━━━━━━━━
Older clients still send "pronto" for a finished order. normalize_order_status()
maps it to "finalizado" before validation.
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type


T = TypeVar('T', bound=Enum)

LEGACY_ORDER_STATUS_ALIASES = {
    "pronto": "finalizado",
}


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.PENDENTE)  # Pydantic input
        'pendente'
        >>> get_enum_value("pendente")  # Database value
        'pendente'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance, or None if not a member.

    Examples:
        >>> to_enum("pendente", OrderStatus)
        OrderStatus.PENDENTE
        >>> to_enum("invalid", OrderStatus)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def normalize_order_status(value: Any) -> Optional[str]:
    """
    Normalize an order status coming from a client or an old row.

    Trims, lowercases and maps legacy aliases ("pronto" → "finalizado").
    Does not validate membership; use to_enum() for that.
    """
    raw = get_enum_value(value)
    if raw is None:
        return None
    normalized = raw.strip().lower()
    return LEGACY_ORDER_STATUS_ALIASES.get(normalized, normalized)
