from enum import Enum
from typing import Iterable

from graphpos.models.user import User


class AppRole(str, Enum):
    """Roles a user can hold inside a company."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    ATENDENTE = "atendente"
    CAIXA = "caixa"
    PRODUCAO = "producao"


# Roles allowed to move orders between statuses
ORDER_STATUS_ROLES = frozenset({
    AppRole.ADMIN.value,
    AppRole.ATENDENTE.value,
    AppRole.CAIXA.value,
    AppRole.PRODUCAO.value,
})

# Roles allowed to bring a canceled order back to "pendente"
REACTIVATION_ROLES = frozenset({
    AppRole.ADMIN.value,
    AppRole.ATENDENTE.value,
})


def role_allowed(role: str | None, allowed: Iterable[str]) -> bool:
    """Plain role inclusion. super_admin passes every check."""
    if role is None:
        return False
    if role == AppRole.SUPER_ADMIN.value:
        return True
    return role in set(allowed)


class PermissionChecker:
    """
    Permission checker utility for role-based access.

    A user holds exactly one role; checks are set inclusion.
    """

    def __init__(self, user: User):
        self.user = user
        self.role = user.role

    def has_role(self, *role_codes: str) -> bool:
        """
        Check if user has any of the given roles.
        SUPER_ADMIN automatically passes.
        """
        return role_allowed(self.role, role_codes)

    def can_update_order_status(self) -> bool:
        return role_allowed(self.role, ORDER_STATUS_ROLES)
