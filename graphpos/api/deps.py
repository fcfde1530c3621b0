from typing import Annotated
import uuid
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.database import get_db
from graphpos.core.security import verify_access_token
from graphpos.core.permissions import AppRole, PermissionChecker
from graphpos.core.tenant_context import (
    TenantContext,
    TenantInactiveError,
    TenantNotFoundError,
    TenantRef,
    get_tenant_ref,
    resolve_tenant,
)
from graphpos.models.user import User


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    user = (await db.execute(select(User).where(User.id == user_uuid))).scalar_one_or_none()
    if user is None:
        logger.warning(f"User {user_id} not found")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


async def get_tenant(
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TenantContext:
    """
    Resolve the company the request operates on.

    Uses the header/subdomain reference when present, else the user's
    own company. Only super_admin may act on another company.
    """
    ref = get_tenant_ref(request)
    if ref is None:
        if user.company_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant não identificado"
            )
        ref = TenantRef(kind="id", value=str(user.company_id))

    try:
        tenant = await resolve_tenant(db, ref)
    except TenantNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")
    except TenantInactiveError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Empresa inativa")

    if tenant.company_id != user.company_id and user.role != AppRole.SUPER_ADMIN.value:
        logger.warning("User %s tried to access company %s", user.id, tenant.company_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado a esta empresa"
        )

    request.state.tenant = tenant
    return tenant


async def get_permission_checker(
    user: Annotated[User, Depends(get_current_user)],
) -> PermissionChecker:
    return PermissionChecker(user)


def require_roles(*roles: str):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.put("/", dependencies=[Depends(require_roles(AppRole.ADMIN.value))])
        async def update_company():
            ...
    """
    async def role_dependency(
        permission_checker: Annotated[PermissionChecker, Depends(get_permission_checker)]
    ):
        if not permission_checker.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required any of: {', '.join(roles)}"
            )
        return True

    return role_dependency


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Tenant = Annotated[TenantContext, Depends(get_tenant)]
