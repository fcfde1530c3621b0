from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpos.config import settings
from graphpos.core.permissions import AppRole
from graphpos.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from graphpos.core.validators import slugify
from graphpos.models.company import Company, SubscriptionStatus
from graphpos.models.user import User
from graphpos.schemas.auth import SignupRequest, UserCreate

logger = logging.getLogger(__name__)

TRIAL_DAYS = 7


class AuthService:
    """Authentication service for user login, signup and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None
        return user

    async def create_tokens(self, user: User) -> Tuple[str, str, int]:
        """
        Create access and refresh tokens for a user.

        Returns:
            Tuple of (access_token, refresh_token, expires_in_seconds)
        """
        additional_claims = {
            "email": user.email,
            "role": user.role,
            "company_id": str(user.company_id) if user.company_id else None,
        }

        access_token = create_access_token(subject=user.id, additional_claims=additional_claims)
        refresh_token = create_refresh_token(subject=user.id)
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()

        return access_token, refresh_token, expires_in

    async def refresh_tokens(self, refresh_token: str) -> Optional[Tuple[str, str, int]]:
        """New token pair from a valid refresh token, or None."""
        user_id = verify_refresh_token(refresh_token)
        if user_id is None:
            return None

        try:
            user_uuid = uuid.UUID(user_id)
        except ValueError:
            return None

        user = (await self.db.execute(select(User).where(User.id == user_uuid))).scalar_one_or_none()
        if user is None or not user.is_active:
            return None

        return await self.create_tokens(user)

    async def _unique_company_slug(self, base: str) -> str:
        root = slugify(base) or "loja"
        candidate, suffix = root, 2
        while (await self.db.execute(select(Company.id).where(Company.slug == candidate))).first():
            candidate = f"{root}-{suffix}"
            suffix += 1
        return candidate

    async def signup(self, data: SignupRequest) -> User:
        """Create a company on trial together with its first admin user."""
        if await self.get_user_by_email(data.email):
            raise ValueError("E-mail já cadastrado")

        company = Company(
            name=data.company_name.strip(),
            slug=await self._unique_company_slug(data.company_slug or data.company_name),
            subscription_status=SubscriptionStatus.TRIAL.value,
            trial_ends_at=datetime.now(timezone.utc) + timedelta(days=TRIAL_DAYS),
        )
        self.db.add(company)
        await self.db.flush()

        user = User(
            company_id=company.id,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            full_name=data.full_name.strip(),
            role=AppRole.ADMIN.value,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("Company %s signed up with admin %s", company.slug, user.email)
        return user

    async def create_user(self, company_id: uuid.UUID, data: UserCreate) -> User:
        """Add a staff member to a company."""
        if await self.get_user_by_email(data.email):
            raise ValueError("E-mail já cadastrado")

        user = User(
            company_id=company_id,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            full_name=data.full_name.strip(),
            role=data.role.value,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def list_users(self, company_id: uuid.UUID) -> list[User]:
        stmt = select(User).where(User.company_id == company_id).order_by(User.full_name)
        return list((await self.db.execute(stmt)).scalars().all())
