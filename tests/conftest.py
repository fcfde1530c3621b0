"""Shared fixtures for GraphPOS tests.

Provides a throwaway SQLite database, an httpx client bound to the
FastAPI app, and factories for companies, users and tokens.
"""

import os
import tempfile
import uuid
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Settings are read at import time, so the environment must be ready first.
_TEST_DIR = tempfile.mkdtemp(prefix="graphpos-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-graphpos-tests"
os.environ["REDIS_URL"] = ""

from graphpos import models  # noqa: E402,F401
from graphpos.core.permissions import AppRole  # noqa: E402
from graphpos.core.security import create_access_token, get_password_hash  # noqa: E402
from graphpos.database import Base, async_session_factory, engine  # noqa: E402
from graphpos.main import app  # noqa: E402
from graphpos.models.company import Company  # noqa: E402
from graphpos.models.user import User  # noqa: E402
from graphpos.services import cache_service, cart_service, order_events  # noqa: E402

TEST_PASSWORD = "Senha@123"


@pytest_asyncio.fixture()
async def db():
    """Fresh schema per test and a session on it."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Each test gets its own in-memory cache, order broker and cart listeners."""
    cache_service._cache_instance = None
    order_events._broker = None
    cart_service._listeners.clear()
    yield
    cache_service._cache_instance = None
    order_events._broker = None
    cart_service._listeners.clear()


@pytest_asyncio.fixture()
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_company(db, slug: str = "grafica-centro", **kwargs) -> Company:
    company = Company(
        name=kwargs.pop("name", "Gráfica Centro"),
        slug=slug,
        minimum_order_value=kwargs.pop("minimum_order_value", Decimal("50.00")),
        **kwargs,
    )
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


async def make_user(
    db,
    company: Optional[Company],
    role: str = AppRole.ADMIN.value,
    email: Optional[str] = None,
    is_active: bool = True,
) -> User:
    user = User(
        company_id=company.id if company else None,
        email=email or f"{role}-{uuid.uuid4().hex[:8]}@graphpos.com.br",
        password_hash=get_password_hash(TEST_PASSWORD),
        full_name=f"Usuario {role}",
        role=role,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token(
        subject=user.id,
        additional_claims={
            "email": user.email,
            "role": user.role,
            "company_id": str(user.company_id) if user.company_id else None,
        },
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def company(db) -> Company:
    return await make_company(db)


@pytest_asyncio.fixture()
async def admin(db, company) -> User:
    return await make_user(db, company, AppRole.ADMIN.value)


@pytest.fixture()
def admin_headers(admin) -> dict:
    return auth_headers(admin)
