"""
Pytest configuration and fixtures for testing.

This module provides:
- An isolated in-memory database per test
- An async HTTP client for the FastAPI app with the database swapped in
- A `login` fixture that replaces Appwrite authentication with a local user
- Factories for companies, users, modules, grants and permissions
"""

import os

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import get_db
from app.features.audit.models import AuditLog
from app.features.companies.models import Company
from app.features.modules.models import Module, CompanyModuleAccess, UserModulePermission
from app.features.users.dependencies import get_current_user
from app.features.users.models import User, UserRole
from app.main import app


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
async def engine():
    """Fresh in-memory database shared by every session of one test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    """Session used by the test itself for setup and assertions."""
    async with session_factory() as session:
        yield session


# =============================================================================
# TEST CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def login():
    """Authenticate requests as the given user: `login(user)`."""
    state = {}

    async def override_get_current_user():
        return state["user"]

    def _login(user: User):
        state["user"] = user

    app.dependency_overrides[get_current_user] = override_get_current_user
    yield _login
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
async def client(session_factory, login):
    """Async client for the app, one session per request like get_db."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


# =============================================================================
# DATA FACTORIES
# =============================================================================


class Factory:
    """Creates committed rows directly, bypassing the services under test."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def company(self, name: str = "Acme") -> Company:
        """Company with an owner user."""
        company = await self._save(Company(name=name))
        slug = name.lower().replace(" ", "-")
        owner = await self.user(f"owner-{slug}", role=UserRole.COMPANY_OWNER, company=company)
        company.owner_id = owner.id
        await self.db.commit()
        await self.db.refresh(company)
        return company

    async def owner_of(self, company: Company) -> User:
        return await self.db.get(User, company.owner_id)

    async def user(
        self,
        name: str,
        role: UserRole = UserRole.EMPLOYEE,
        company: Company | None = None,
    ) -> User:
        return await self._save(User(
            appwrite_id=f"aw-{name}",
            email=f"{name}@acme.com",
            name=name,
            role=role,
            company_id=company.id if company else None,
        ))

    async def admin(self) -> User:
        return await self.user("admin", role=UserRole.ADMIN)

    async def employee(self, name: str, company: Company | None) -> User:
        return await self.user(name, company=company)

    async def module(self, slug: str, is_active: bool = True) -> Module:
        name = slug.replace("-", " ").title()
        return await self._save(Module(name=name, slug=slug, is_active=is_active))

    async def access(self, company: Company, module: Module, is_enabled: bool = True) -> CompanyModuleAccess:
        return await self._save(CompanyModuleAccess(
            company_id=company.id,
            module_id=module.id,
            is_enabled=is_enabled,
        ))

    async def permission(
        self,
        user: User,
        module: Module,
        can_read: bool = True,
        can_write: bool = False,
        can_delete: bool = False,
    ) -> UserModulePermission:
        return await self._save(UserModulePermission(
            user_id=user.id,
            module_id=module.id,
            can_read=can_read,
            can_write=can_write,
            can_delete=can_delete,
        ))

    async def move(self, user_id: str, company_id: str | None):
        """Reassign a user the way the directory does: one column update."""
        user = await self.db.get(User, user_id)
        user.company_id = company_id
        await self.db.commit()


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


# =============================================================================
# QUERY HELPERS
# =============================================================================


@pytest.fixture
def count_permissions(db):
    """Count permission rows, optionally for one user and/or module."""

    async def _count(user_id: str | None = None, module_id: str | None = None) -> int:
        stmt = select(func.count()).select_from(UserModulePermission)
        if user_id is not None:
            stmt = stmt.where(UserModulePermission.user_id == user_id)
        if module_id is not None:
            stmt = stmt.where(UserModulePermission.module_id == module_id)
        return (await db.execute(stmt)).scalar()

    return _count


@pytest.fixture
def access_enabled(db):
    """Current is_enabled for a (company, module) pair, None when absent."""

    async def _enabled(company_id: str, module_id: str) -> bool | None:
        result = await db.execute(
            select(CompanyModuleAccess.is_enabled).where(
                CompanyModuleAccess.company_id == company_id,
                CompanyModuleAccess.module_id == module_id,
            )
        )
        return result.scalar_one_or_none()

    return _enabled


@pytest.fixture
def audit_actions(db):
    """Actions recorded in the audit log for a resource type, oldest first."""

    async def _actions(resource_type: str) -> list[str]:
        result = await db.execute(
            select(AuditLog.action)
            .where(AuditLog.resource_type == resource_type)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())

    return _actions
