"""
Module registry lookups and administration.
"""
from typing import List
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.audit.dependencies import create_audit_log
from app.features.modules.exceptions import ModuleNotFound, ModuleAlreadyExists
from app.features.modules.models import Module, CompanyModuleAccess, UserModulePermission
from app.features.modules.schemas import ModuleCreate, ModuleUpdate
from app.features.users.models import User, UserRole
from app.utils import get_logger


log = get_logger(__name__)


async def resolve_module(db: AsyncSession, module_ref: str, active_only: bool = True) -> Module:
    """
    Look up a module by ID or slug. An ID match wins over a slug match.

    Args:
        db: Database session
        module_ref: Module ULID or slug
        active_only: Reject modules deactivated platform-wide

    Raises:
        ModuleNotFound: if nothing matches, or the match is inactive and
            active_only is set
    """
    result = await db.execute(select(Module).where(Module.id == module_ref))
    module = result.scalar_one_or_none()
    if module is None:
        result = await db.execute(select(Module).where(Module.slug == module_ref))
        module = result.scalar_one_or_none()

    if module is None:
        raise ModuleNotFound(module_ref)
    if active_only and not module.is_active:
        raise ModuleNotFound(module_ref, inactive=True)

    return module


async def list_modules(db: AsyncSession) -> List[Module]:
    result = await db.execute(select(Module).order_by(Module.created_at.desc(), Module.slug))
    return list(result.scalars().all())


async def list_available_modules(db: AsyncSession, user: User) -> List[Module]:
    """
    Modules the user can actually use right now.

    - admin: every module
    - company owner: active modules enabled for their company
    - employee: active modules they hold a permission on *and* their current
      company has enabled; orphaned permissions never show up here
    """
    if user.role == UserRole.ADMIN:
        return await list_modules(db)
    if user.company_id is None:
        return []

    stmt = (
        select(Module)
        .join(CompanyModuleAccess, CompanyModuleAccess.module_id == Module.id)
        .where(
            CompanyModuleAccess.company_id == user.company_id,
            CompanyModuleAccess.is_enabled.is_(True),
            Module.is_active.is_(True),
        )
    )
    if user.role == UserRole.EMPLOYEE:
        stmt = stmt.join(
            UserModulePermission,
            (UserModulePermission.module_id == Module.id) & (UserModulePermission.user_id == user.id),
        )

    result = await db.execute(stmt.order_by(Module.name))
    return list(result.scalars().all())


async def get_module_for_user(db: AsyncSession, user: User, module_ref: str) -> Module:
    """
    Get a module by ID or slug, hiding modules the user cannot use.
    """
    if user.role == UserRole.ADMIN:
        return await resolve_module(db, module_ref, active_only=False)

    module = await resolve_module(db, module_ref)
    available = await list_available_modules(db, user)
    if module.id not in {m.id for m in available}:
        raise ModuleNotFound(module_ref)
    return module


async def create_module(db: AsyncSession, data: ModuleCreate, actor_id: str | None = None) -> Module:
    """
    Register a new module.

    Raises:
        ModuleAlreadyExists: if the slug is taken
    """
    existing = await db.execute(select(Module).where(Module.slug == data.slug))
    if existing.scalar_one_or_none() is not None:
        raise ModuleAlreadyExists(data.slug)

    module = Module(**data.model_dump())
    db.add(module)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ModuleAlreadyExists(data.slug)

    await create_audit_log(
        db,
        user_id=actor_id,
        action="create",
        resource_type="module",
        resource_id=module.id,
        details=data.model_dump(),
    )
    await db.commit()
    await db.refresh(module)

    log.info("Created module %s (%s)", module.slug, module.id)
    return module


async def update_module(
    db: AsyncSession,
    module_id: str,
    data: ModuleUpdate,
    actor_id: str | None = None
) -> Module:
    """
    Update module metadata or its active flag.

    Deactivating a module does not touch grants or permissions; see
    ORPHAN_INACTIVE_MODULE_PERMISSIONS for how the sweep treats them.
    """
    module = await resolve_module(db, module_id, active_only=False)

    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(module, key, value)

    await create_audit_log(
        db,
        user_id=actor_id,
        action="update",
        resource_type="module",
        resource_id=module.id,
        details=update_data,
    )
    await db.commit()
    await db.refresh(module)

    log.info("Updated module %s: %s", module.slug, update_data)
    return module


async def deactivate_module(db: AsyncSession, module_id: str, actor_id: str | None = None) -> Module:
    """Soft-delete a module."""
    return await update_module(db, module_id, ModuleUpdate(is_active=False), actor_id=actor_id)
