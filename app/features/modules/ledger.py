"""
Company module access ledger.

Granting flips (or creates) the company's access row to enabled. Revoking
flips it to disabled and, in the same transaction, deletes every employee
permission on that module held by a user whose current company is the
revoked one. If any part of a revoke fails, none of it is applied.
"""
from typing import List, Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.features.audit.dependencies import create_audit_log
from app.features.companies.dependencies import get_company_or_raise
from app.features.modules.exceptions import CascadeTransactionFailed
from app.features.modules.models import CompanyModuleAccess, UserModulePermission
from app.features.modules.registry import resolve_module
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def get_company_access(
    db: AsyncSession,
    company_id: str,
    module_id: str
) -> Optional[CompanyModuleAccess]:
    result = await db.execute(
        select(CompanyModuleAccess).where(
            CompanyModuleAccess.company_id == company_id,
            CompanyModuleAccess.module_id == module_id,
        )
    )
    return result.scalar_one_or_none()


async def company_has_module(db: AsyncSession, company_id: Optional[str], module_id: str) -> bool:
    """
    Authoritative check used by every write path: absent or disabled both
    mean no access, and a user without a company has access to nothing.
    """
    if company_id is None:
        return False
    result = await db.execute(
        select(CompanyModuleAccess.is_enabled).where(
            CompanyModuleAccess.company_id == company_id,
            CompanyModuleAccess.module_id == module_id,
        )
    )
    return bool(result.scalar_one_or_none())


async def _load_access(db: AsyncSession, access_id: str) -> CompanyModuleAccess:
    result = await db.execute(
        select(CompanyModuleAccess)
        .where(CompanyModuleAccess.id == access_id)
        .options(selectinload(CompanyModuleAccess.module))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def list_company_modules(db: AsyncSession, company_id: str) -> List[CompanyModuleAccess]:
    """
    All access rows for a company, enabled and disabled, with module metadata.

    Raises:
        CompanyNotFound: if the company does not exist
    """
    company = await get_company_or_raise(db, company_id)
    result = await db.execute(
        select(CompanyModuleAccess)
        .where(CompanyModuleAccess.company_id == company.id)
        .options(selectinload(CompanyModuleAccess.module))
        .order_by(CompanyModuleAccess.created_at)
    )
    return list(result.scalars().all())


async def grant_module_to_company(
    db: AsyncSession,
    company_id: str,
    module_ref: str,
    actor_id: Optional[str] = None
) -> CompanyModuleAccess:
    """
    Enable a module for a company. Re-granting is a no-op.

    Employee permissions deleted by an earlier revoke are not restored;
    employees have to be granted again.

    Raises:
        CompanyNotFound: if the company does not exist
        ModuleNotFound: if the module is unknown or inactive
    """
    company = await get_company_or_raise(db, company_id)
    module = await resolve_module(db, module_ref)
    company_id, module_id, module_slug = company.id, module.id, module.slug

    access = await get_company_access(db, company_id, module_id)
    if access is not None and access.is_enabled:
        log.debug("Module %s already enabled for company %s", module_slug, company_id)
        return await _load_access(db, access.id)

    if access is None:
        access = CompanyModuleAccess(company_id=company_id, module_id=module_id, is_enabled=True)
        db.add(access)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent grant; the row exists now
            await db.rollback()
            access = await get_company_access(db, company_id, module_id)
            access.is_enabled = True
    else:
        access.is_enabled = True

    await create_audit_log(
        db,
        user_id=actor_id,
        action="grant",
        resource_type="company_module_access",
        resource_id=access.id,
        company_id=company_id,
        details={"module_id": module_id, "module_slug": module_slug},
    )
    await db.commit()

    log.info("Granted module %s to company %s", module_slug, company_id)
    return await _load_access(db, access.id)


async def _cascade_revoke(db: AsyncSession, company_id: str, module_id: str) -> int:
    """
    Delete the module's permissions for everyone currently in the company.

    Must run inside the revoke's transaction; never called on its own.
    """
    current_members = select(User.id).where(User.company_id == company_id)
    result = await db.execute(
        delete(UserModulePermission)
        .where(
            UserModulePermission.module_id == module_id,
            UserModulePermission.user_id.in_(current_members),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def revoke_module_from_company(
    db: AsyncSession,
    company_id: str,
    module_ref: str,
    actor_id: Optional[str] = None
) -> CompanyModuleAccess:
    """
    Disable a module for a company and cascade to employee permissions.

    Idempotent: a missing grant is recorded as disabled and an already
    disabled grant stays disabled, including when another request creates
    the row concurrently. The cascade runs either way so leftovers from an
    earlier failure are removed.

    Raises:
        CompanyNotFound: if the company does not exist
        ModuleNotFound: if the module is unknown (inactive modules can be revoked)
        CascadeTransactionFailed: if the flip, cascade or audit write failed;
            the transaction is rolled back and nothing is applied
    """
    company = await get_company_or_raise(db, company_id)
    module = await resolve_module(db, module_ref, active_only=False)
    company_id, module_id, module_slug = company.id, module.id, module.slug

    try:
        access = await get_company_access(db, company_id, module_id)
        if access is None:
            access = CompanyModuleAccess(company_id=company_id, module_id=module_id, is_enabled=False)
            db.add(access)
            try:
                await db.flush()
            except IntegrityError:
                # A concurrent grant or revoke created the row first
                await db.rollback()
                access = await get_company_access(db, company_id, module_id)
        access.is_enabled = False
        await db.flush()
        access_id = access.id

        deleted = await _cascade_revoke(db, company_id, module_id)

        await create_audit_log(
            db,
            user_id=actor_id,
            action="revoke",
            resource_type="company_module_access",
            resource_id=access_id,
            company_id=company_id,
            details={
                "module_id": module_id,
                "module_slug": module_slug,
                "cascaded_permissions": deleted,
            },
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error(
            "Revoking module %s from company %s failed, rolled back: %s",
            module_slug, company_id, exc
        )
        raise CascadeTransactionFailed(company_id, module_id, str(exc)) from exc

    log.info(
        "Revoked module %s from company %s; removed %d employee permission(s)",
        module_slug, company_id, deleted
    )
    return await _load_access(db, access_id)
