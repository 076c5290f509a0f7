"""
Employee module permissions.

A permission can only be written while the employee's current company has the
module enabled. Nothing here re-checks that on read; permissions orphaned
later (e.g. by moving the employee to another company) are removed by the
reconciliation sweep.
"""
from typing import List, Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.features.audit.dependencies import create_audit_log
from app.features.companies.models import Company
from app.features.modules.exceptions import (
    EmployeeNotFound,
    ModuleNotEnabledForCompany,
    PermissionNotFound,
)
from app.features.modules.ledger import company_has_module
from app.features.modules.models import UserModulePermission
from app.features.modules.registry import resolve_module
from app.features.modules.schemas import PermissionSet
from app.features.users.models import User, UserRole
from app.utils import get_logger


log = get_logger(__name__)


async def get_employee_or_raise(db: AsyncSession, employee_id: str) -> User:
    """
    Raises:
        EmployeeNotFound: if no user with the employee role has this ID
    """
    result = await db.execute(
        select(User).where(User.id == employee_id, User.role == UserRole.EMPLOYEE)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise EmployeeNotFound(employee_id)
    return employee


async def _load_permission(db: AsyncSession, permission_id: str) -> UserModulePermission:
    result = await db.execute(
        select(UserModulePermission)
        .where(UserModulePermission.id == permission_id)
        .options(selectinload(UserModulePermission.module))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _get_permission(db: AsyncSession, user_id: str, module_id: str) -> Optional[UserModulePermission]:
    result = await db.execute(
        select(UserModulePermission).where(
            UserModulePermission.user_id == user_id,
            UserModulePermission.module_id == module_id,
        )
    )
    return result.scalar_one_or_none()


def _apply_flags(permission: UserModulePermission, permissions: PermissionSet, granted_by_id: Optional[str]):
    permission.can_read = permissions.can_read
    permission.can_write = permissions.can_write
    permission.can_delete = permissions.can_delete
    permission.granted_by_id = granted_by_id


async def grant_employee_permission(
    db: AsyncSession,
    employee_id: str,
    module_ref: str,
    permissions: PermissionSet,
    granted_by_id: Optional[str] = None,
    require_existing: bool = False,
) -> UserModulePermission:
    """
    Create or update an employee's permission flags on a module.

    Args:
        db: Database session
        employee_id: Employee user ID
        module_ref: Module slug or ID
        permissions: Flags to store (replaces any previous flags)
        granted_by_id: Acting user; defaults to the company owner
        require_existing: Only update, never create

    Raises:
        ModuleNotFound: unknown or inactive module
        EmployeeNotFound: unknown user or not an employee
        ModuleNotEnabledForCompany: employee's current company lacks an
            enabled grant (nothing is written)
        PermissionNotFound: require_existing is set and there is no row
    """
    module = await resolve_module(db, module_ref)
    employee = await get_employee_or_raise(db, employee_id)
    employee_id, company_id = employee.id, employee.company_id
    module_id, module_slug = module.id, module.slug

    if not await company_has_module(db, company_id, module_id):
        log.info(
            "Refused %s permission for employee %s: company %s has no access",
            module_slug, employee_id, company_id
        )
        raise ModuleNotEnabledForCompany(company_id, module_id, employee_id)

    if granted_by_id is None:
        company = await db.get(Company, company_id)
        granted_by_id = company.owner_id if company else None

    permission = await _get_permission(db, employee_id, module_id)
    if permission is None:
        if require_existing:
            raise PermissionNotFound(employee_id, module_id)
        permission = UserModulePermission(user_id=employee_id, module_id=module_id)
        _apply_flags(permission, permissions, granted_by_id)
        db.add(permission)
        action = "grant"
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent grant; update the row it created
            await db.rollback()
            permission = await _get_permission(db, employee_id, module_id)
            action = "update"
    else:
        action = "update"

    _apply_flags(permission, permissions, granted_by_id)
    await db.flush()
    permission_id = permission.id

    await create_audit_log(
        db,
        user_id=granted_by_id,
        action=action,
        resource_type="user_module_permission",
        resource_id=permission_id,
        company_id=company_id,
        details={
            "employee_id": employee_id,
            "module_id": module_id,
            "module_slug": module_slug,
            **permissions.model_dump(),
        },
    )
    await db.commit()

    log.info("%s %s permission for employee %s", action.capitalize(), module_slug, employee_id)
    return await _load_permission(db, permission_id)


async def update_employee_permission(
    db: AsyncSession,
    employee_id: str,
    module_ref: str,
    permissions: PermissionSet,
    granted_by_id: Optional[str] = None,
) -> UserModulePermission:
    """Update flags on an existing permission; see grant_employee_permission."""
    return await grant_employee_permission(
        db, employee_id, module_ref, permissions,
        granted_by_id=granted_by_id,
        require_existing=True,
    )


async def revoke_employee_permission(
    db: AsyncSession,
    employee_id: str,
    module_ref: str,
    actor_id: Optional[str] = None,
) -> bool:
    """
    Delete an employee's permission on a module. Revoking a permission that
    does not exist succeeds.

    Returns:
        True if a row was deleted
    """
    employee = await get_employee_or_raise(db, employee_id)
    module = await resolve_module(db, module_ref, active_only=False)

    result = await db.execute(
        delete(UserModulePermission)
        .where(
            UserModulePermission.user_id == employee.id,
            UserModulePermission.module_id == module.id,
        )
        .execution_options(synchronize_session=False)
    )
    deleted = (result.rowcount or 0) > 0

    if deleted:
        await create_audit_log(
            db,
            user_id=actor_id,
            action="revoke",
            resource_type="user_module_permission",
            company_id=employee.company_id,
            details={"employee_id": employee.id, "module_id": module.id, "module_slug": module.slug},
        )
        log.info("Revoked %s permission from employee %s", module.slug, employee.id)
    await db.commit()

    return deleted


async def list_employee_permissions(db: AsyncSession, employee_id: str) -> List[UserModulePermission]:
    """
    All permission rows for an employee with module metadata.

    Rows are returned as stored; an orphaned row (company lost access, or the
    employee changed company) still shows up until the sweep removes it.
    """
    employee = await get_employee_or_raise(db, employee_id)
    result = await db.execute(
        select(UserModulePermission)
        .where(UserModulePermission.user_id == employee.id)
        .options(selectinload(UserModulePermission.module))
        .order_by(UserModulePermission.created_at)
    )
    return list(result.scalars().all())
