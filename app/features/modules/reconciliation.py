"""
Orphaned permission sweep.

Finds employee permissions whose holder's *current* company does not have the
module enabled and deletes them. This catches what the revoke cascade cannot:
an employee moved to another company never goes through the module ledger.

Permissions are grouped by (current company, module). Each group re-reads the
company's grant and is cleaned in its own transaction, so a grant that lands
mid-sweep makes its group pass, and a storage error in one group is recorded
in the report without stopping the others.
"""
from typing import List, Optional, Tuple
from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.audit.dependencies import create_audit_log
from app.features.companies.models import Company
from app.features.modules.exceptions import PartialCleanupFailure
from app.features.modules.models import Module, CompanyModuleAccess, UserModulePermission
from app.features.modules.schemas import CleanupCompanyEntry, CleanupFailure, CleanupReport
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

REASON_NO_COMPANY = "no_company"
REASON_ACCESS_MISSING = "access_missing"
REASON_ACCESS_DISABLED = "access_disabled"
REASON_MODULE_INACTIVE = "module_inactive"


async def _permission_groups(db: AsyncSession) -> List[Tuple[Optional[str], str]]:
    """Distinct (holder's current company, module) pairs present in the permission table."""
    result = await db.execute(
        select(User.company_id, UserModulePermission.module_id)
        .select_from(UserModulePermission)
        .join(User, User.id == UserModulePermission.user_id)
        .group_by(User.company_id, UserModulePermission.module_id)
        .order_by(User.company_id, UserModulePermission.module_id)
    )
    return [(row.company_id, row.module_id) for row in result.all()]


async def _orphan_reason(
    db: AsyncSession,
    company_id: Optional[str],
    module: Module,
    include_inactive_modules: bool,
) -> Optional[str]:
    """Why a group's permissions are orphaned, or None if they are valid."""
    if company_id is None:
        return REASON_NO_COMPANY

    result = await db.execute(
        select(CompanyModuleAccess.is_enabled).where(
            CompanyModuleAccess.company_id == company_id,
            CompanyModuleAccess.module_id == module.id,
        )
    )
    is_enabled = result.scalar_one_or_none()
    if is_enabled is None:
        return REASON_ACCESS_MISSING
    if not is_enabled:
        return REASON_ACCESS_DISABLED
    if include_inactive_modules and not module.is_active:
        return REASON_MODULE_INACTIVE
    return None


async def _reconcile_group(
    db: AsyncSession,
    company_id: Optional[str],
    module_id: str,
    include_inactive_modules: bool,
    dry_run: bool,
) -> Optional[CleanupCompanyEntry]:
    """
    Check one group and delete its permissions if orphaned.

    Returns:
        Report entry, or None if the group is valid or had nothing left to delete

    Raises:
        PartialCleanupFailure: the group's transaction failed and was rolled back
    """
    try:
        module = await db.get(Module, module_id, populate_existing=True)
        if module is None:
            await db.commit()
            return None
        reason = await _orphan_reason(db, company_id, module, include_inactive_modules)
        if reason is None:
            await db.commit()
            return None

        if company_id is None:
            holders = select(User.id).where(User.company_id.is_(None))
            company_name = None
        else:
            holders = select(User.id).where(User.company_id == company_id)
            company = await db.get(Company, company_id)
            company_name = company.name if company else None

        in_group = (
            UserModulePermission.module_id == module_id,
            UserModulePermission.user_id.in_(holders),
        )
        if dry_run:
            result = await db.execute(
                select(func.count()).select_from(UserModulePermission).where(*in_group)
            )
            deleted = result.scalar() or 0
        else:
            result = await db.execute(
                delete(UserModulePermission)
                .where(*in_group)
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount or 0

        module_name = module.name
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PartialCleanupFailure(company_id, module_id, str(exc)) from exc

    if deleted == 0:
        return None

    log.warning(
        "%s %d orphaned permission(s) on module %s for company %s (%s)",
        "Found" if dry_run else "Deleted", deleted, module_id, company_id, reason
    )
    return CleanupCompanyEntry(
        company_id=company_id,
        company_name=company_name,
        module_id=module_id,
        module_name=module_name,
        deleted_permissions=deleted,
        reason=reason,
    )


async def cleanup_orphaned_permissions(
    db: AsyncSession,
    actor_id: Optional[str] = None,
    dry_run: bool = False,
    include_inactive_modules: Optional[bool] = None,
) -> CleanupReport:
    """
    Sweep the whole permission table for orphans.

    Args:
        db: Database session
        actor_id: Operator who triggered the sweep (None for scheduled runs)
        dry_run: Report what would be deleted without deleting
        include_inactive_modules: Also treat permissions on deactivated modules
            as orphaned; defaults to config.ORPHAN_INACTIVE_MODULE_PERMISSIONS

    Returns:
        Report with the total deleted, one entry per cleaned group and one
        entry per group that failed
    """
    if include_inactive_modules is None:
        include_inactive_modules = config.ORPHAN_INACTIVE_MODULE_PERMISSIONS

    groups = await _permission_groups(db)
    report = CleanupReport(dry_run=dry_run)

    for company_id, module_id in groups:
        try:
            entry = await _reconcile_group(db, company_id, module_id, include_inactive_modules, dry_run)
        except PartialCleanupFailure as failure:
            log.error("Cleanup of module %s for company %s failed: %s", module_id, company_id, failure.details["cause"])
            report.failures.append(
                CleanupFailure(company_id=company_id, module_id=module_id, error=failure.details["cause"])
            )
            continue

        if entry is not None:
            report.companies.append(entry)
            report.deleted_count += entry.deleted_permissions

    if report.deleted_count and not dry_run:
        # Deletions are already committed per group; a failed summary entry
        # must not hide the report from the caller
        try:
            await create_audit_log(
                db,
                user_id=actor_id,
                action="cleanup",
                resource_type="user_module_permission",
                details={
                    "deleted_count": report.deleted_count,
                    "groups": [entry.model_dump() for entry in report.companies],
                    "failures": len(report.failures),
                },
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            log.error("Could not write audit entry for orphaned permission sweep: %s", exc)

    log.info(
        "Orphaned permission sweep finished: %d group(s) checked, %d permission(s) %s, %d failure(s)",
        len(groups), report.deleted_count, "found" if dry_run else "deleted", len(report.failures)
    )
    return report
