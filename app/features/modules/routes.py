"""
Module access API routes.

Provides endpoints for the module registry, company module access, employee
module permissions and the orphaned permission cleanup.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user, get_current_admin_user, get_company_manager
from app.features.users.models import User
from app.features.modules import employee_permissions, ledger, reconciliation, registry
from app.features.modules.dependencies import get_managed_employee
from app.features.modules.schemas import (
    ModuleCreate,
    ModuleUpdate,
    ModuleResponse,
    CompanyModuleAccessResponse,
    PermissionSet,
    EmployeeModulePermissionResponse,
    CleanupReport,
)


router = APIRouter()


# ============================================================================
# Cleanup (admin)
# ============================================================================

@router.post("/cleanup/orphaned-permissions", response_model=CleanupReport)
async def cleanup_orphaned_permissions(
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dry_run: bool = Query(False, alias="dryRun"),
):
    """
    Delete employee permissions whose holder's current company does not have
    the module enabled. Groups that fail are listed under `failures`.
    """
    return await reconciliation.cleanup_orphaned_permissions(db, actor_id=admin.id, dry_run=dry_run)


# ============================================================================
# Company Module Access (admin)
# ============================================================================

@router.get("/companies/{company_id}", response_model=List[CompanyModuleAccessResponse])
async def list_company_modules(
    company_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List a company's module access records, enabled and disabled."""
    return await ledger.list_company_modules(db, company_id)


@router.post(
    "/companies/{company_id}/{module_ref}",
    response_model=CompanyModuleAccessResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_module_to_company(
    company_id: str,
    module_ref: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Enable a module (by ID or slug) for a company."""
    return await ledger.grant_module_to_company(db, company_id, module_ref, actor_id=admin.id)


@router.delete("/companies/{company_id}/{module_ref}", response_model=CompanyModuleAccessResponse)
async def revoke_module_from_company(
    company_id: str,
    module_ref: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Disable a module for a company and remove its employees' permissions on it."""
    return await ledger.revoke_module_from_company(db, company_id, module_ref, actor_id=admin.id)


# ============================================================================
# Employee Module Permissions (admin or owner of the employee's company)
# ============================================================================

@router.get("/employees/{employee_id}", response_model=List[EmployeeModulePermissionResponse])
async def list_employee_modules(
    employee: Annotated[User, Depends(get_managed_employee)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List an employee's module permissions."""
    return await employee_permissions.list_employee_permissions(db, employee.id)


@router.post(
    "/employees/{employee_id}/{module_slug}",
    response_model=EmployeeModulePermissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_module_to_employee(
    module_slug: str,
    permissions: PermissionSet,
    employee: Annotated[User, Depends(get_managed_employee)],
    manager: Annotated[User, Depends(get_company_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Grant or replace an employee's permissions on a module."""
    return await employee_permissions.grant_employee_permission(
        db, employee.id, module_slug, permissions, granted_by_id=manager.id
    )


@router.patch("/employees/{employee_id}/{module_slug}", response_model=EmployeeModulePermissionResponse)
async def update_employee_module(
    module_slug: str,
    permissions: PermissionSet,
    employee: Annotated[User, Depends(get_managed_employee)],
    manager: Annotated[User, Depends(get_company_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update an existing employee permission; 404 if there is none."""
    return await employee_permissions.update_employee_permission(
        db, employee.id, module_slug, permissions, granted_by_id=manager.id
    )


@router.delete("/employees/{employee_id}/{module_ref}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_module_from_employee(
    module_ref: str,
    employee: Annotated[User, Depends(get_managed_employee)],
    manager: Annotated[User, Depends(get_company_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Remove an employee's permission on a module."""
    await employee_permissions.revoke_employee_permission(db, employee.id, module_ref, actor_id=manager.id)
    return None


# ============================================================================
# Module Registry
# ============================================================================

@router.get("", response_model=List[ModuleResponse])
async def list_modules(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Modules for the current user: admins see all, company owners see their
    company's enabled modules, employees see the modules they can use.
    """
    return await registry.list_available_modules(db, user)


@router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def create_module(
    module: ModuleCreate,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a new module (admin only)."""
    return await registry.create_module(db, module, actor_id=admin.id)


@router.get("/{module_ref}", response_model=ModuleResponse)
async def get_module(
    module_ref: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a module by ID or slug."""
    return await registry.get_module_for_user(db, user, module_ref)


@router.patch("/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: str,
    module_update: ModuleUpdate,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a module (admin only)."""
    return await registry.update_module(db, module_id, module_update, actor_id=admin.id)


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_module(
    module_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Deactivate a module (soft delete, admin only)."""
    await registry.deactivate_module(db, module_id, actor_id=admin.id)
    return None
