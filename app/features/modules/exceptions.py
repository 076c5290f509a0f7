"""
Module access errors.

Every error carries the ids involved in `details` so callers can act on it.
They are rendered by the handler registered in app.main.
"""
from typing import Any, Dict, Optional
from fastapi import status


class ModuleAccessError(Exception):
    """Base class for module access errors."""
    
    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "MODULE_ACCESS_ERROR"
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}


class ModuleNotFound(ModuleAccessError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "MODULE_NOT_FOUND"
    
    def __init__(self, module_ref: str, inactive: bool = False):
        reason = "is not active" if inactive else "not found"
        super().__init__(
            f"Module '{module_ref}' {reason}",
            {"module": module_ref, "inactive": inactive},
        )


class CompanyNotFound(ModuleAccessError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "COMPANY_NOT_FOUND"
    
    def __init__(self, company_id: str):
        super().__init__(f"Company with ID {company_id} not found", {"company_id": company_id})


class EmployeeNotFound(ModuleAccessError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "EMPLOYEE_NOT_FOUND"
    
    def __init__(self, employee_id: str):
        super().__init__("Employee not found", {"employee_id": employee_id})


class PermissionNotFound(ModuleAccessError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "PERMISSION_NOT_FOUND"
    
    def __init__(self, employee_id: str, module_id: str):
        super().__init__(
            "Employee does not have access to this module. Use the grant endpoint instead.",
            {"employee_id": employee_id, "module_id": module_id},
        )


class ModuleAlreadyExists(ModuleAccessError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "MODULE_ALREADY_EXISTS"
    
    def __init__(self, slug: str):
        super().__init__(f"Module with slug '{slug}' already exists", {"slug": slug})


class ModuleNotEnabledForCompany(ModuleAccessError):
    """The employee's current company holds no enabled grant for the module."""
    
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "MODULE_NOT_ENABLED_FOR_COMPANY"
    
    def __init__(self, company_id: Optional[str], module_id: str, employee_id: Optional[str] = None):
        if company_id is None:
            message = "Employee does not belong to a company"
        else:
            message = "Company does not have access to this module"
        super().__init__(
            message,
            {"company_id": company_id, "module_id": module_id, "employee_id": employee_id},
        )


class CascadeTransactionFailed(ModuleAccessError):
    """Revoke and cascade could not be committed; nothing was applied."""
    
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CASCADE_TRANSACTION_FAILED"
    
    def __init__(self, company_id: str, module_id: str, cause: str):
        super().__init__(
            "Revoking module access failed; no changes were applied",
            {"company_id": company_id, "module_id": module_id, "cause": cause},
        )


class PartialCleanupFailure(ModuleAccessError):
    """
    One sweep group could not be cleaned.

    Raised per group inside the sweep and collected into the report's
    failures list; never returned to an HTTP caller on its own.
    """
    
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "PARTIAL_CLEANUP_FAILURE"
    
    def __init__(self, company_id: Optional[str], module_id: str, cause: str):
        super().__init__(
            "Orphaned permissions could not be removed for this company and module",
            {"company_id": company_id, "module_id": module_id, "cause": cause},
        )
