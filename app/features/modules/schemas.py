"""
Pydantic schemas for the modules API.

The modules API speaks camelCase on the wire; field names stay snake_case in
Python and both spellings are accepted on input.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Module Registry Schemas
# ============================================================================

class ModuleSummary(CamelModel):
    """Module metadata embedded in grant and permission records."""
    id: str
    name: str
    slug: str
    is_active: bool


class ModuleResponse(ModuleSummary):
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ModuleCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, description="URL-friendly identifier, e.g. 'ai-agent'")
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True

    @field_validator("slug")
    @classmethod
    def slug_format(cls, v: str) -> str:
        """Slugs are lowercase alphanumerics separated by hyphens."""
        v = v.lower()
        if not v.replace("-", "").isalnum():
            raise ValueError("Slug must contain only alphanumeric characters and hyphens")
        return v


class ModuleUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


# ============================================================================
# Company Module Access Schemas
# ============================================================================

class CompanyModuleAccessResponse(CamelModel):
    id: str
    company_id: str
    module_id: str
    is_enabled: bool
    created_at: datetime
    updated_at: datetime
    module: ModuleSummary


# ============================================================================
# Employee Permission Schemas
# ============================================================================

class PermissionSet(CamelModel):
    """Read/write/delete flags granted to an employee on one module."""
    can_read: bool = False
    can_write: bool = False
    can_delete: bool = False

    @model_validator(mode="after")
    def at_least_one_flag(self) -> "PermissionSet":
        if not (self.can_read or self.can_write or self.can_delete):
            raise ValueError("At least one of canRead, canWrite, canDelete must be true")
        return self


class EmployeeModulePermissionResponse(CamelModel):
    id: str
    user_id: str
    module_id: str
    can_read: bool
    can_write: bool
    can_delete: bool
    granted_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    module: ModuleSummary


# ============================================================================
# Cleanup Report Schemas
# ============================================================================

class CleanupCompanyEntry(CamelModel):
    """One (company, module) group whose permissions were orphaned."""
    company_id: Optional[str]
    company_name: Optional[str]
    module_id: str
    module_name: Optional[str]
    deleted_permissions: int
    reason: str


class CleanupFailure(CamelModel):
    """A group that could not be cleaned; the sweep continued past it."""
    company_id: Optional[str]
    module_id: str
    error: str


class CleanupReport(CamelModel):
    deleted_count: int = 0
    companies: List[CleanupCompanyEntry] = []
    failures: List[CleanupFailure] = []
    dry_run: bool = False
