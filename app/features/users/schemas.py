"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.companies.schemas import CompanyPublic
from app.features.users.models import UserRole


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    
    company_id: str | None = None
    company: CompanyPublic | None = None
    
    model_config = {"from_attributes": True}


class UserCompanyUpdate(BaseModel):
    """Move a user to another company (or detach with null)."""
    company_id: str | None = Field(None, description="Target company ID")
