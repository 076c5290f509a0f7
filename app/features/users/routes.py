"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.dependencies import create_audit_log
from app.features.companies.dependencies import get_company_or_raise
from app.features.users.models import User
from app.features.users.schemas import UserResponse, UserCompanyUpdate
from app.features.users.dependencies import get_current_user, get_current_admin_user
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/{user_id}/company", response_model=UserResponse)
async def reassign_user_company(
    user_id: str,
    update_data: UserCompanyUpdate,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Move a user to another company (admin only).

    Module permissions are left in place; any that the new company has not
    enabled are removed by the next orphaned permission cleanup.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if update_data.company_id is not None:
        await get_company_or_raise(db, update_data.company_id)

    previous_company_id = user.company_id
    user.company_id = update_data.company_id

    await create_audit_log(
        db,
        user_id=admin.id,
        action="reassign",
        resource_type="user",
        resource_id=user.id,
        company_id=update_data.company_id,
        details={"from_company_id": previous_company_id, "to_company_id": update_data.company_id},
    )
    await db.commit()

    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one()

    log.info("Moved user %s from company %s to %s", user_id, previous_company_id, user.company_id)
    return user
