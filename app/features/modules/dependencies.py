"""
Module access route dependencies.
"""
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.modules.employee_permissions import get_employee_or_raise
from app.features.modules.exceptions import EmployeeNotFound
from app.features.users.dependencies import get_company_manager
from app.features.users.models import User


async def get_managed_employee(
    employee_id: str,
    manager: Annotated[User, Depends(get_company_manager)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get an employee the caller may manage.
    
    Admins manage every employee. Company owners manage the employees
    currently in their own company; anyone else is reported as not found.
    
    Raises:
        EmployeeNotFound: unknown employee or outside the owner's company
    """
    employee = await get_employee_or_raise(db, employee_id)
    if not manager.is_admin and employee.company_id != manager.company_id:
        raise EmployeeNotFound(employee_id)
    return employee
