"""
Company lookup helpers.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.companies.models import Company
from app.features.modules.exceptions import CompanyNotFound


async def get_company_or_raise(db: AsyncSession, company_id: str) -> Company:
    """
    Get company by ID.
    
    Raises:
        CompanyNotFound: if no company has this ID
    """
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    
    if company is None:
        raise CompanyNotFound(company_id)
    
    return company
