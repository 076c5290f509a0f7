"""
Company models.

Companies are the tenants that receive module access. Each company has one
owner (a user with the company_owner role) and any number of employees.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Company(Base, TimestampMixin):
    """
    Tenant company.

    Employees reference their current company through users.company_id, so
    moving an employee is a single-column update on the user row.
    """
    __tablename__ = "companies"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    
    # Owner user id; not a foreign key because users.company_id already points here
    owner_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        back_populates="company",
        lazy="selectin"
    )
    
    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"
