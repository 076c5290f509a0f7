"""
User model with ULID primary keys.
"""
from datetime import datetime
import enum
from sqlalchemy import String, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class UserRole(str, enum.Enum):
    """Platform roles."""
    ADMIN = "admin"
    COMPANY_OWNER = "company_owner"
    EMPLOYEE = "employee"


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.
    
    company_id is the user's *current* employer. Module permissions are
    validated against it at evaluation time, never against the company that
    was current when the permission was granted.
    """
    __tablename__ = "users"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.EMPLOYEE,
        nullable=False,
        index=True
    )
    
    company_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    
    company: Mapped["Company | None"] = relationship(  # type: ignore
        "Company",
        back_populates="users",
        lazy="selectin"
    )
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"
