"""
Module registry, company module access and employee module permission models.

- Module: a platform feature area that can be enabled per company
- CompanyModuleAccess: one row per (company, module); absent == disabled
- UserModulePermission: one row per (user, module) with read/write/delete flags

UserModulePermission intentionally has no company column. Whether a row is
valid depends on the holder's *current* company, which is looked up through
users.company_id every time it matters.
"""
from sqlalchemy import String, Text, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Module(Base, TimestampMixin):
    """
    Installable module (e.g. ai-agent, clients, zus).

    Modules are never hard-deleted; deactivation sets is_active=False, which
    blocks new grants but leaves existing grants and permissions alone.
    """
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, slug={self.slug!r}, active={self.is_active})>"


class CompanyModuleAccess(Base, TimestampMixin):
    """
    Whether a company may use a module.

    Revocation flips is_enabled to False rather than deleting the row.
    """
    __tablename__ = "company_module_access"
    __table_args__ = (
        UniqueConstraint("company_id", "module_id", name="uq_company_module_access"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    company_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    module_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("modules.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    module: Mapped["Module"] = relationship("Module", lazy="selectin")
    company: Mapped["Company"] = relationship("Company", lazy="selectin")  # type: ignore

    def __repr__(self) -> str:
        return (
            f"<CompanyModuleAccess(company_id={self.company_id}, module_id={self.module_id}, "
            f"enabled={self.is_enabled})>"
        )


class UserModulePermission(Base, TimestampMixin):
    """
    Permission flags an employee holds on a module.
    """
    __tablename__ = "user_module_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_user_module_permission"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    module_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("modules.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    can_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_write: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    granted_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    module: Mapped["Module"] = relationship("Module", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<UserModulePermission(user_id={self.user_id}, module_id={self.module_id}, "
            f"r={self.can_read}, w={self.can_write}, d={self.can_delete})>"
        )
