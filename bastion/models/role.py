"""Role model: a named, guard-scoped bundle of abilities."""

from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Role(Base, TimestampMixin):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guard_name: Mapped[str] = mapped_column(String(100), nullable=False, default="web")
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Role {self.name} guard={self.guard_name}>"


# Unscoped roles share the "" slot, so the same name can't be created twice
Index(
    "uq_roles_name_guard_scope",
    Role.name,
    Role.guard_name,
    func.coalesce(Role.scope, ""),
    unique=True,
)
