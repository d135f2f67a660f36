"""
Association models.

Permission links an actor to an ability:
- actor_type/actor_id set: a user (or any authority) or a role
- actor_type/actor_id null: everyone

AssignedRole links an authority to a role.

Both carry the tenancy scope active when written, and an optional
boundary entity the row is limited to.

The natural keys are unique indexes over coalesced columns: NULL actor,
boundary and scope values would otherwise never collide.
"""

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        Index("ix_permissions_actor", "actor_id", "actor_type", "scope"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ability_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("abilities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    boundary_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    boundary_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    forbidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    def __repr__(self) -> str:
        actor = f"{self.actor_type}:{self.actor_id}" if self.actor_type else "everyone"
        verb = "forbids" if self.forbidden else "allows"
        return f"<Permission {actor} {verb} ability={self.ability_id}>"


class AssignedRole(Base):
    __tablename__ = "assigned_roles"
    __table_args__ = (
        Index("ix_assigned_roles_actor", "actor_id", "actor_type", "scope"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_type: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    boundary_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    boundary_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<AssignedRole role={self.role_id} actor={self.actor_type}:{self.actor_id}>"


Index(
    "uq_permissions_association",
    Permission.ability_id,
    func.coalesce(Permission.actor_type, ""),
    func.coalesce(Permission.actor_id, ""),
    Permission.forbidden,
    func.coalesce(Permission.boundary_type, ""),
    func.coalesce(Permission.boundary_id, ""),
    func.coalesce(Permission.scope, ""),
    unique=True,
)

Index(
    "uq_assigned_roles_assignment",
    AssignedRole.role_id,
    AssignedRole.actor_type,
    AssignedRole.actor_id,
    func.coalesce(AssignedRole.boundary_type, ""),
    func.coalesce(AssignedRole.boundary_id, ""),
    func.coalesce(AssignedRole.scope, ""),
    unique=True,
)
