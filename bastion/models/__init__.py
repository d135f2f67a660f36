"""Permission store models."""

from .base import Base, TimestampMixin
from .ability import Ability
from .role import Role
from .permission import AssignedRole, Permission

__all__ = [
    "Base",
    "TimestampMixin",
    "Ability",
    "Role",
    "Permission",
    "AssignedRole",
]
