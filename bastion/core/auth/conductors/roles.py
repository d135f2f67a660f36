"""
Role conductors.

Usage:
    await AssignsRoles(ctx, ["admin", "editor"]).to(user)
    await AssignsRoles(ctx, "lead").within(team).to([alice, bob])
    await RemovesRoles(ctx, "editor").from_(user)

    checks = ChecksRoles(clipboard, user, guard="web")
    await checks.a("admin", "editor")
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete, select

from bastion.models import AssignedRole

from ..interfaces import ClipboardBase
from ..registry import EntityRef
from .base import ConductorContext, exact, insert_unique, iterate, resolve_roles

logger = structlog.get_logger()


class _RoleConductor:
    def __init__(self, ctx: ConductorContext, roles: Any):
        self.ctx = ctx
        self.roles = roles
        self._boundary: EntityRef | None = None

    def within(self, boundary: Any) -> "_RoleConductor":
        self._boundary = boundary if isinstance(boundary, EntityRef) else self.ctx.registry.ref(boundary)
        return self

    def _assignment_filters(self, actor: EntityRef) -> list[Any]:
        boundary = self._boundary
        return [
            AssignedRole.actor_type == actor.type_tag,
            AssignedRole.actor_id == actor.identity,
            exact(AssignedRole.boundary_type, None if boundary is None else boundary.type_tag),
            exact(AssignedRole.boundary_id, None if boundary is None else boundary.identity),
        ]


class AssignsRoles(_RoleConductor):
    """Assign roles, creating missing ones by name."""

    async def to(self, authorities: Any) -> None:
        roles = await resolve_roles(self.ctx, self.roles, create=True)
        if not roles:
            return
        role_ids = [role.id for role in roles]
        stamp = self.ctx.scope.attach_attributes()
        boundary = self._boundary

        for authority in iterate(authorities):
            actor = self.ctx.registry.ref(authority)
            result = await self.ctx.db.execute(
                select(AssignedRole.role_id)
                .where(*self._assignment_filters(actor))
                .where(AssignedRole.role_id.in_(role_ids))
                .where(exact(AssignedRole.scope, stamp.get("scope")))
            )
            existing = set(result.scalars().all())
            for role_id in role_ids:
                if role_id in existing:
                    continue
                await insert_unique(self.ctx, AssignedRole(
                    role_id=role_id,
                    actor_type=actor.type_tag,
                    actor_id=actor.identity,
                    boundary_type=None if boundary is None else boundary.type_tag,
                    boundary_id=None if boundary is None else boundary.identity,
                    **stamp,
                ))
            await self.ctx.clipboard.refresh_for(authority)
            logger.info(
                "roles_assigned",
                actor=f"{actor.type_tag}:{actor.identity}",
                roles=[role.name for role in roles],
            )


class RemovesRoles(_RoleConductor):
    """Retract roles. Unknown role names are ignored."""

    async def from_(self, authorities: Any) -> None:
        roles = await resolve_roles(self.ctx, self.roles, create=False)
        if not roles:
            return
        role_ids = [role.id for role in roles]

        for authority in iterate(authorities):
            actor = self.ctx.registry.ref(authority)
            result = await self.ctx.db.execute(
                delete(AssignedRole)
                .where(*self._assignment_filters(actor))
                .where(AssignedRole.role_id.in_(role_ids))
                .where(self.ctx.scope.filter(AssignedRole.scope))
                .execution_options(synchronize_session=False)
            )
            await self.ctx.clipboard.refresh_for(authority)
            logger.info(
                "roles_retracted",
                actor=f"{actor.type_tag}:{actor.identity}",
                removed=result.rowcount,
            )


class ChecksRoles:
    """Role checks against the clipboard."""

    def __init__(self, clipboard: ClipboardBase, authority: Any, guard: str = "web"):
        self.clipboard = clipboard
        self.authority = authority
        self.guard = guard

    async def a(self, *roles: str) -> bool:
        return await self.clipboard.check_role(self.authority, roles, "or", guard=self.guard)

    async def an(self, *roles: str) -> bool:
        return await self.a(*roles)

    async def not_a(self, *roles: str) -> bool:
        return await self.clipboard.check_role(self.authority, roles, "not", guard=self.guard)

    async def not_an(self, *roles: str) -> bool:
        return await self.not_a(*roles)

    async def all(self, *roles: str) -> bool:
        return await self.clipboard.check_role(self.authority, roles, "and", guard=self.guard)
