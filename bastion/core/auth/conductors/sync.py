"""
Sync an authority's roles or abilities to an exact set.

Only unbounded rows written under the active scope are replaced.

Usage:
    await SyncsRolesAndAbilities(ctx, user).roles(["admin", "editor"])
    await SyncsRolesAndAbilities(ctx, user).abilities(["publish", edit_post_id])
    await SyncsRolesAndAbilities(ctx, "editor").forbidden_abilities([])
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete

from bastion.models import AssignedRole, Permission, Role

from .abilities import AbilityStore, ForbidsAbilities, GivesAbilities
from .base import ConductorContext, actor_ref, exact, refresh, resolve_authority, resolve_roles
from .roles import AssignsRoles

logger = structlog.get_logger()


class SyncsRolesAndAbilities:
    def __init__(self, ctx: ConductorContext, authority: Any):
        self.ctx = ctx
        self.authority = authority

    async def roles(self, roles: Any) -> None:
        """Assign exactly these roles, retracting the rest."""
        wanted = await resolve_roles(self.ctx, roles, create=True)
        wanted_ids = [role.id for role in wanted]
        actor = self.ctx.registry.ref(self.authority)

        result = await self.ctx.db.execute(
            delete(AssignedRole)
            .where(AssignedRole.actor_type == actor.type_tag)
            .where(AssignedRole.actor_id == actor.identity)
            .where(AssignedRole.boundary_id.is_(None))
            .where(exact(AssignedRole.scope, self.ctx.scope.active()))
            .where(AssignedRole.role_id.not_in(wanted_ids))
            .execution_options(synchronize_session=False)
        )
        logger.info("roles_synced", actor=f"{actor.type_tag}:{actor.identity}", retracted=result.rowcount)

        if wanted:
            await AssignsRoles(self.ctx, wanted).to(self.authority)
        else:
            await self.ctx.clipboard.refresh_for(self.authority)

    async def abilities(self, abilities: Any) -> None:
        """Grant exactly these abilities, revoking other grants."""
        await self._sync(abilities, forbidden=False)

    async def forbidden_abilities(self, abilities: Any) -> None:
        """Forbid exactly these abilities, lifting other forbids."""
        await self._sync(abilities, forbidden=True)

    async def _sync(self, abilities: Any, forbidden: bool) -> None:
        authority = await resolve_authority(self.ctx, self.authority, create=True)
        ids = await AbilityStore(self.ctx).ids(abilities, create=True)
        actor = actor_ref(self.ctx, authority)
        for_role = isinstance(authority, Role)
        stamp = self.ctx.scope.attach_attributes(for_role=for_role)

        stmt = (
            delete(Permission)
            .where(exact(Permission.actor_type, None if actor is None else actor.type_tag))
            .where(exact(Permission.actor_id, None if actor is None else actor.identity))
            .where(Permission.forbidden == forbidden)
            .where(Permission.boundary_id.is_(None))
            .where(exact(Permission.scope, stamp.get("scope")))
            .where(Permission.ability_id.not_in(ids))
        )
        result = await self.ctx.db.execute(stmt.execution_options(synchronize_session=False))
        logger.info(
            "abilities_synced",
            actor=None if actor is None else f"{actor.type_tag}:{actor.identity}",
            forbidden=forbidden,
            revoked=result.rowcount,
        )

        if ids:
            conductor = ForbidsAbilities if forbidden else GivesAbilities
            await conductor(self.ctx, authority).to(ids)
        else:
            await refresh(self.ctx, authority)

