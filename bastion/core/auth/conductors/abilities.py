"""
Ability conductors: grant, forbid, revoke and unforbid.

Every conductor is bound to one authority: an entity, a Role, a role
name, or None for everyone. Writes happen when the terminal method is
awaited.

Usage:
    await GivesAbilities(ctx, user).to("edit", post)
    await GivesAbilities(ctx, "editor").within(team).to(["edit", "delete"], Post)
    await ForbidsAbilities(ctx, None).to("delete", Post)      # everyone
    await GivesAbilities(ctx, user).to_own(Post).to("edit").apply()
    await RemovesAbilities(ctx, user).to("edit", post)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog
from sqlalchemy import delete, select

from bastion.core.exceptions import DuplicateRecordError, ModelNotPersistedError
from bastion.models import Ability, Permission, Role
from bastion.models.ability import conditions_key

from ..constraints import Constrainer
from ..propositions import Proposition, dumps
from ..queries import AbilityIndex
from ..registry import WILDCARD, EntityRef
from .base import (
    ConductorContext,
    actor_ref,
    exact,
    flush,
    insert_unique,
    iterate,
    refresh,
    resolve_authority,
)

logger = structlog.get_logger()


# ============================================================
# ABILITY STORE
# ============================================================

class AbilityStore:
    """
    Finds or creates ability records for a conductor.

    Accepted ability forms: names, ids, Ability instances, or an
    iterable mixing them. Accepted model forms: None, "*", an entity
    class, a type tag, or an entity instance (which must be persisted).

    Attributes understood on creation and matching:
        only_owned, title, constraints (Constrainer), proposition (Proposition)
    """

    def __init__(self, ctx: ConductorContext):
        self.ctx = ctx

    async def ids(
        self,
        abilities: Any,
        model: Any | None = None,
        attributes: dict[str, Any] | None = None,
        create: bool = True,
    ) -> list[int]:
        attributes = dict(attributes or {})
        ids: list[int] = []
        for item in iterate(abilities):
            ability_id = await self._id_for(item, model, attributes, create)
            if ability_id is not None and ability_id not in ids:
                ids.append(ability_id)
        return ids

    async def _id_for(
        self,
        item: Any,
        model: Any | None,
        attributes: dict[str, Any],
        create: bool,
    ) -> int | None:
        if isinstance(item, Ability):
            if item.id is None:
                self.ctx.db.add(item)
                await flush(self.ctx)
            return item.id
        if isinstance(item, int) and not isinstance(item, bool):
            return item

        ability = await self.find(str(item), model, attributes)
        if ability is None and create:
            ability = await self.create(str(item), model, attributes)
        return None if ability is None else ability.id

    def _subject_columns(self, model: Any | None) -> tuple[str | None, str | None]:
        if model is None:
            return None, None
        subject = self.ctx.registry.subject(model)
        if subject.is_wildcard:
            return WILDCARD, None
        if subject.identity is None:
            if not isinstance(model, (str, type)):
                raise ModelNotPersistedError(subject.type_tag)
            return subject.type_tag, None
        if not subject.exists:
            raise ModelNotPersistedError(subject.type_tag)
        return subject.type_tag, subject.identity

    async def find(
        self,
        name: str,
        model: Any | None,
        attributes: dict[str, Any],
    ) -> Ability | None:
        subject_type, subject_id = self._subject_columns(model)
        stmt = (
            select(Ability)
            .where(Ability.name == name)
            .where(Ability.guard_name == self.ctx.guard_name)
            .where(Ability.only_owned == bool(attributes.get("only_owned", False)))
            .where(exact(Ability.subject_type, subject_type))
            .where(exact(Ability.subject_id, subject_id))
            .where(Ability.conditions_key == conditions_key(*self._wanted_conditions(attributes)))
            .order_by(Ability.id)
        )
        ability_scope = self.ctx.scope.filter_model(Ability.scope)
        if ability_scope is not None:
            stmt = stmt.where(ability_scope)

        result = await self.ctx.db.execute(stmt)
        return result.scalars().first()

    async def create(
        self,
        name: str,
        model: Any | None,
        attributes: dict[str, Any],
    ) -> Ability:
        subject_type, subject_id = self._subject_columns(model)
        ability = Ability(
            name=name,
            title=attributes.get("title"),
            guard_name=self.ctx.guard_name,
            subject_type=subject_type,
            subject_id=subject_id,
            only_owned=bool(attributes.get("only_owned", False)),
            **self.ctx.scope.model_attributes(),
        )
        ability.set_constraints(attributes.get("constraints"))
        ability.set_proposition(attributes.get("proposition"))
        if not await insert_unique(self.ctx, ability):
            existing = await self.find(name, model, attributes)
            if existing is None:
                raise DuplicateRecordError(f"Ability '{name}' could not be created")
            return existing
        logger.debug("ability_created", ability_id=ability.id, identifier=ability.identifier)
        return ability

    @staticmethod
    def _wanted_conditions(attributes: dict[str, Any]) -> tuple[Any, Any]:
        constraints: Constrainer | None = attributes.get("constraints")
        proposition: Proposition | None = attributes.get("proposition")
        return (
            None if constraints is None else constraints.to_data(),
            dumps(proposition),
        )


# ============================================================
# CONDUCTORS
# ============================================================

class AbilityConductor(ABC):
    """Base for the four ability conductors."""

    forbidden: bool = False
    creates: bool = True

    def __init__(self, ctx: ConductorContext, authority: Any = None):
        self.ctx = ctx
        self.authority = authority
        self.store = AbilityStore(ctx)
        self._boundary: EntityRef | None = None

    def within(self, boundary: Any) -> "AbilityConductor":
        """Limit the written (or removed) rows to a boundary entity."""
        self._boundary = boundary if isinstance(boundary, EntityRef) else self.ctx.registry.ref(boundary)
        return self

    async def to(
        self,
        abilities: Any,
        model: Any | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> list[int]:
        authority = await resolve_authority(self.ctx, self.authority, create=self.creates)
        ids = await self.store.ids(abilities, model, attributes, create=self.creates)
        if ids:
            await self.conduct(authority, ids)
        await refresh(self.ctx, authority)
        return ids

    async def everything(self, attributes: dict[str, Any] | None = None) -> list[int]:
        return await self.to(WILDCARD, WILDCARD, attributes)

    async def to_manage(self, models: Any, attributes: dict[str, Any] | None = None) -> list[int]:
        ids: list[int] = []
        for model in iterate(models):
            ids.extend(await self.to(WILDCARD, model, attributes))
        return ids

    def to_own(self, model: Any, attributes: dict[str, Any] | None = None) -> "OwnershipGrant":
        return OwnershipGrant(self, model, attributes)

    def to_own_everything(self, attributes: dict[str, Any] | None = None) -> "OwnershipGrant":
        return OwnershipGrant(self, WILDCARD, attributes)

    @abstractmethod
    async def conduct(self, authority: Any, ids: list[int]) -> None:
        """Write or delete the permission rows for the resolved ability ids."""
        pass

    def _for_role(self, authority: Any) -> bool:
        return isinstance(authority, Role)

    def _row_filters(self, actor: EntityRef | None) -> list[Any]:
        boundary = self._boundary
        return [
            exact(Permission.actor_type, None if actor is None else actor.type_tag),
            exact(Permission.actor_id, None if actor is None else actor.identity),
            Permission.forbidden == self.forbidden,
            exact(Permission.boundary_type, None if boundary is None else boundary.type_tag),
            exact(Permission.boundary_id, None if boundary is None else boundary.identity),
        ]


class _Associates(AbilityConductor):
    """Writes permission rows, skipping ones that already exist."""

    async def conduct(self, authority: Any, ids: list[int]) -> None:
        actor = actor_ref(self.ctx, authority)
        stamp = self.ctx.scope.attach_attributes(for_role=self._for_role(authority))

        result = await self.ctx.db.execute(
            select(Permission.ability_id)
            .where(*self._row_filters(actor))
            .where(Permission.ability_id.in_(ids))
            .where(exact(Permission.scope, stamp.get("scope")))
        )
        existing = set(result.scalars().all())

        boundary = self._boundary
        added = 0
        for ability_id in ids:
            if ability_id in existing:
                continue
            permission = Permission(
                ability_id=ability_id,
                actor_type=None if actor is None else actor.type_tag,
                actor_id=None if actor is None else actor.identity,
                boundary_type=None if boundary is None else boundary.type_tag,
                boundary_id=None if boundary is None else boundary.identity,
                forbidden=self.forbidden,
                **stamp,
            )
            if await insert_unique(self.ctx, permission):
                added += 1
        logger.info(
            "abilities_associated",
            actor=None if actor is None else f"{actor.type_tag}:{actor.identity}",
            forbidden=self.forbidden,
            added=added,
        )


class _Dissociates(AbilityConductor):
    """Deletes permission rows visible under the active scope."""

    creates = False

    async def conduct(self, authority: Any, ids: list[int]) -> None:
        actor = actor_ref(self.ctx, authority)
        stmt = (
            delete(Permission)
            .where(*self._row_filters(actor))
            .where(Permission.ability_id.in_(ids))
        )
        if not (self._for_role(authority) and not self.ctx.scope.scope_role_abilities):
            stmt = stmt.where(self.ctx.scope.filter(Permission.scope))
        result = await self.ctx.db.execute(stmt.execution_options(synchronize_session=False))
        logger.info(
            "abilities_dissociated",
            actor=None if actor is None else f"{actor.type_tag}:{actor.identity}",
            forbidden=self.forbidden,
            removed=result.rowcount,
        )


class GivesAbilities(_Associates):
    forbidden = False


class ForbidsAbilities(_Associates):
    forbidden = True


class RemovesAbilities(_Dissociates):
    forbidden = False


class UnforbidsAbilities(_Dissociates):
    forbidden = True


# ============================================================
# OWNERSHIP
# ============================================================

class OwnershipGrant:
    """
    Deferred owned-only grant.

    Nothing is written until apply() is awaited:

        await bastion.allow(user).to_own(Post).to(["edit", "delete"]).apply()
        await bastion.allow(user).to_own(Post).apply()       # every ability
    """

    def __init__(
        self,
        conductor: AbilityConductor,
        model: Any,
        attributes: dict[str, Any] | None = None,
    ):
        self.conductor = conductor
        self.model = model
        self.attributes = {**(attributes or {}), "only_owned": True}
        self.abilities: Any = WILDCARD

    def to(self, abilities: Any) -> "OwnershipGrant":
        self.abilities = abilities
        return self

    async def apply(self) -> list[int]:
        return await self.conductor.to(self.abilities, self.model, self.attributes)
