"""
Query builders over the permission store.

AbilityIndex narrows ability records to those that could answer a check.
AuthorityQueries links those records to an authority through direct
grants, assigned roles and everyone-grants, under the active scope and
boundary.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String, and_, cast, false, or_, select, true
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from bastion.models import Ability, AssignedRole, Permission, Role

from .registry import WILDCARD, EntityRef, EntityRegistry, Subject
from .scope import Scope


# ============================================================
# ABILITY INDEX
# ============================================================

class AbilityIndex:
    """
    Candidate abilities for a check.

    Usage:
        stmt = select(Ability).where(AbilityIndex.for_check("edit", subject))
    """

    @staticmethod
    def for_subject(subject: Subject, strict: bool = False) -> ColumnElement[bool]:
        """
        Subject filter.

        - "*" checks match only subject_type="*"
        - type-wildcard abilities join unless strict
        - a new instance only matches blanket abilities (no subject_id)
        - a persisted instance matches its own subject_id, plus blanket
          abilities unless strict
        """
        if subject.is_wildcard:
            return Ability.subject_type == WILDCARD

        clauses: list[ColumnElement[bool]] = []
        if not subject.exists or not strict:
            clauses.append(Ability.subject_id.is_(None))
        if subject.exists and subject.identity is not None:
            clauses.append(Ability.subject_id == subject.identity)

        inner = and_(Ability.subject_type == subject.type_tag, or_(*clauses))
        if strict:
            return inner
        return or_(Ability.subject_type == WILDCARD, inner)

    @staticmethod
    def by_name(ability: str, strict: bool = False) -> ColumnElement[bool]:
        if strict or ability == WILDCARD:
            return Ability.name == ability
        return Ability.name.in_([ability, WILDCARD])

    @staticmethod
    def without_subject(ability: str) -> ColumnElement[bool]:
        """Abilities that answer a check with no resource."""
        return or_(
            and_(Ability.name == ability, Ability.subject_type.is_(None)),
            and_(
                Ability.name == WILDCARD,
                or_(Ability.subject_type.is_(None), Ability.subject_type == WILDCARD),
            ),
        )

    @classmethod
    def for_check(
        cls,
        ability: str,
        subject: Subject | None,
        strict: bool = False,
    ) -> ColumnElement[bool]:
        if subject is None:
            return cls.without_subject(ability)
        return and_(cls.by_name(ability, strict), cls.for_subject(subject, strict))


# ============================================================
# AUTHORITY LINKS
# ============================================================

class AuthorityQueries:
    """Joins between an authority and its abilities or roles."""

    def __init__(self, registry: EntityRegistry, scope: Scope):
        self.registry = registry
        self.scope = scope

    @property
    def role_tag(self) -> str:
        return self.registry.type_tag(Role)

    def actor_ref(self, authority: Any) -> EntityRef | None:
        if authority is None or self.registry.key_of(authority) is None:
            return None
        return self.registry.ref(authority)

    def boundary_filter(self, model: Any, boundary: EntityRef | None) -> ColumnElement[bool]:
        """Unbounded rows always apply; bounded rows only inside their boundary."""
        if boundary is None:
            return model.boundary_id.is_(None)
        return or_(
            model.boundary_id.is_(None),
            and_(
                model.boundary_type == boundary.type_tag,
                model.boundary_id == boundary.identity,
            ),
        )

    def role_ids(
        self,
        actor: EntityRef,
        guard: str,
        boundary: EntityRef | None = None,
    ) -> Select:
        stmt = (
            select(cast(AssignedRole.role_id, String))
            .join(Role, Role.id == AssignedRole.role_id)
            .where(AssignedRole.actor_type == actor.type_tag)
            .where(AssignedRole.actor_id == actor.identity)
            .where(Role.guard_name == guard)
            .where(self.scope.filter(AssignedRole.scope))
            .where(self.boundary_filter(AssignedRole, boundary))
        )
        role_scope = self.scope.filter_model(Role.scope)
        if role_scope is not None:
            stmt = stmt.where(role_scope)
        return stmt

    def actor_filter(
        self,
        authority: Any,
        guard: str,
        boundary: EntityRef | None = None,
    ) -> ColumnElement[bool]:
        """Permission rows granted directly, through a role, or to everyone."""
        everyone = and_(
            Permission.actor_id.is_(None),
            Permission.actor_type.is_(None),
            self.scope.filter(Permission.scope),
        )
        branches: list[ColumnElement[bool]] = [everyone]

        actor = self.actor_ref(authority)
        if actor is not None:
            branches.append(and_(
                Permission.actor_type == actor.type_tag,
                Permission.actor_id == actor.identity,
                self.scope.filter(Permission.scope),
            ))
            role_scope = self.scope.filter_role_permissions(Permission.scope)
            branches.append(and_(
                Permission.actor_type == self.role_tag,
                Permission.actor_id.in_(self.role_ids(actor, guard, boundary)),
                role_scope if role_scope is not None else true(),
            ))

        return and_(or_(*branches), self.boundary_filter(Permission, boundary))

    def abilities(
        self,
        authority: Any,
        guard: str,
        allowed: bool | None = True,
        boundary: EntityRef | None = None,
    ) -> Select:
        """
        Abilities linked to an authority.

        allowed: True for grants, False for forbids, None for both
        """
        linked = select(Permission.ability_id).where(self.actor_filter(authority, guard, boundary))
        if allowed is not None:
            linked = linked.where(Permission.forbidden == (not allowed))
        stmt = (
            select(Ability)
            .where(Ability.guard_name == guard)
            .where(Ability.id.in_(linked))
            .order_by(Ability.id)
        )
        ability_scope = self.scope.filter_model(Ability.scope)
        if ability_scope is not None:
            stmt = stmt.where(ability_scope)
        return stmt

    def roles(self, authority: Any, guard: str) -> Select:
        actor = self.actor_ref(authority)
        if actor is None:
            return select(Role).where(false())
        return (
            select(Role)
            .where(Role.id.in_(
                select(AssignedRole.role_id)
                .where(AssignedRole.actor_type == actor.type_tag)
                .where(AssignedRole.actor_id == actor.identity)
                .where(AssignedRole.boundary_id.is_(None))
                .where(self.scope.filter(AssignedRole.scope))
            ))
            .where(Role.guard_name == guard)
            .order_by(Role.id)
        )
