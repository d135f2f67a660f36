"""
Permission resolver.

Answers one check (authority, ability, resource) from the store:

1. Candidate abilities: the name (or "*") and the subject, via AbilityIndex
2. Linked to the authority directly, through its roles, or to everyone,
   within the active scope and the requested boundary
3. Conditions: owned-only abilities, attribute constraints and
   propositions must hold, otherwise the candidate is dropped
4. Any surviving forbid wins; else the first surviving grant; else no opinion

A candidate whose condition cannot be decoded or evaluated is dropped and
logged. Store errors propagate.

Usage:
    resolver = Resolver(db, registry, scope)
    outcome = await resolver.check(user, "edit", post, guard="web")
    if outcome.is_allowed:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bastion.core.exceptions import EvaluationError
from bastion.models import Ability, Permission

from .interfaces import Outcome
from .propositions import EvaluationContext
from .queries import AbilityIndex, AuthorityQueries
from .registry import EntityRef, EntityRegistry
from .scope import Scope

logger = structlog.get_logger()


@dataclass(frozen=True)
class Resolution:
    """
    Outcome plus whether it depended on the resource's attributes,
    the clock or caller-supplied context (and so must not be cached).
    """
    outcome: Outcome
    conditional: bool = False


class Resolver:
    def __init__(
        self,
        db: AsyncSession,
        registry: EntityRegistry,
        scope: Scope,
    ):
        self.db = db
        self.registry = registry
        self.scope = scope
        self.queries = AuthorityQueries(registry, scope)

    async def check(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        guard: str,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Outcome:
        """
        Resolve a single check.

        now is the clock propositions see. Without it the current UTC time
        is used, which makes time-window results depend on when the check runs.
        """
        resolution = await self.resolve(
            authority, ability, resource,
            guard=guard, boundary=boundary, strict=strict, extra=extra, now=now,
        )
        return resolution.outcome

    async def resolve(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        guard: str,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Resolution:
        subject = None if resource is None else self.registry.subject(resource)
        boundary_ref = self.boundary_ref(boundary)

        stmt = (
            select(Ability, Permission.forbidden)
            .join(Permission, Permission.ability_id == Ability.id)
            .where(Ability.guard_name == guard)
            .where(AbilityIndex.for_check(ability, subject, strict))
            .where(self.queries.actor_filter(authority, guard, boundary_ref))
            .order_by(Ability.id, Permission.id)
        )
        ability_scope = self.scope.filter_model(Ability.scope)
        if ability_scope is not None:
            stmt = stmt.where(ability_scope)

        rows = (await self.db.execute(stmt)).all()

        instance = resource if subject is not None and subject.identity is not None else None
        conditions = _Conditions(self.registry, authority, instance, extra or {}, now)

        allowed_id: int | None = None
        forbidden = False
        conditional = False

        for candidate, is_forbidden in rows:
            if candidate.only_owned or candidate.has_condition:
                conditional = True
            if not conditions.hold(candidate):
                continue
            if is_forbidden:
                forbidden = True
                break
            if allowed_id is None:
                allowed_id = candidate.id

        if forbidden:
            outcome = Outcome.forbidden()
        elif allowed_id is not None:
            outcome = Outcome.allowed(allowed_id)
        else:
            outcome = Outcome.unresolved()

        logger.debug(
            "ability_resolved",
            ability=ability,
            guard=guard,
            candidates=len(rows),
            verdict=outcome.verdict.value,
            ability_id=outcome.ability_id,
        )
        return Resolution(outcome=outcome, conditional=conditional)

    def boundary_ref(self, boundary: Any | None) -> EntityRef | None:
        if boundary is None:
            return None
        if isinstance(boundary, EntityRef):
            return boundary
        return self.registry.ref(boundary)


class _Conditions:
    """Per-check evaluation of ownership, constraints and propositions."""

    def __init__(
        self,
        registry: EntityRegistry,
        authority: Any,
        resource: Any | None,
        extra: dict[str, Any],
        now: datetime | None,
    ):
        self.registry = registry
        self.authority = authority
        self.resource = resource
        self.extra = extra
        self.now = now
        self._owned: bool | None = None
        self._context: EvaluationContext | None = None

    @property
    def owned(self) -> bool:
        if self._owned is None:
            self._owned = self.resource is not None and self.registry.is_owned_by(
                self.authority, self.resource,
            )
        return self._owned

    @property
    def context(self) -> EvaluationContext:
        if self._context is None:
            self._context = EvaluationContext.build(
                authority=self.authority,
                resource=self.resource,
                now=self.now,
                **self.extra,
            )
        return self._context

    def hold(self, ability: Ability) -> bool:
        if ability.only_owned and not self.owned:
            return False
        if not ability.has_condition:
            return True
        try:
            constraints = ability.get_constraints()
            if constraints is not None:
                if self.resource is None or not constraints.check(self.resource, self.authority):
                    return False
            proposition = ability.get_proposition()
            if proposition is not None and not proposition.evaluate(self.context):
                return False
        except (EvaluationError, ValueError, TypeError, KeyError) as exc:
            logger.warning(
                "ability_condition_failed",
                ability_id=ability.id,
                ability=ability.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        return True
