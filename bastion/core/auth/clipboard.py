"""
Clipboards: the check surface in front of the resolver.

Clipboard resolves every check against the store. CachedClipboard keeps
verdicts and role lists in a CacheBackend:

- verdicts are stored three-valued (ability id / forbidden / unresolved)
- verdicts that depended on conditions are never stored
- every key starts with the authority, so one authority's entries are
  dropped with a single pattern delete

Usage:
    clipboard = CachedClipboard(resolver, MemoryCacheBackend())
    await clipboard.check(user, "edit", post, guard="web")
    await clipboard.refresh_for(user)
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Literal
from urllib.parse import quote

import structlog
from sqlalchemy import select

from bastion.core.interfaces.cache import CacheBackend
from bastion.models import AssignedRole, Role

from .interfaces import ClipboardBase, Outcome
from .registry import EntityRef
from .resolver import Resolver

logger = structlog.get_logger()


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


def _glob_escape(value: str) -> str:
    return "".join(f"[{c}]" if c in "*?[]" else c for c in value)


class Clipboard(ClipboardBase):
    """Uncached clipboard."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    @property
    def registry(self):
        return self.resolver.registry

    @property
    def scope(self):
        return self.resolver.scope

    async def check_get_id(
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
    ) -> int | Literal[False] | None:
        outcome = await self.resolver.check(
            authority, ability, resource,
            guard=guard, boundary=boundary, strict=strict, extra=extra, now=now,
        )
        return outcome.as_check_result()

    async def get_roles(self, authority: Any, *, guard: str) -> list[str]:
        stmt = self.resolver.queries.roles(authority, guard)
        result = await self.resolver.db.execute(stmt)
        return [role.name for role in result.scalars().all()]

    async def get_abilities(self, authority: Any, *, guard: str, allowed: bool = True) -> list:
        stmt = self.resolver.queries.abilities(authority, guard, allowed=allowed)
        result = await self.resolver.db.execute(stmt)
        return list(result.scalars().all())

    async def get_forbidden_abilities(self, authority: Any, *, guard: str) -> list:
        return await self.get_abilities(authority, guard=guard, allowed=False)


class CachedClipboard(Clipboard):
    """
    Clipboard backed by a cache.

    Configuration:
        prefix: namespace for every key (default: "bastion")
        ttl: entry lifetime, None for the backend default
    """

    def __init__(
        self,
        resolver: Resolver,
        cache: CacheBackend,
        prefix: str = "bastion",
        ttl: int | timedelta | None = None,
    ):
        super().__init__(resolver)
        self.cache = cache
        self.prefix = prefix
        self.ttl = ttl

    def set_cache(self, cache: CacheBackend) -> "CachedClipboard":
        self.cache = cache
        return self

    # ============================================================
    # KEYS
    # ============================================================

    def authority_key(self, authority: Any) -> str | None:
        if authority is None:
            return None
        identity = self.registry.key_of(authority)
        if identity is None:
            return None
        return self._authority_base(self.registry.type_tag(authority), identity)

    def _authority_base(self, type_tag: str, identity: Any) -> str:
        return f"{self.prefix}:{_segment(type_tag)}:{_segment(identity)}"

    def _namespace(self, authority: Any, guard: str) -> str | None:
        base = self.authority_key(authority)
        if base is None:
            return None
        return self.scope.cache_key_suffix(f"{base}:{_segment(guard)}")

    def verdict_key(
        self,
        authority: Any,
        ability: str,
        resource: Any | None,
        guard: str,
        boundary: Any | None,
        strict: bool = False,
    ) -> str | None:
        namespace = self._namespace(authority, guard)
        if namespace is None:
            return None

        if resource is None:
            subject = "-"
        else:
            s = self.registry.subject(resource)
            if s.identity is None:
                subject = _segment(s.type_tag)
            else:
                tag = _segment(s.type_tag)
                subject = f"{tag}#{_segment(s.identity)}" if s.exists else f"{tag}#new"

        if boundary is None:
            bounded = "-"
        else:
            ref = boundary if isinstance(boundary, EntityRef) else self.registry.ref(boundary)
            bounded = f"{_segment(ref.type_tag)}#{_segment(ref.identity)}"

        mode = "strict" if strict else "any"
        return f"{namespace}:ability:{_segment(ability)}:{subject}:{bounded}:{mode}"

    def roles_key(self, authority: Any, guard: str) -> str | None:
        namespace = self._namespace(authority, guard)
        return None if namespace is None else f"{namespace}:roles"

    # ============================================================
    # CHECKS
    # ============================================================

    async def check_get_id(
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
    ) -> int | Literal[False] | None:
        key = self.verdict_key(authority, ability, resource, guard, boundary, strict)

        if key is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug("clipboard_cache_hit", key=key)
                return Outcome.from_cache(cached).as_check_result()

        resolution = await self.resolver.resolve(
            authority, ability, resource,
            guard=guard, boundary=boundary, strict=strict, extra=extra, now=now,
        )
        if key is not None and not resolution.conditional:
            await self.cache.set(key, resolution.outcome.to_cache(), ttl=self.ttl)
            logger.debug("clipboard_cache_store", key=key, verdict=resolution.outcome.verdict.value)
        return resolution.outcome.as_check_result()

    async def get_roles(self, authority: Any, *, guard: str) -> list[str]:
        key = self.roles_key(authority, guard)
        if key is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return list(cached)
        roles = await super().get_roles(authority, guard=guard)
        if key is not None:
            await self.cache.set(key, roles, ttl=self.ttl)
        return roles

    # ============================================================
    # INVALIDATION
    # ============================================================

    async def refresh(self) -> None:
        count = await self.cache.delete_pattern(f"{_glob_escape(self.prefix)}:*")
        logger.debug("clipboard_refreshed", deleted=count)

    async def refresh_for(self, authority: Any) -> None:
        """
        Drop the authority's entries. For a role, drop the entries of
        every authority holding it, in any scope.
        """
        targets: list[str] = []
        if isinstance(authority, Role):
            result = await self.resolver.db.execute(
                select(AssignedRole.actor_type, AssignedRole.actor_id)
                .where(AssignedRole.role_id == authority.id)
                .distinct()
            )
            targets.extend(
                self._authority_base(actor_type, actor_id) for actor_type, actor_id in result.all()
            )
        own = self.authority_key(authority)
        if own is not None:
            targets.append(own)

        deleted = 0
        for base in targets:
            deleted += await self.cache.delete_pattern(f"{_glob_escape(base)}:*")
        logger.debug("clipboard_refreshed_for", targets=len(targets), deleted=deleted)
