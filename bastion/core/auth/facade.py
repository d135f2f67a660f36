"""
Bastion - main entry point for granting and checking abilities.

Wires the registry, scope, resolver and clipboard together and hands out
conductors bound to them.

Usage:
    bastion = Bastion(session, registry, cache=MemoryCacheBackend())

    await bastion.allow(user).to("edit", post)
    await bastion.allow("editor").to("publish", Post)
    await bastion.assign("editor").to(user)
    await bastion.forbid(user).to("delete", Post)

    if await bastion.can(user, "publish", Post):
        ...
    await bastion.is_(user).a("editor")
    await bastion.check_get_id(user, "edit", post)   # id, False or None
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from bastion.core.config import BastionSettings, get_settings
from bastion.core.interfaces.cache import CacheBackend
from bastion.implementations.cache.memory import MemoryCacheBackend
from bastion.implementations.register import create_cache_backend
from bastion.models import Ability, Role

from .clipboard import CachedClipboard, Clipboard
from .conductors import (
    AbilityStore,
    AssignsRoles,
    ChecksRoles,
    ConductorContext,
    ForbidsAbilities,
    GivesAbilities,
    RemovesAbilities,
    RemovesRoles,
    SyncsRolesAndAbilities,
    UnforbidsAbilities,
)
from .conductors.base import find_or_create_role
from .gate import GateIntegration
from .registry import EntityRegistry, OwnershipCheck
from .resolver import Resolver
from .scope import Scope


class Bastion:
    """
    Facade over the permission store.

    Configuration:
        guard_name: guard namespace for every ability and role (default: "web")
        cache: cache backend; None checks the store every time
        cache_prefix / cache_ttl: passed to the cached clipboard
        gate_slot: "before" or "after" for gate()
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: EntityRegistry | None = None,
        *,
        scope: Scope | None = None,
        guard_name: str = "web",
        cache: CacheBackend | None = None,
        cache_prefix: str = "bastion",
        cache_ttl: int | timedelta | None = None,
        gate_slot: str = "after",
        clipboard: Clipboard | None = None,
    ):
        self.db = db
        self.registry = registry or EntityRegistry()
        self.scope = scope or Scope()
        self.guard_name = guard_name
        self.gate_slot = gate_slot
        self.cache_prefix = cache_prefix
        self.cache_ttl = cache_ttl
        self.resolver = Resolver(db, self.registry, self.scope)

        if clipboard is not None:
            self.clipboard = clipboard
        elif cache is not None:
            self.clipboard = CachedClipboard(self.resolver, cache, prefix=cache_prefix, ttl=cache_ttl)
        else:
            self.clipboard = Clipboard(self.resolver)

    @classmethod
    def from_settings(
        cls,
        db: AsyncSession,
        registry: EntityRegistry | None = None,
        settings: BastionSettings | None = None,
    ) -> "Bastion":
        """
        Build from settings. A redis cache backend is returned unconnected;
        await bastion.clipboard.cache.connect() before the first check.
        """
        settings = settings or get_settings()
        registry = registry or EntityRegistry()
        registry.ownership_attribute = settings.ownership_attribute
        registry.load_key_maps(settings.key_map, settings.enforced_key_map)
        return cls(
            db,
            registry,
            guard_name=settings.guard,
            cache=create_cache_backend(settings.cache),
            cache_prefix=settings.cache.prefix,
            cache_ttl=settings.cache.ttl,
            gate_slot=settings.gate_slot,
        )

    @property
    def context(self) -> ConductorContext:
        return ConductorContext(
            db=self.db,
            registry=self.registry,
            scope=self.scope,
            clipboard=self.clipboard,
            guard_name=self.guard_name,
        )

    # ============================================================
    # WRITES
    # ============================================================

    def allow(self, authority: Any) -> GivesAbilities:
        """Grant abilities to an entity, a Role or a role name."""
        return GivesAbilities(self.context, authority)

    def allow_everyone(self) -> GivesAbilities:
        return GivesAbilities(self.context, None)

    def disallow(self, authority: Any) -> RemovesAbilities:
        return RemovesAbilities(self.context, authority)

    def disallow_everyone(self) -> RemovesAbilities:
        return RemovesAbilities(self.context, None)

    def forbid(self, authority: Any) -> ForbidsAbilities:
        return ForbidsAbilities(self.context, authority)

    def forbid_everyone(self) -> ForbidsAbilities:
        return ForbidsAbilities(self.context, None)

    def unforbid(self, authority: Any) -> UnforbidsAbilities:
        return UnforbidsAbilities(self.context, authority)

    def unforbid_everyone(self) -> UnforbidsAbilities:
        return UnforbidsAbilities(self.context, None)

    def assign(self, roles: Any) -> AssignsRoles:
        return AssignsRoles(self.context, roles)

    def retract(self, roles: Any) -> RemovesRoles:
        return RemovesRoles(self.context, roles)

    def sync(self, authority: Any) -> SyncsRolesAndAbilities:
        return SyncsRolesAndAbilities(self.context, authority)

    # ============================================================
    # CHECKS
    # ============================================================

    def is_(self, authority: Any) -> ChecksRoles:
        return ChecksRoles(self.clipboard, authority, guard=self.guard_name)

    async def can(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Whether the authority may perform the ability.

        Args:
            boundary: context entity for bounded grants (e.g. a team)
            strict: ignore wildcard abilities, only exact name and subject count
            extra: additional values for propositions, addressed by bare path
            now: evaluation time for time-window propositions. Defaults to the
                current UTC time, so pass it when the result must be reproducible.
        """
        return await self.clipboard.check(
            authority, ability, resource,
            guard=self.guard_name, boundary=boundary, strict=strict, extra=extra, now=now,
        )

    async def cannot(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> bool:
        return not await self.can(
            authority, ability, resource,
            boundary=boundary, strict=strict, extra=extra, now=now,
        )

    async def check_get_id(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> int | Literal[False] | None:
        return await self.clipboard.check_get_id(
            authority, ability, resource,
            guard=self.guard_name, boundary=boundary, strict=strict, extra=extra, now=now,
        )

    async def roles_of(self, authority: Any) -> list[str]:
        return await self.clipboard.get_roles(authority, guard=self.guard_name)

    # ============================================================
    # RECORDS
    # ============================================================

    async def role(self, name: str, title: str | None = None) -> Role:
        """Find or create a role in this guard and scope."""
        return await find_or_create_role(self.context, name, title)

    async def ability(
        self,
        name: str,
        model: Any | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Ability:
        """Find or create an ability in this guard and scope."""
        store = AbilityStore(self.context)
        attributes = dict(attributes or {})
        ability = await store.find(name, model, attributes)
        if ability is None:
            ability = await store.create(name, model, attributes)
        return ability

    # ============================================================
    # CACHE
    # ============================================================

    def cache(self, backend: CacheBackend | None = None) -> "Bastion":
        """Cache verdicts in the given backend (in-process memory by default)."""
        backend = backend or MemoryCacheBackend()
        if isinstance(self.clipboard, CachedClipboard):
            self.clipboard.set_cache(backend)
        else:
            self.clipboard = CachedClipboard(
                self.resolver, backend, prefix=self.cache_prefix, ttl=self.cache_ttl,
            )
        return self

    def dont_cache(self) -> "Bastion":
        self.clipboard = Clipboard(self.resolver)
        return self

    async def refresh(self) -> None:
        await self.clipboard.refresh()

    async def refresh_for(self, authority: Any) -> None:
        await self.clipboard.refresh_for(authority)

    # ============================================================
    # CONFIGURATION
    # ============================================================

    def owned_via(self, model: Any, attribute: str | OwnershipCheck | None = None) -> "Bastion":
        self.registry.owned_via(model, attribute)
        return self

    def guard(self, name: str) -> "Bastion":
        """A Bastion sharing everything but the guard namespace."""
        return Bastion(
            self.db,
            self.registry,
            scope=self.scope,
            guard_name=name,
            cache_prefix=self.cache_prefix,
            cache_ttl=self.cache_ttl,
            gate_slot=self.gate_slot,
            clipboard=self.clipboard,
        )

    def gate(self) -> GateIntegration:
        return GateIntegration(self.clipboard, slot=self.gate_slot, guard=self.guard_name)
