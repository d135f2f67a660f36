"""
Shared plumbing for the write-side conductors.

Every conductor works inside one ConductorContext: a session, the entity
registry, the scope, the clipboard to invalidate and the guard name.
Writes are flushed, not committed; the caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from bastion.core.exceptions import DuplicateRecordError, RecordNotFoundError
from bastion.models import Role

from ..interfaces import ClipboardBase
from ..registry import EntityRef, EntityRegistry
from ..scope import Scope


@dataclass(frozen=True)
class ConductorContext:
    db: AsyncSession
    registry: EntityRegistry
    scope: Scope
    clipboard: ClipboardBase
    guard_name: str = "web"

    def with_guard(self, guard_name: str) -> "ConductorContext":
        return replace(self, guard_name=guard_name)


def exact(column: Any, value: Any) -> ColumnElement[bool]:
    """column = value, treating None as IS NULL."""
    return column.is_(None) if value is None else column == value


def iterate(items: Any) -> list[Any]:
    """Accept a single item or an iterable of items."""
    if items is None:
        return []
    if isinstance(items, (str, bytes, int)) or not isinstance(items, Iterable):
        return [items]
    return list(items)


async def flush(ctx: ConductorContext) -> None:
    try:
        await ctx.db.flush()
    except IntegrityError as exc:
        raise DuplicateRecordError(str(exc.orig)) from exc


async def insert_unique(ctx: ConductorContext, record: Any) -> bool:
    """
    Insert a record inside a savepoint.

    Returns False when a unique index rejected it: another writer inserted
    the same natural key since our lookup. Only the savepoint is rolled
    back, the caller's transaction stays usable.
    """
    try:
        async with ctx.db.begin_nested():
            ctx.db.add(record)
    except IntegrityError:
        return False
    return True


# ============================================================
# ROLES
# ============================================================

async def find_role(ctx: ConductorContext, name: str) -> Role | None:
    stmt = (
        select(Role)
        .where(Role.name == name)
        .where(Role.guard_name == ctx.guard_name)
        .order_by(Role.scope.is_(None), Role.id)
    )
    role_scope = ctx.scope.filter_model(Role.scope)
    if role_scope is not None:
        stmt = stmt.where(role_scope)
    result = await ctx.db.execute(stmt)
    return result.scalars().first()


async def find_or_create_role(ctx: ConductorContext, name: str, title: str | None = None) -> Role:
    role = await find_role(ctx, name)
    if role is not None:
        return role
    role = Role(name=name, title=title, guard_name=ctx.guard_name, **ctx.scope.model_attributes())
    if await insert_unique(ctx, role):
        return role
    role = await find_role(ctx, name)
    if role is None:
        raise DuplicateRecordError(f"Role '{name}' could not be created in guard '{ctx.guard_name}'")
    return role


async def resolve_roles(ctx: ConductorContext, roles: Any, create: bool = True) -> list[Role]:
    """Turn names, ids and Role instances into Role records."""
    resolved: list[Role] = []
    for item in iterate(roles):
        if isinstance(item, Role):
            role = item
        elif isinstance(item, int):
            role = await ctx.db.get(Role, item)
        elif create:
            role = await find_or_create_role(ctx, str(item))
        else:
            role = await find_role(ctx, str(item))
        if role is not None and role not in resolved:
            resolved.append(role)
    return resolved


async def resolve_authority(ctx: ConductorContext, authority: Any, create: bool) -> Any:
    """A string authority names a role."""
    if not isinstance(authority, str):
        return authority
    if create:
        return await find_or_create_role(ctx, authority)
    role = await find_role(ctx, authority)
    if role is None:
        raise RecordNotFoundError(
            f"Role '{authority}' does not exist in guard '{ctx.guard_name}'"
        )
    return role


def actor_ref(ctx: ConductorContext, authority: Any) -> EntityRef | None:
    if authority is None:
        return None
    return ctx.registry.ref(authority)


async def refresh(ctx: ConductorContext, authority: Any) -> None:
    if authority is None:
        await ctx.clipboard.refresh()
    else:
        await ctx.clipboard.refresh_for(authority)
