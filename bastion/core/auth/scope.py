"""
Tenancy scope context.

The active scope value is stamped on every written permission and
assigned role, filters every read, and is folded into cache keys.

The value lives in a ContextVar, so concurrent tasks never observe each
other's scope. Temporary changes go through context managers that
restore the previous value on every exit path.

Usage:
    scope = Scope()
    scope.to(tenant.id)                 # for the rest of this context

    with scope.once_to(other_tenant.id):
        await bastion.can(user, "edit", post)

    with scope.remove_once():
        await bastion.can(user, "edit", post)   # unscoped rows only
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator
from urllib.parse import quote

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

_UNSET: Any = object()


def canonical(value: Any) -> str | None:
    """Stable string form of a scope value (stored and used in cache keys)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (str, int, float)):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class Scope:
    """
    Multi-tenancy scope.

    Attributes:
        only_relations: scope only permissions and role assignments,
            leaving ability and role records global
        scope_role_abilities: when False, abilities granted to roles are
            written and read without a scope
    """

    def __init__(self) -> None:
        self._value: ContextVar[Any] = ContextVar(f"bastion_scope_{id(self)}", default=None)
        self.only_relations = False
        self.scope_role_abilities = True

    # ============================================================
    # STATE
    # ============================================================

    def to(self, value: Any) -> "Scope":
        """Set the scope for the current context."""
        self._value.set(value)
        return self

    def get(self) -> Any:
        return self._value.get()

    def active(self) -> str | None:
        """Canonical form of the active scope, None when unscoped."""
        return canonical(self._value.get())

    def remove(self) -> "Scope":
        self._value.set(None)
        return self

    def set_only_relations(self, only: bool = True) -> "Scope":
        self.only_relations = only
        return self

    def dont_scope_role_abilities(self) -> "Scope":
        self.scope_role_abilities = False
        return self

    @contextmanager
    def once_to(self, value: Any) -> Iterator["Scope"]:
        token = self._value.set(value)
        try:
            yield self
        finally:
            self._value.reset(token)

    @contextmanager
    def remove_once(self) -> Iterator["Scope"]:
        with self.once_to(None) as scope:
            yield scope

    # ============================================================
    # WRITES
    # ============================================================

    def attach_attributes(self, for_role: bool = False) -> dict[str, Any]:
        """Columns stamped onto a new permission or role assignment."""
        value = self.active()
        if value is None:
            return {}
        if for_role and not self.scope_role_abilities:
            return {}
        return {"scope": value}

    def model_attributes(self) -> dict[str, Any]:
        """Columns stamped onto a new ability or role record."""
        if self.only_relations:
            return {}
        value = self.active()
        return {} if value is None else {"scope": value}

    # ============================================================
    # READS
    # ============================================================

    def filter(self, column: Any) -> ColumnElement[bool]:
        """Rows written without a scope, or under the active one."""
        value = self.active()
        if value is None:
            return column.is_(None)
        return or_(column.is_(None), column == value)

    def filter_model(self, column: Any) -> ColumnElement[bool] | None:
        """Filter for ability and role lookups (None when not scoped)."""
        if self.only_relations:
            return None
        return self.filter(column)

    def filter_role_permissions(self, column: Any) -> ColumnElement[bool] | None:
        if not self.scope_role_abilities:
            return None
        return self.filter(column)

    def cache_key_suffix(self, key: str) -> str:
        """Append the scope as its own segment; "s-" marks unscoped keys."""
        value = self.active()
        if value is None:
            return f"{key}:s-"
        return f"{key}:s={quote(value, safe='')}"
