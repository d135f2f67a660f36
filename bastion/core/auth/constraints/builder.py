"""
Fluent constraint builder.

Usage:
    constraints = (
        Builder()
        .where("status", "published")
        .or_where(lambda q: q.where("draft", True).where_column("user_id", "id", against="authority"))
        .build()
    )
"""

from __future__ import annotations

from typing import Any, Callable

from .base import Constrainer, Constraint, _MISSING
from .group import Group

Nested = Callable[["Builder"], Any]


class Builder:
    def __init__(self) -> None:
        self._constraints: list[Constrainer] = []

    def where(self, column: str | Nested, operator: Any = _MISSING, value: Any = _MISSING) -> "Builder":
        if callable(column):
            return self._nested(column, "and")
        if operator is _MISSING:
            raise TypeError("where() needs a value to compare against")
        self._constraints.append(Constraint.where(column, operator, value))
        return self

    def or_where(self, column: str | Nested, operator: Any = _MISSING, value: Any = _MISSING) -> "Builder":
        if callable(column):
            return self._nested(column, "or")
        if operator is _MISSING:
            raise TypeError("or_where() needs a value to compare against")
        self._constraints.append(Constraint.or_where(column, operator, value))
        return self

    def where_column(
        self,
        a: str,
        operator: str,
        b: Any = _MISSING,
        against: str = "resource",
    ) -> "Builder":
        self._constraints.append(Constraint.where_column(a, operator, b, against=against))
        return self

    def or_where_column(
        self,
        a: str,
        operator: str,
        b: Any = _MISSING,
        against: str = "resource",
    ) -> "Builder":
        self._constraints.append(Constraint.or_where_column(a, operator, b, against=against))
        return self

    def build(self) -> Constrainer:
        if len(self._constraints) == 1:
            return self._constraints[0]
        return Group(tuple(self._constraints))

    def _nested(self, callback: Nested, logical_operator: str) -> "Builder":
        inner = Builder()
        callback(inner)
        built = inner.build()
        if not isinstance(built, Group):
            built = Group((built,))
        self._constraints.append(built.with_logical_operator(logical_operator))
        return self
