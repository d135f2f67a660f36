"""
Constraint nodes.

A constraint compares one attribute of the resource being checked with
either a literal value or another attribute, read from the same resource
or from the authority.

Usage:
    Constraint.where("status", "published")             # status == "published"
    Constraint.where("price", ">=", 100)
    Constraint.where_column("team_id", "=", "team_id", against="authority")
    Constraint.or_where("archived", False)
"""

from __future__ import annotations

import operator as op
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from bastion.core.exceptions import (
    InvalidLogicalOperatorError,
    InvalidOperatorError,
)

_MISSING: Any = object()

COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": op.eq,
    "==": op.eq,
    "!=": op.ne,
    "<": op.lt,
    ">": op.gt,
    "<=": op.le,
    ">=": op.ge,
}

LOGICAL_OPERATORS = ("and", "or")


def read_attribute(entity: Any, name: str) -> Any:
    if entity is None:
        return None
    if isinstance(entity, Mapping):
        return entity.get(name)
    return getattr(entity, name, None)


def _as_number(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def compare(left: Any, operator: str, right: Any) -> bool:
    """Apply a comparison operator; incomparable operands never match."""
    fn = COMPARATORS.get(operator)
    if fn is None:
        raise InvalidOperatorError(operator)
    if operator in ("=", "==", "!="):
        return fn(left, right)
    if left is None or right is None:
        return False
    if isinstance(left, (int, float)) != isinstance(right, (int, float)):
        left, right = _as_number(left), _as_number(right)
    try:
        return bool(fn(left, right))
    except TypeError:
        return False


def validate_operator(operator: Any) -> None:
    if not isinstance(operator, str) or operator not in COMPARATORS:
        raise InvalidOperatorError(operator)


def validate_logical_operator(logical_operator: Any) -> None:
    if logical_operator not in LOGICAL_OPERATORS:
        raise InvalidLogicalOperatorError(logical_operator)


# ============================================================
# INTERFACE
# ============================================================

class Constrainer(ABC):
    """Anything that can be checked against a (resource, authority) pair."""

    logical_operator: str

    @abstractmethod
    def check(self, resource: Any, authority: Any = None) -> bool:
        ...

    @abstractmethod
    def to_data(self) -> dict[str, Any]:
        """Structured form for persistence."""
        ...

    def is_and(self) -> bool:
        return self.logical_operator == "and"

    def is_or(self) -> bool:
        return self.logical_operator == "or"

    @staticmethod
    def from_data(data: Mapping[str, Any]) -> "Constrainer":
        from .group import Group

        kind = data.get("kind")
        params = dict(data.get("params") or {})
        if kind == "value":
            return ValueConstraint(**params)
        if kind == "column":
            return ColumnConstraint(**params)
        if kind == "group":
            constraints = [Constrainer.from_data(c) for c in params.get("constraints", [])]
            return Group(tuple(constraints), params.get("logical_operator", "and"))
        raise ValueError(f"Unknown constraint kind: {kind!r}")


# ============================================================
# FACTORY
# ============================================================

class Constraint:
    """Factory for single constraints."""

    @staticmethod
    def where(column: str, operator: Any, value: Any = _MISSING) -> "ValueConstraint":
        if value is _MISSING:
            operator, value = "=", operator
        return ValueConstraint(column, operator, value)

    @staticmethod
    def or_where(column: str, operator: Any, value: Any = _MISSING) -> "ValueConstraint":
        constraint = Constraint.where(column, operator, value)
        return constraint.with_logical_operator("or")

    @staticmethod
    def where_column(
        a: str,
        operator: str,
        b: Any = _MISSING,
        against: str = "resource",
    ) -> "ColumnConstraint":
        if b is _MISSING:
            operator, b = "=", operator
        return ColumnConstraint(a, operator, b, against=against)

    @staticmethod
    def or_where_column(
        a: str,
        operator: str,
        b: Any = _MISSING,
        against: str = "resource",
    ) -> "ColumnConstraint":
        constraint = Constraint.where_column(a, operator, b, against=against)
        return constraint.with_logical_operator("or")

    from_data = staticmethod(Constrainer.from_data)


# ============================================================
# IMPLEMENTATIONS
# ============================================================

@dataclass(frozen=True)
class ValueConstraint(Constrainer):
    """resource.<column> <operator> value"""
    column: str
    operator: str
    value: Any
    logical_operator: str = "and"

    def __post_init__(self) -> None:
        if not isinstance(self.column, str):
            raise ValueError(f"Column name must be a string, got {self.column!r}")
        validate_operator(self.operator)
        validate_logical_operator(self.logical_operator)

    def check(self, resource: Any, authority: Any = None) -> bool:
        return compare(read_attribute(resource, self.column), self.operator, self.value)

    def with_logical_operator(self, logical_operator: str) -> "ValueConstraint":
        return ValueConstraint(self.column, self.operator, self.value, logical_operator)

    def to_data(self) -> dict[str, Any]:
        return {
            "kind": "value",
            "params": {
                "column": self.column,
                "operator": self.operator,
                "value": self.value,
                "logical_operator": self.logical_operator,
            },
        }


@dataclass(frozen=True)
class ColumnConstraint(Constrainer):
    """
    resource.<a> <operator> source.<b>

    source is the resource itself unless against="authority", in which
    case a missing authority fails the check.
    """
    a: str
    operator: str
    b: str
    against: str = "resource"
    logical_operator: str = "and"

    def __post_init__(self) -> None:
        validate_operator(self.operator)
        validate_logical_operator(self.logical_operator)
        if self.against not in ("resource", "authority"):
            raise ValueError(f"against must be 'resource' or 'authority', got {self.against!r}")

    def check(self, resource: Any, authority: Any = None) -> bool:
        if self.against == "authority":
            if authority is None:
                return False
            source = authority
        else:
            source = resource
        return compare(
            read_attribute(resource, self.a),
            self.operator,
            read_attribute(source, self.b),
        )

    def with_logical_operator(self, logical_operator: str) -> "ColumnConstraint":
        return ColumnConstraint(self.a, self.operator, self.b, self.against, logical_operator)

    def to_data(self) -> dict[str, Any]:
        return {
            "kind": "column",
            "params": {
                "a": self.a,
                "operator": self.operator,
                "b": self.b,
                "against": self.against,
                "logical_operator": self.logical_operator,
            },
        }
