"""
Proposition trees.

Leaves compare two operands; AllOf, AnyOf and Not combine them.
Evaluation is pure: the result depends only on the tree and the context.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Callable

from bastion.core.auth.constraints import compare
from bastion.core.exceptions import InvalidOperatorError, InvalidPatternError

from .context import EvaluationContext


# ============================================================
# OPERATORS
# ============================================================

def _contains(left: Any, right: Any) -> bool:
    return isinstance(left, (Collection, str)) and right in left


def _in(left: Any, right: Any) -> bool:
    return isinstance(right, (Collection, str)) and left in right


def _pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


def _matches(left: Any, right: Any) -> bool:
    if not (isinstance(left, str) and isinstance(right, str)):
        return False
    return _pattern(right).search(left) is not None


def _comparison(operator: str) -> Callable[[Any, Any], bool]:
    return lambda left, right: compare(left, operator, right)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": _comparison("=="),
    "!=": _comparison("!="),
    "<": _comparison("<"),
    "<=": _comparison("<="),
    ">": _comparison(">"),
    ">=": _comparison(">="),
    "in": _in,
    "not_in": lambda left, right: not _in(left, right),
    "contains": _contains,
    "starts_with": lambda left, right: isinstance(left, str) and isinstance(right, str) and left.startswith(right),
    "ends_with": lambda left, right: isinstance(left, str) and isinstance(right, str) and left.endswith(right),
    "matches": _matches,
}


# ============================================================
# OPERANDS
# ============================================================

class Operand(ABC):
    @abstractmethod
    def resolve(self, context: EvaluationContext) -> Any:
        ...

    @abstractmethod
    def to_tree(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class Var(Operand):
    """Key path into the evaluation context."""
    path: str

    def resolve(self, context: EvaluationContext) -> Any:
        return context.resolve(self.path)

    def to_tree(self) -> dict[str, Any]:
        return {"var": self.path}


@dataclass(frozen=True)
class Const(Operand):
    value: Any

    def resolve(self, context: EvaluationContext) -> Any:
        return self.value

    def to_tree(self) -> dict[str, Any]:
        return {"const": self.value}


@dataclass(frozen=True)
class TimeOfDay(Operand):
    """A timestamp path reduced to its "HH:MM" wall-clock time."""
    path: str = "now"

    def resolve(self, context: EvaluationContext) -> Any:
        value = context.resolve(self.path)
        if isinstance(value, (datetime, time)):
            return value.strftime("%H:%M")
        return value

    def to_tree(self) -> dict[str, Any]:
        return {"time_of": self.path}


def operand_from_tree(tree: dict[str, Any]) -> Operand:
    if "var" in tree:
        return Var(tree["var"])
    if "const" in tree:
        return Const(tree["const"])
    if "time_of" in tree:
        return TimeOfDay(tree["time_of"])
    raise ValueError(f"Unknown operand: {tree!r}")


# ============================================================
# NODES
# ============================================================

class Node(ABC):
    @abstractmethod
    def evaluate(self, context: EvaluationContext) -> bool:
        ...

    @abstractmethod
    def to_tree(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class Comparison(Node):
    operator: str
    left: Operand
    right: Operand

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise InvalidOperatorError(self.operator)
        if self.operator == "matches" and isinstance(self.right, Const) and isinstance(self.right.value, str):
            _pattern(self.right.value)

    def evaluate(self, context: EvaluationContext) -> bool:
        left = self.left.resolve(context)
        right = self.right.resolve(context)
        try:
            return bool(OPERATORS[self.operator](left, right))
        except TypeError:
            return False

    def to_tree(self) -> dict[str, Any]:
        return {
            "op": "cmp",
            "operator": self.operator,
            "left": self.left.to_tree(),
            "right": self.right.to_tree(),
        }


@dataclass(frozen=True)
class AllOf(Node):
    children: tuple[Node, ...] = ()

    def evaluate(self, context: EvaluationContext) -> bool:
        return all(child.evaluate(context) for child in self.children)

    def to_tree(self) -> dict[str, Any]:
        return {"op": "all", "children": [c.to_tree() for c in self.children]}


@dataclass(frozen=True)
class AnyOf(Node):
    children: tuple[Node, ...] = ()

    def evaluate(self, context: EvaluationContext) -> bool:
        return any(child.evaluate(context) for child in self.children)

    def to_tree(self) -> dict[str, Any]:
        return {"op": "any", "children": [c.to_tree() for c in self.children]}


@dataclass(frozen=True)
class Not(Node):
    child: Node

    def evaluate(self, context: EvaluationContext) -> bool:
        return not self.child.evaluate(context)

    def to_tree(self) -> dict[str, Any]:
        return {"op": "not", "child": self.child.to_tree()}


def node_from_tree(tree: dict[str, Any]) -> Node:
    kind = tree.get("op")
    if kind == "cmp":
        return Comparison(
            tree["operator"],
            operand_from_tree(tree["left"]),
            operand_from_tree(tree["right"]),
        )
    if kind == "all":
        return AllOf(tuple(node_from_tree(c) for c in tree["children"]))
    if kind == "any":
        return AnyOf(tuple(node_from_tree(c) for c in tree["children"]))
    if kind == "not":
        return Not(node_from_tree(tree["child"]))
    raise ValueError(f"Unknown node: {kind!r}")


# ============================================================
# PROPOSITION
# ============================================================

@dataclass(frozen=True, eq=False)
class Proposition:
    """
    A condition attached to an ability.

    recipe is set when the tree came from a single builder helper, so it
    can be stored as that helper's name and parameters.
    """
    root: Node
    recipe: tuple[str, dict[str, Any]] | None = None

    def evaluate(self, context: EvaluationContext) -> bool:
        return self.root.evaluate(context)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Proposition):
            return NotImplemented
        return self.root == other.root and self.recipe == other.recipe

    __hash__ = None  # type: ignore[assignment]
