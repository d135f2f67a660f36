"""Constraint groups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .base import Constrainer, validate_logical_operator


@dataclass(frozen=True)
class Group(Constrainer):
    """
    Ordered set of constraints folded left to right.

    Each member's own logical operator says how it joins the running
    result. An empty group always passes.
    """
    constraints: tuple[Constrainer, ...] = ()
    logical_operator: str = "and"

    def __post_init__(self) -> None:
        validate_logical_operator(self.logical_operator)
        object.__setattr__(self, "constraints", tuple(self.constraints))

    def check(self, resource: Any, authority: Any = None) -> bool:
        if not self.constraints:
            return True
        result = not self.constraints[0].is_or()
        for constraint in self.constraints:
            passes = constraint.check(resource, authority)
            result = (result or passes) if constraint.is_or() else (result and passes)
        return result

    def add(self, constraint: Constrainer) -> "Group":
        return Group(self.constraints + (constraint,), self.logical_operator)

    def with_logical_operator(self, logical_operator: str) -> "Group":
        return Group(self.constraints, logical_operator)

    def to_data(self) -> dict[str, Any]:
        return {
            "kind": "group",
            "params": {
                "constraints": [c.to_data() for c in self.constraints],
                "logical_operator": self.logical_operator,
            },
        }
