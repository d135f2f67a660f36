"""Attribute constraints for context-aware grants."""

from .base import (
    COMPARATORS,
    ColumnConstraint,
    Constrainer,
    Constraint,
    ValueConstraint,
    compare,
)
from .builder import Builder
from .group import Group

__all__ = [
    "COMPARATORS",
    "Builder",
    "ColumnConstraint",
    "Constrainer",
    "Constraint",
    "Group",
    "ValueConstraint",
    "compare",
]
