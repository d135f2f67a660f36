"""Conditional rules attached to abilities."""

from .builder import PropositionBuilder
from .codec import Encoded, Opaque, Recognized, decode, dumps, encode, loads
from .context import EvaluationContext, attribute_map
from .evaluator import evaluate
from .nodes import (
    OPERATORS,
    AllOf,
    AnyOf,
    Comparison,
    Const,
    Node,
    Not,
    Proposition,
    TimeOfDay,
    Var,
)

__all__ = [
    "OPERATORS",
    "AllOf",
    "AnyOf",
    "Comparison",
    "Const",
    "Encoded",
    "EvaluationContext",
    "Node",
    "Not",
    "Opaque",
    "Proposition",
    "PropositionBuilder",
    "Recognized",
    "TimeOfDay",
    "Var",
    "attribute_map",
    "decode",
    "dumps",
    "encode",
    "evaluate",
    "loads",
]
