"""Proposition evaluation entry point."""

from __future__ import annotations

from .context import EvaluationContext
from .nodes import Proposition


def evaluate(proposition: Proposition | None, context: EvaluationContext) -> bool:
    """An absent proposition places no condition on the ability."""
    if proposition is None:
        return True
    return proposition.evaluate(context)
