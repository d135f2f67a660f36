"""Bastion - authorization decision engine."""

from bastion.core.auth import (
    Bastion,
    Constraint,
    EntityRegistry,
    Outcome,
    PropositionBuilder,
    Scope,
)
from bastion.core.config import BastionSettings, get_settings

__version__ = "0.1.0"

__all__ = [
    "Bastion",
    "BastionSettings",
    "Constraint",
    "EntityRegistry",
    "Outcome",
    "PropositionBuilder",
    "Scope",
    "get_settings",
]
