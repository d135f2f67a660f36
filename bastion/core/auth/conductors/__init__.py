from .abilities import (
    AbilityConductor,
    AbilityStore,
    ForbidsAbilities,
    GivesAbilities,
    OwnershipGrant,
    RemovesAbilities,
    UnforbidsAbilities,
)
from .base import ConductorContext
from .roles import AssignsRoles, ChecksRoles, RemovesRoles
from .sync import SyncsRolesAndAbilities

__all__ = [
    "AbilityConductor",
    "AbilityStore",
    "AssignsRoles",
    "ChecksRoles",
    "ConductorContext",
    "ForbidsAbilities",
    "GivesAbilities",
    "OwnershipGrant",
    "RemovesAbilities",
    "RemovesRoles",
    "SyncsRolesAndAbilities",
    "UnforbidsAbilities",
]
