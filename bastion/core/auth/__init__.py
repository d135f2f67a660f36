"""
Authorization engine - abilities, roles and conditional grants.

Decides whether an authority may exercise a named ability, optionally on
a resource. Every check answers one of three ways: allowed (with the
granting ability id), forbidden, or no opinion, so a host gate can keep
consulting its other rules.

Usage Levels:
=============

Level 1: Plain Abilities
------------------------
    bastion = Bastion(session, registry)

    await bastion.allow(user).to("publish")
    await bastion.can(user, "publish")                    # True

Level 2: Abilities on Models
----------------------------
    await bastion.allow(user).to("edit", Post)            # every post
    await bastion.allow(user).to("edit", post)            # one post
    await bastion.allow(user).to_own(Post).to("delete").apply()
    await bastion.forbid(user).to("delete", Post)         # forbid wins

Level 3: Roles
--------------
    await bastion.allow("editor").to(["edit", "publish"], Post)
    await bastion.assign("editor").to(user)
    await bastion.is_(user).a("editor")

Level 4: Conditions
-------------------
    await bastion.allow(user).to("approve", Invoice, {
        "constraints": Constraint.where("amount", "<=", 1000),
    })
    await bastion.allow(user).to("approve", Invoice, {
        "proposition": PropositionBuilder().within_limit("resource.amount", "approval_limit"),
    })

Level 5: Tenancy and Boundaries
-------------------------------
    bastion.scope.to(tenant.id)
    await bastion.allow(user).within(team).to("manage", Project)
    await bastion.can(user, "manage", project, boundary=team)

Configuration:
==============

Environment variables (see bastion.core.config):
- BASTION_GUARD: guard namespace (default "web")
- BASTION_GATE_SLOT: "before" or "after" (default "after")
- BASTION_CACHE_BACKEND: "memory" (default), "redis", "null"
- BASTION_OWNERSHIP_ATTRIBUTE: owner attribute (default "user_id")
"""

# Condition primitives first: the models import them
from .constraints import (
    Builder,
    ColumnConstraint,
    Constrainer,
    Constraint,
    Group,
    ValueConstraint,
)
from .propositions import (
    EvaluationContext,
    Opaque,
    Proposition,
    PropositionBuilder,
    Recognized,
    evaluate,
)

from .registry import EntityRef, EntityRegistry, Subject
from .scope import Scope
from .interfaces import ClipboardBase, Outcome, Verdict
from .queries import AbilityIndex, AuthorityQueries
from .resolver import Resolution, Resolver
from .clipboard import CachedClipboard, Clipboard
from .conductors import (
    AssignsRoles,
    ChecksRoles,
    ConductorContext,
    ForbidsAbilities,
    GivesAbilities,
    OwnershipGrant,
    RemovesAbilities,
    RemovesRoles,
    SyncsRolesAndAbilities,
    UnforbidsAbilities,
)
from .gate import GateIntegration
from .cleaner import Cleaner, CleanReport
from .facade import Bastion

__all__ = [
    # Facade
    "Bastion",
    # Conditions
    "Builder",
    "ColumnConstraint",
    "Constrainer",
    "Constraint",
    "Group",
    "ValueConstraint",
    "EvaluationContext",
    "Opaque",
    "Proposition",
    "PropositionBuilder",
    "Recognized",
    "evaluate",
    # Engine
    "AbilityIndex",
    "AuthorityQueries",
    "CachedClipboard",
    "Clipboard",
    "ClipboardBase",
    "EntityRef",
    "EntityRegistry",
    "Outcome",
    "Resolution",
    "Resolver",
    "Scope",
    "Subject",
    "Verdict",
    # Conductors
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
    # Integration
    "GateIntegration",
    "Cleaner",
    "CleanReport",
]
