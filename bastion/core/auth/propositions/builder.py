"""
Proposition helpers.

Each helper returns a Proposition that remembers how it was built, so it
can be stored compactly as {"method", "params"} and rebuilt on load.
Compositions of several propositions have no recipe and are stored in
the opaque tree form.

Usage:
    props = PropositionBuilder()

    props.resource_owned_by()                         # resource.user_id == authority.id
    props.time_between("09:00", "17:00")              # business hours
    props.within_limit("amount", "approval_limit")    # extra.amount <= authority.approval_limit
    props.all_of(props.resource_owned_by(), props.time_between("09:00", "17:00"))
"""

from __future__ import annotations

import re
from typing import Any

from bastion.core.exceptions import InvalidPropositionArgumentError

from .context import ROOTS
from .nodes import AllOf, AnyOf, Comparison, Const, Not, Proposition, TimeOfDay, Var

_HH_MM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PropositionBuilder:
    """Builds propositions from recognized patterns and combinators."""

    RECIPES = ("resource_owned_by", "time_between", "within_limit", "matches")

    # ============================================================
    # RECOGNIZED PATTERNS
    # ============================================================

    def resource_owned_by(
        self,
        authority_key: str = "authority",
        resource_key: str = "resource",
        ownership_field: str = "user_id",
        id_field: str = "id",
    ) -> Proposition:
        root = Comparison(
            "==",
            Var(f"{resource_key}.{ownership_field}"),
            Var(f"{authority_key}.{id_field}"),
        )
        return Proposition(root, ("resource_owned_by", {
            "authority_key": authority_key,
            "resource_key": resource_key,
            "ownership_field": ownership_field,
            "id_field": id_field,
        }))

    def time_between(self, start: str, end: str, time_key: str = "now") -> Proposition:
        """Inclusive wall-clock window, bounds given as HH:MM."""
        for bound in (start, end):
            if not isinstance(bound, str) or not _HH_MM.match(bound):
                raise InvalidPropositionArgumentError(
                    f"Time bounds must be HH:MM strings, got {bound!r}"
                )
        root = AllOf((
            Comparison(">=", TimeOfDay(time_key), Const(start)),
            Comparison("<=", TimeOfDay(time_key), Const(end)),
        ))
        return Proposition(root, ("time_between", {
            "start": start,
            "end": end,
            "time_key": time_key,
        }))

    def within_limit(self, value_key: str, limit_key: str, inclusive: bool = True) -> Proposition:
        """
        value <= limit (or < when not inclusive).

        A limit key without a context root is read from the authority.
        """
        limit_path = limit_key if limit_key.split(".")[0] in ROOTS else f"authority.{limit_key}"
        root = Comparison("<=" if inclusive else "<", Var(value_key), Var(limit_path))
        return Proposition(root, ("within_limit", {
            "value_key": value_key,
            "limit_key": limit_key,
            "inclusive": inclusive,
        }))

    def matches(self, left_key: str, right_key: str) -> Proposition:
        root = Comparison("==", Var(left_key), Var(right_key))
        return Proposition(root, ("matches", {"left_key": left_key, "right_key": right_key}))

    def from_recipe(self, method: str, params: dict[str, Any]) -> Proposition:
        if method not in self.RECIPES:
            raise InvalidPropositionArgumentError(f"Unknown proposition recipe: {method!r}")
        try:
            return getattr(self, method)(**params)
        except TypeError as exc:
            raise InvalidPropositionArgumentError(f"Bad parameters for {method}: {exc}") from exc

    # ============================================================
    # COMBINATORS
    # ============================================================

    def all_of(self, *propositions: Proposition) -> Proposition:
        if not propositions:
            raise InvalidPropositionArgumentError("all_of() requires at least one proposition")
        return Proposition(AllOf(tuple(p.root for p in propositions)))

    def any_of(self, *propositions: Proposition) -> Proposition:
        if not propositions:
            raise InvalidPropositionArgumentError("any_of() requires at least one proposition")
        return Proposition(AnyOf(tuple(p.root for p in propositions)))

    def logical_and(self, left: Proposition, right: Proposition) -> Proposition:
        return Proposition(AllOf((left.root, right.root)))

    def logical_or(self, left: Proposition, right: Proposition) -> Proposition:
        return Proposition(AnyOf((left.root, right.root)))

    def logical_not(self, proposition: Proposition) -> Proposition:
        return Proposition(Not(proposition.root))

    def compare(self, left: str, operator: str, right: Any, literal: bool = True) -> Proposition:
        """Free-form leaf: a context path against a literal (or another path)."""
        right_operand = Const(right) if literal else Var(right)
        return Proposition(Comparison(operator, Var(left), right_operand))
