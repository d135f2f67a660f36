"""
Ability model.

An ability is a named capability, optionally tied to an entity type
(subject_type) or one entity (subject_type + subject_id).

    Ability(name="publish")                                        # no subject
    Ability(name="edit", subject_type="posts")                     # every post
    Ability(name="edit", subject_type="posts", subject_id="7")     # post 7
    Ability(name="*", subject_type="*")                            # everything

Conditions come in two shapes: attribute constraints kept under
options["constraints"], and a proposition stored as a JSON document.
conditions_key fingerprints both, so the natural key (name, guard,
subject, only_owned, scope, conditions) can be enforced by a unique index.
"""

import hashlib
import json
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from bastion.core.auth.constraints import Constrainer
from bastion.core.auth.propositions import Proposition, dumps, loads
from bastion.core.exceptions import InvalidAbilityError

from .base import Base, TimestampMixin

WILDCARD = "*"


def conditions_key(constraints: Any, proposition: Any) -> str:
    """Fingerprint of stored constraint data and proposition document."""
    if not constraints and proposition is None:
        return ""
    payload = json.dumps(
        {"constraints": constraints or None, "proposition": proposition},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class Ability(Base, TimestampMixin):
    __tablename__ = "abilities"
    __table_args__ = (
        Index("ix_abilities_lookup", "name", "guard_name", "subject_type", "subject_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guard_name: Mapped[str] = mapped_column(String(100), nullable=False, default="web")
    subject_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    only_owned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    options: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    proposition: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    conditions_key: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    def __init__(self, **kwargs: Any):
        if "only_owned" not in kwargs:
            kwargs["only_owned"] = False
        if "guard_name" not in kwargs:
            kwargs["guard_name"] = "web"
        super().__init__(**kwargs)
        self.validate_subject()
        self.refresh_conditions_key()

    def validate_subject(self) -> None:
        if self.subject_id is not None and self.subject_type in (None, WILDCARD):
            raise InvalidAbilityError(
                f"Ability '{self.name}' has subject_id {self.subject_id!r} "
                f"but subject_type {self.subject_type!r}"
            )

    # ============================================================
    # CONDITIONS
    # ============================================================

    @property
    def has_condition(self) -> bool:
        return self.proposition is not None or self.has_constraints()

    def has_constraints(self) -> bool:
        return bool(self.options and self.options.get("constraints"))

    def get_constraints(self) -> Constrainer | None:
        if not self.has_constraints():
            return None
        return Constrainer.from_data(self.options["constraints"])

    def set_constraints(self, constraints: Constrainer | None) -> "Ability":
        options = dict(self.options or {})
        if constraints is None:
            options.pop("constraints", None)
        else:
            options["constraints"] = constraints.to_data()
        self.options = options or None
        self.refresh_conditions_key()
        return self

    def refresh_conditions_key(self) -> None:
        self.conditions_key = conditions_key(
            (self.options or {}).get("constraints"), self.proposition,
        )

    def get_proposition(self) -> Proposition | None:
        """Decode the stored proposition. Raises UndecodablePropositionError."""
        return loads(self.proposition)

    def set_proposition(self, proposition: Proposition | None) -> "Ability":
        self.proposition = dumps(proposition)
        self.refresh_conditions_key()
        return self

    @property
    def identifier(self) -> str:
        parts = [self.name]
        if self.subject_type:
            parts.append(self.subject_type)
        if self.subject_id:
            parts.append(self.subject_id)
        if self.only_owned:
            parts.append("owned")
        return "-".join(parts).lower()

    def __repr__(self) -> str:
        return f"<Ability {self.identifier} guard={self.guard_name}>"


Index(
    "uq_abilities_natural_key",
    Ability.name,
    Ability.guard_name,
    func.coalesce(Ability.subject_type, ""),
    func.coalesce(Ability.subject_id, ""),
    Ability.only_owned,
    func.coalesce(Ability.scope, ""),
    Ability.conditions_key,
    unique=True,
)
