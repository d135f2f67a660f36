"""
Authorization interfaces - Core abstractions.

Outcome is the three-valued verdict of one ability check. ClipboardBase
is the contract the host gate and the facade talk to; the plain and the
caching clipboards both implement it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Literal


# ============================================================
# OUTCOME
# ============================================================

class Verdict(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Outcome:
    """
    Result of resolving one ability check.

    Attributes:
        verdict: allowed, forbidden or unresolved (no opinion)
        ability_id: the allowing ability, set only when allowed
    """
    verdict: Verdict
    ability_id: int | None = None

    @classmethod
    def allowed(cls, ability_id: int) -> "Outcome":
        return cls(verdict=Verdict.ALLOWED, ability_id=ability_id)

    @classmethod
    def forbidden(cls) -> "Outcome":
        return cls(verdict=Verdict.FORBIDDEN)

    @classmethod
    def unresolved(cls) -> "Outcome":
        return cls(verdict=Verdict.UNRESOLVED)

    @property
    def is_allowed(self) -> bool:
        return self.verdict is Verdict.ALLOWED

    @property
    def is_forbidden(self) -> bool:
        return self.verdict is Verdict.FORBIDDEN

    @property
    def is_unresolved(self) -> bool:
        return self.verdict is Verdict.UNRESOLVED

    def as_check_result(self) -> int | Literal[False] | None:
        """Ability id when allowed, False when forbidden, None when unresolved."""
        if self.is_allowed:
            return self.ability_id
        if self.is_forbidden:
            return False
        return None

    def to_cache(self) -> dict[str, Any]:
        return {"verdict": self.verdict.value, "ability_id": self.ability_id}

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "Outcome":
        return cls(verdict=Verdict(data["verdict"]), ability_id=data.get("ability_id"))


# ============================================================
# CLIPBOARD
# ============================================================

class ClipboardBase(ABC):
    """
    Answers ability and role questions for one authority.

    Implementations:
    - Clipboard: resolves every check against the store
    - CachedClipboard: keeps verdicts and role lists in a cache backend
    """

    @abstractmethod
    async def check_get_id(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        guard: str,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> int | Literal[False] | None:
        """
        Three-valued check.

        Returns:
            The allowing ability id, False for an explicit forbid,
            None when nothing applies
        """
        pass

    async def check(
        self,
        authority: Any,
        ability: str,
        resource: Any | None = None,
        *,
        guard: str,
        boundary: Any | None = None,
        strict: bool = False,
        extra: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> bool:
        result = await self.check_get_id(
            authority, ability, resource,
            guard=guard, boundary=boundary, strict=strict, extra=extra, now=now,
        )
        return bool(result)

    @abstractmethod
    async def get_roles(self, authority: Any, *, guard: str) -> list[str]:
        """Names of the roles assigned to the authority."""
        pass

    async def check_role(
        self,
        authority: Any,
        roles: Iterable[Any],
        boolean: str = "or",
        *,
        guard: str,
    ) -> bool:
        """
        Check role membership.

        boolean: "or" (any of), "and" (all of) or "not" (none of)
        """
        names = {getattr(role, "name", role) for role in roles}
        held = set(await self.get_roles(authority, guard=guard))
        if boolean == "or":
            return bool(names & held)
        if boolean == "and":
            return bool(names) and names <= held
        if boolean == "not":
            return not (names & held)
        raise ValueError(f"boolean must be 'or', 'and' or 'not', got {boolean!r}")

    async def refresh(self) -> None:
        """Drop every cached entry."""

    async def refresh_for(self, authority: Any) -> None:
        """Drop cached entries of one authority (or every holder of a role)."""
