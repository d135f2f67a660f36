"""
Gate integration.

Lets a host authorization gate consult the permission store. The hook
runs either before the gate's own rules (and can short-circuit them) or
after them (and only fills in when they had no answer).

Hook arguments follow the gate convention (authority, ability, arguments):
    - no arguments: check without a resource
    - one argument: the resource (instance, class or type tag)
    - two arguments: the resource and a boundary entity
    - anything else: not ours, returns None

Usage:
    hook = GateIntegration(clipboard, slot="after", guard="web")
    gate.before(hook.before)
    gate.after(hook.after)
"""

from __future__ import annotations

from typing import Any, Sequence

import structlog

from bastion.core.exceptions import ConfigurationError

from .interfaces import ClipboardBase

logger = structlog.get_logger()

SLOTS = ("before", "after")


class GateIntegration:
    def __init__(self, clipboard: ClipboardBase, slot: str = "after", guard: str = "web"):
        if slot not in SLOTS:
            raise ConfigurationError(f"Gate slot must be one of {list(SLOTS)}, got {slot!r}")
        self.clipboard = clipboard
        self.slot = slot
        self.guard = guard

    def run_before(self) -> bool:
        return self.slot == "before"

    async def before(
        self,
        authority: Any,
        ability: str,
        arguments: Sequence[Any] = (),
    ) -> bool | None:
        if not self.run_before():
            return None
        return await self._check(authority, ability, arguments)

    async def after(
        self,
        authority: Any,
        ability: str,
        result: bool | None = None,
        arguments: Sequence[Any] = (),
    ) -> bool | None:
        """Return the gate's result when it has one, else ours."""
        if result is not None or self.run_before():
            return result
        return await self._check(authority, ability, arguments)

    async def _check(self, authority: Any, ability: str, arguments: Sequence[Any]) -> bool | None:
        if not isinstance(arguments, (list, tuple)):
            arguments = (arguments,)
        if len(arguments) > 2:
            return None

        resource = arguments[0] if arguments else None
        boundary = arguments[1] if len(arguments) == 2 else None
        if resource is not None and not _is_entity_like(resource):
            return None

        verdict = await self.clipboard.check_get_id(
            authority, ability, resource, guard=self.guard, boundary=boundary,
        )
        logger.debug("gate_consulted", ability=ability, slot=self.slot, verdict=verdict)
        if verdict is None:
            return None
        return verdict is not False


def _is_entity_like(value: Any) -> bool:
    """Instances, classes and type tags can be checked; other values cannot."""
    if isinstance(value, (str, type)):
        return True
    if isinstance(value, (int, float, bool, bytes, dict, list, tuple, set)):
        return False
    return True
