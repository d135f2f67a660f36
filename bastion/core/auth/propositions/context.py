"""
Evaluation context.

Propositions never touch live objects. Before evaluation the authority
and resource are flattened into attribute maps, and every operand is a
key path into this closed structure:

    authority.approval_limit
    resource.user_id
    resource.tags[0]
    now
    extra.amount      (or just "amount": bare paths resolve in extra)
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from bastion.core.exceptions import MissingContextPathError

ROOTS = ("authority", "resource", "now", "extra")

_SEGMENT = re.compile(r"([^.\[\]]+)|\[([^\]]+)\]")


def attribute_map(entity: Any) -> dict[str, Any]:
    """Flatten an entity into a plain attribute map."""
    if entity is None:
        return {}
    if isinstance(entity, Mapping):
        return dict(entity)
    try:
        mapper = sa_inspect(entity).mapper
    except (NoInspectionAvailable, AttributeError):
        mapper = None
    if mapper is not None:
        return {attr.key: getattr(entity, attr.key) for attr in mapper.column_attrs}
    if dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        return {f.name: getattr(entity, f.name) for f in dataclasses.fields(entity)}
    to_dict = getattr(entity, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    return {k: v for k, v in vars(entity).items() if not k.startswith("_")}


def parse_path(path: str) -> list[str]:
    segments = [m.group(1) or m.group(2) for m in _SEGMENT.finditer(path)]
    if not segments or "".join(segments) == "":
        raise MissingContextPathError(path)
    return [s.strip().strip("'\"") for s in segments]


@dataclass(frozen=True)
class EvaluationContext:
    authority: Mapping[str, Any] = field(default_factory=dict)
    resource: Mapping[str, Any] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        authority: Any = None,
        resource: Any = None,
        now: datetime | None = None,
        **extra: Any,
    ) -> "EvaluationContext":
        """Snapshot entities into a context. now defaults to the current UTC time."""
        return cls(
            authority=attribute_map(authority),
            resource=attribute_map(resource),
            now=now or datetime.now(timezone.utc),
            extra=dict(extra),
        )

    def resolve(self, path: str) -> Any:
        segments = parse_path(path)
        root, rest = segments[0], segments[1:]

        if root == "now":
            if rest:
                raise MissingContextPathError(path)
            return self.now
        if root in ("authority", "resource", "extra"):
            current: Any = getattr(self, root)
        else:
            current, rest = self.extra, segments

        for segment in rest:
            current = _step(current, segment, path)
        return current


def _step(current: Any, segment: str, path: str) -> Any:
    if isinstance(current, Mapping):
        if segment in current:
            return current[segment]
        if segment.lstrip("-").isdigit() and int(segment) in current:
            return current[int(segment)]
        raise MissingContextPathError(path)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            return current[int(segment)]
        except (ValueError, IndexError):
            raise MissingContextPathError(path) from None
    if current is None or isinstance(current, (str, bytes, int, float, bool, datetime)):
        raise MissingContextPathError(path)
    return _step(attribute_map(current), segment, path)
