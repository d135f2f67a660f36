"""
Proposition storage codec.

Two encodings, as a tagged variant:

- Recognized(method, params): the proposition came from a single
  PropositionBuilder helper. Stored as {"method": ..., "params": ...}.
- Opaque(payload): any other tree, serialized in this library's own
  tree format. Stored as {"format": ..., "payload": <base64>}.

Decoding tries the recognized form first. Opaque payloads in any other
format (including bare serialized strings written by other runtimes)
are rejected, never guessed at.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from bastion.core.exceptions import BastionError, UndecodablePropositionError

from .builder import PropositionBuilder
from .nodes import Proposition, node_from_tree

TREE_FORMAT = "bastion.tree/1"


@dataclass(frozen=True)
class Recognized:
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Opaque:
    payload: bytes
    format: str = TREE_FORMAT


Encoded = Union[Recognized, Opaque]

_builder = PropositionBuilder()


def encode(proposition: Proposition) -> Encoded:
    if proposition.recipe is not None:
        method, params = proposition.recipe
        return Recognized(method, dict(params))
    tree = proposition.root.to_tree()
    return Opaque(json.dumps(tree, sort_keys=True).encode("utf-8"))


def decode(encoded: Encoded) -> Proposition:
    if isinstance(encoded, Recognized):
        return _builder.from_recipe(encoded.method, encoded.params)
    if encoded.format != TREE_FORMAT:
        raise UndecodablePropositionError(
            f"Opaque proposition format {encoded.format!r} is not supported"
        )
    try:
        tree = json.loads(encoded.payload.decode("utf-8"))
        return Proposition(node_from_tree(tree))
    except (ValueError, KeyError, TypeError, AttributeError, BastionError) as exc:
        raise UndecodablePropositionError(f"Corrupt opaque proposition: {exc}") from exc


# ============================================================
# STORAGE DOCUMENTS
# ============================================================

def to_document(encoded: Encoded) -> dict[str, Any]:
    if isinstance(encoded, Recognized):
        return {"method": encoded.method, "params": encoded.params}
    return {
        "format": encoded.format,
        "payload": base64.b64encode(encoded.payload).decode("ascii"),
    }


def from_document(document: Any) -> Encoded:
    if isinstance(document, Mapping):
        if "method" in document:
            params = document.get("params") or {}
            if not isinstance(params, Mapping):
                raise UndecodablePropositionError("Proposition params must be an object")
            return Recognized(str(document["method"]), dict(params))
        if "format" in document and "payload" in document:
            try:
                payload = base64.b64decode(document["payload"], validate=True)
            except (binascii.Error, TypeError) as exc:
                raise UndecodablePropositionError("Opaque payload is not base64") from exc
            return Opaque(payload, str(document["format"]))
    raise UndecodablePropositionError(
        "Stored proposition is neither a recipe nor a supported opaque document"
    )


def dumps(proposition: Proposition | None) -> dict[str, Any] | None:
    if proposition is None:
        return None
    return to_document(encode(proposition))


def loads(document: Any) -> Proposition | None:
    if document is None:
        return None
    return decode(from_document(document))
