"""Closed classification of JSON document nodes."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any


class NodeKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def node_kind(value: Any) -> NodeKind:
    """Classify a decoded JSON value.

    Raises:
        TypeError: For values that cannot come out of a JSON decoder.
    """
    if value is None:
        return NodeKind.NULL
    # bool is an int subclass
    if isinstance(value, bool):
        return NodeKind.BOOL
    if isinstance(value, (int, float)):
        return NodeKind.NUMBER
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, Mapping):
        return NodeKind.OBJECT
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return NodeKind.ARRAY
    raise TypeError(f"Unsupported document value of type {type(value).__name__}")


def render_primitive(value: Any) -> str:
    """Render a scalar the way it appears in FHIR JSON (``true``, ``1.5``, ``abc``)."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


__all__ = ["NodeKind", "node_kind", "render_primitive"]
