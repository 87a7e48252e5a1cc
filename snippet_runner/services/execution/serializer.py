"""
Safe serialization of captured values for console display.

safe_serialize() never raises: large host singletons collapse to fixed
placeholders, elements collapse to their opening tag, cycles and repeated
references print as "[Circular]", and anything JSON cannot express falls
back to plain string coercion.

Output matches ``json.dumps(value, indent=2, ensure_ascii=False)`` but is
written from an explicit stack, so deeply nested values (long linked lists,
for instance) print in full instead of hitting the recursion limit.
"""

import json
import logging
import math
from collections.abc import Mapping
from typing import Any, List, Optional, Tuple

from .js_values import (
    JS_DOCUMENT,
    JS_GLOBAL,
    JS_UNDEFINED,
    JsFunction,
    JsSymbol,
    JsUndefined,
    JsUnreadable,
)

logger = logging.getLogger(__name__)

CIRCULAR = "[Circular]"
INDENT = "  "

AMBIENT_PLACEHOLDERS: Tuple[Tuple[Any, str], ...] = (
    (JS_GLOBAL, "[window object]"),
    (JS_DOCUMENT, "[document object]"),
)

# Dropped from objects and written as null inside arrays, like JSON.stringify
_OMITTED_TYPES = (JsUndefined, JsFunction, JsSymbol)


def ambient_placeholder(value: Any) -> Optional[str]:
    for candidate, placeholder in AMBIENT_PLACEHOLDERS:
        if value is candidate:
            return placeholder
    return None


def is_element_like(value: Any) -> bool:
    return isinstance(getattr(value, "outer_html", None), str)


def opening_tag(value: Any) -> str:
    return value.outer_html.split(">")[0] + "...>"


def safe_serialize(value: Any) -> str:
    """Convert any captured value into display text without raising."""
    try:
        return _serialize(value)
    except Exception as e:
        logger.debug(f"Structural serialization failed, coercing to string: {e}")
        return _coerce(value)


def _serialize(value: Any) -> str:
    if value is None:
        return "null"
    if value is JS_UNDEFINED or isinstance(value, _OMITTED_TYPES):
        return "undefined"

    placeholder = ambient_placeholder(value)
    if placeholder is not None:
        return placeholder
    if is_element_like(value):
        return opening_tag(value)

    return _write_json(value)


def _leaf(value: Any) -> Optional[str]:
    """JSON text for a non-container value, or None for mappings and sequences."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float):
        return json.dumps(value) if math.isfinite(value) else "null"
    if isinstance(value, _OMITTED_TYPES):
        return "null"
    if isinstance(value, JsUnreadable):
        raise ValueError(value.message or "unreadable value")

    placeholder = ambient_placeholder(value)
    if placeholder is not None:
        return json.dumps(placeholder, ensure_ascii=False)
    if is_element_like(value):
        return json.dumps(opening_tag(value), ensure_ascii=False)

    if isinstance(value, (Mapping, list, tuple)):
        return None
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _write_json(value: Any) -> str:
    out: List[str] = []
    # One visited set per top-level call
    visited = set()
    # Entries are (is_text, payload, depth); text entries are emitted as-is
    stack: List[Tuple[bool, Any, int]] = [(False, value, 0)]

    while stack:
        is_text, item, depth = stack.pop()
        if is_text:
            out.append(item)
            continue

        leaf = _leaf(item)
        if leaf is not None:
            out.append(leaf)
            continue

        if id(item) in visited:
            out.append(json.dumps(CIRCULAR))
            continue
        visited.add(id(item))

        if isinstance(item, Mapping):
            opener, closer = "{", "}"
            members = [
                (json.dumps(str(key), ensure_ascii=False) + ": ", child)
                for key, child in item.items()
                if not isinstance(child, _OMITTED_TYPES)
            ]
        else:
            opener, closer = "[", "]"
            members = [("", child) for child in item]

        if not members:
            out.append(opener + closer)
            continue

        out.append(opener)
        inner = "\n" + INDENT * (depth + 1)
        stack.append((True, "\n" + INDENT * depth + closer, depth))
        for index in range(len(members) - 1, -1, -1):
            label, child = members[index]
            stack.append((False, child, depth + 1))
            stack.append((True, ("," if index else "") + inner + label, depth))

    return "".join(out)


def _coerce(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"[{type(value).__name__}]"
