"""Classification and display of untyped tool payloads.

Tool arguments and results arrive in whatever shape the tool provider chose.
``classify_payload`` names the shape once, and every consumer branches on
the resulting ``PayloadKind`` instead of probing attributes ad hoc.
"""

import json
from enum import Enum
from typing import Any, Optional


class PayloadKind(str, Enum):
    """Shape of a tool payload."""

    EMPTY = "empty"
    TEXT = "text"
    MCP_CONTENT = "mcp_content"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


EMPTY_PAYLOAD_TEXT = "No data"


def is_mcp_envelope(value: Any) -> bool:
    """True for the MCP result wrapper ``{"content": [{"type": "text", "text": ...}, ...]}``."""
    return isinstance(value, dict) and isinstance(value.get("content"), list)


def classify_payload(value: Any) -> PayloadKind:
    """Return the ``PayloadKind`` of a tool argument or result."""
    if value is None or value == "" or value == {} or value == []:
        return PayloadKind.EMPTY
    if isinstance(value, str):
        return PayloadKind.TEXT
    if is_mcp_envelope(value):
        return PayloadKind.MCP_CONTENT
    if isinstance(value, dict):
        return PayloadKind.MAPPING
    if isinstance(value, (list, tuple)):
        return PayloadKind.SEQUENCE
    return PayloadKind.SCALAR


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def _pretty_text(text: str) -> str:
    """Pretty-print text that holds JSON, return other text unchanged."""
    try:
        return _dump(json.loads(text))
    except (json.JSONDecodeError, ValueError):
        return text


def envelope_text(value: Any) -> Optional[str]:
    """Concatenate the raw ``text`` items of an MCP envelope, or None if there are none."""
    if not is_mcp_envelope(value):
        return None
    texts = [
        item["text"]
        for item in value["content"]
        if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str) and item["text"]
    ]
    return "\n".join(texts) if texts else None


def _stringify_content_item(item: Any) -> str:
    if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str) and item["text"]:
        return _pretty_text(item["text"])
    if is_mcp_envelope(item):
        return stringify_payload(item)
    return _dump(item)


def stringify_payload(value: Any) -> str:
    """Render any tool payload as display text.

    - EMPTY: ``"No data"``
    - TEXT: the string itself
    - MCP_CONTENT: each content item on its own paragraph; JSON text items
      are pretty-printed and nested envelopes are rendered recursively
    - MAPPING, SEQUENCE, SCALAR: indented JSON
    """
    kind = classify_payload(value)
    if kind is PayloadKind.EMPTY:
        return EMPTY_PAYLOAD_TEXT
    if kind is PayloadKind.TEXT:
        return value
    if kind is PayloadKind.MCP_CONTENT:
        if not value["content"]:
            return _dump(value)
        return "\n\n".join(_stringify_content_item(item) for item in value["content"])
    return _dump(value)
