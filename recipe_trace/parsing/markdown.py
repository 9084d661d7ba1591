"""Inline markdown rendering for display.

Produces presentation-neutral blocks (paragraphs, lists, breaks) with bold
spans, plus a ``rich`` conversion used by the CLI.
"""

import re
from typing import List, Optional

from rich.text import Text

from recipe_trace.models.models import InlineSpan, MarkdownBlock


_UNORDERED_ITEM = re.compile(r"^[-*+]\s")
_ORDERED_ITEM = re.compile(r"^\d+\.\s")
_LIST_MARKER = re.compile(r"^(?:[-*+•]\s*|\d+[.)]\s*)")


def parse_bold(text: str) -> List[InlineSpan]:
    """Split text on ``**`` into alternating plain and bold spans.

    Even-indexed parts are plain, odd-indexed parts bold. Empty parts are
    kept so the split stays lossless.
    """
    return [InlineSpan(text=part, bold=index % 2 == 1) for index, part in enumerate(text.split("**"))]


def strip_list_marker(line: str) -> str:
    """Remove a leading bullet glyph or ``N.``/``N)`` step number for display."""
    return _LIST_MARKER.sub("", line.strip(), count=1)


def render_markdown(text: str) -> List[MarkdownBlock]:
    """Group lines of text into display blocks.

    Consecutive bullet lines form one list; switching between ordered and
    unordered items, or hitting a paragraph or blank line, closes the open
    list. Blank lines emit a break once something has been rendered.
    """
    blocks: List[MarkdownBlock] = []
    items: List[List[InlineSpan]] = []
    list_kind: Optional[str] = None

    def flush() -> None:
        nonlocal items, list_kind
        if items and list_kind:
            blocks.append(MarkdownBlock(kind=list_kind, items=items))
        items = []
        list_kind = None

    for raw_line in text.split("\n"):
        line = raw_line.strip()

        if _UNORDERED_ITEM.match(line):
            kind, content = "unordered_list", _UNORDERED_ITEM.sub("", line, count=1)
        elif _ORDERED_ITEM.match(line):
            kind, content = "ordered_list", _ORDERED_ITEM.sub("", line, count=1)
        else:
            kind, content = None, line

        if kind:
            if list_kind != kind:
                flush()
                list_kind = kind
            items.append(parse_bold(content))
        elif line:
            flush()
            blocks.append(MarkdownBlock(kind="paragraph", spans=parse_bold(line)))
        elif blocks:
            flush()
            blocks.append(MarkdownBlock(kind="break"))

    flush()
    return blocks


def spans_to_text(spans: List[InlineSpan]) -> Text:
    """Build a ``rich`` Text with bold styling applied to bold spans."""
    text = Text()
    for span in spans:
        text.append(span.text, style="bold" if span.bold else None)
    return text


def blocks_to_text(blocks: List[MarkdownBlock]) -> Text:
    """Flatten rendered blocks into one ``rich`` Text for terminal output."""
    out = Text()
    for block in blocks:
        if block.kind == "paragraph":
            out.append_text(spans_to_text(block.spans))
            out.append("\n")
        elif block.kind == "break":
            out.append("\n")
        else:
            for number, item in enumerate(block.items, start=1):
                marker = f"{number}. " if block.kind == "ordered_list" else "• "
                out.append(f"  {marker}")
                out.append_text(spans_to_text(item))
                out.append("\n")
    return out
