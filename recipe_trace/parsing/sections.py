"""Heading keyword table for recipe documents.

Every caller that needs to know which section a ``### Heading`` opens goes
through ``classify_heading`` so the mapping cannot drift between call sites.
Bump ``SECTION_TABLE_VERSION`` whenever the table changes meaning.
"""

from enum import Enum


class Section(str, Enum):
    """Section of a recipe document a line can belong to."""

    NONE = "none"
    TITLE = "title"
    INGREDIENTS = "ingredients"
    INSTRUCTIONS = "instructions"
    TIPS = "tips"
    VARIATIONS = "variations"
    SEASONAL_ADDITIONS = "seasonal_additions"
    NUTRITION = "nutrition"
    OTHER = "other"


SECTION_TABLE_VERSION = 2

# Ordered: the first keyword contained in the lower-cased heading wins.
SECTION_KEYWORDS: tuple[tuple[str, Section], ...] = (
    ("ingredient", Section.INGREDIENTS),
    ("instruction", Section.INSTRUCTIONS),
    ("direction", Section.INSTRUCTIONS),
    ("step", Section.INSTRUCTIONS),
    ("tip", Section.TIPS),
    ("note", Section.TIPS),
    ("chef", Section.TIPS),
    ("variation", Section.VARIATIONS),
    ("seasonal", Section.SEASONAL_ADDITIONS),
    ("local", Section.SEASONAL_ADDITIONS),
    ("nutrition", Section.NUTRITION),
)

# Sections that only exist before the first ### heading
PREAMBLE_SECTIONS = frozenset({Section.NONE, Section.TITLE})


def classify_heading(heading: str) -> Section:
    """Map heading text (without the leading ``###``) to a section.

    Args:
        heading: Heading text, any case.

    Returns:
        The section of the first matching keyword, or ``Section.OTHER``.
    """
    name = heading.strip().lower()
    for keyword, section in SECTION_KEYWORDS:
        if keyword in name:
            return section
    return Section.OTHER
