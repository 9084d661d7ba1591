"""Recipe document parser.

Turns the heading-delimited markdown a model returns into a ``ParsedRecipe``.
Model output follows no guaranteed format, so parsing is total: missing
sections, odd bullets and stray emphasis degrade to empty fields instead of
raising.

Document shape the parser understands:

    ## Title
    Short description line
    Prep Time: 10 minutes
    Servings: 4

    ### Ingredients
    - 2 bananas
    ### Instructions
    1. Mash bananas
    ### Nutrition Information
    Calories: 210

Section identity comes from ``classify_heading``; lines before the first
``###`` heading only feed the title-adjacent metadata.
"""

import re
from typing import Any, Optional

from recipe_trace.models.models import NutritionInfo, ParsedRecipe
from recipe_trace.parsing.sections import PREAMBLE_SECTIONS, Section, classify_heading
from recipe_trace.utils.config import config
from recipe_trace.utils.logger import logger


BULLET_GLYPHS = ("-", "*", "+", "•")

# (field, labels) checked in order; the first label found in the lower-cased line wins
METADATA_LABELS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("prep_time", ("prep time:", "preparation time:")),
    ("cook_time", ("cook time:", "cooking time:")),
    ("total_time", ("total time:",)),
    ("servings", ("serves:", "servings:", "yield:")),
)

# Lines mentioning any of these are never taken as the description
_NON_DESCRIPTION_WORDS = ("prep", "cook", "serve")

# Priority order matters: "calories and protein: 10g" is calories
NUTRIENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("calories", ("calorie", "kcal")),
    ("protein", ("protein",)),
    ("carbs", ("carb",)),
    ("fat", ("fat",)),
    ("fiber", ("fiber",)),
    ("sugar", ("sugar",)),
    ("sodium", ("sodium",)),
)

_NUMBER_RE = re.compile(r"\d{1,3}(?:,\d{3})+|\d+")
_DIGIT_RE = re.compile(r"\d")

_LIST_SECTIONS = {
    Section.INSTRUCTIONS: "instructions",
    Section.TIPS: "tips",
    Section.VARIATIONS: "variations",
    Section.SEASONAL_ADDITIONS: "seasonal_additions",
}


def normalize_ingredient(line: str) -> str:
    """Prefix an ingredient line with the configured bullet unless it already has one.

    Lines starting with a bullet glyph or a digit are returned unchanged, so
    feeding parsed ingredients back through the parser is stable.
    """
    if line.startswith((*BULLET_GLYPHS, config.INGREDIENT_BULLET)) or line[:1].isdigit():
        return line
    return f"{config.INGREDIENT_BULLET} {line}"


def _metadata_value(line: str) -> str:
    """Text after the first colon, trimmed and stripped of emphasis markers."""
    return line.split(":", 1)[1].strip().strip("*").strip()


def _match_metadata(line: str) -> Optional[tuple[str, str]]:
    lower = line.lower()
    for field, labels in METADATA_LABELS:
        if any(label in lower for label in labels):
            return field, _metadata_value(line)
    return None


def _looks_like_description(line: str) -> bool:
    lower = line.lower()
    return ":" not in line and not any(word in lower for word in _NON_DESCRIPTION_WORDS)


def _first_number(text: str) -> Optional[int]:
    match = _NUMBER_RE.search(text)
    return int(match.group().replace(",", "")) if match else None


def extract_nutrient_value(line: str) -> Optional[int]:
    """Pull the nutrient amount out of a nutrition line.

    Digits after the first colon are preferred ("Per serving: 285 calories");
    without a colon, or with no digits after it, the first number on the line
    is used.
    """
    if ":" in line:
        value = _first_number(line.split(":", 1)[1])
        if value is not None:
            return value
    return _first_number(line)


def parse_nutrition_line(line: str, nutrition: dict[str, Any]) -> None:
    """Apply one nutrition-section line to the accumulated nutrition fields.

    The first nutrient keyword (in priority order) that yields a number takes
    the line. Lines with no number and no colon that are longer than
    ``HIGHLIGHT_MIN_LENGTH`` are treated as descriptive highlights.
    """
    lower = line.lower()
    for field, keywords in NUTRIENT_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            value = extract_nutrient_value(line)
            if value is not None:
                nutrition[field] = value
                return

    if ":" not in line and not _DIGIT_RE.search(line) and len(line) > config.HIGHLIGHT_MIN_LENGTH:
        existing = nutrition.get("highlights")
        nutrition["highlights"] = f"{existing} {line}" if existing else line


def parse_recipe(document: Any) -> ParsedRecipe:
    """Parse a markdown recipe document into a ``ParsedRecipe``.

    Args:
        document: Raw model output. Anything that is not a string yields an
            empty record.

    Returns:
        ParsedRecipe with every list present (possibly empty) and
        ``nutrition_info`` set only when a nutrition section had content.
    """
    if not isinstance(document, str):
        logger.debug(f"parse_recipe received {type(document).__name__}, returning empty recipe")
        return ParsedRecipe()

    fields: dict[str, Any] = {
        "title": "",
        "description": "",
        "prep_time": "",
        "cook_time": "",
        "total_time": "",
        "servings": "",
        "ingredients": [],
        "instructions": [],
        "tips": [],
        "variations": [],
        "seasonal_additions": [],
    }
    nutrition: Optional[dict[str, Any]] = None
    section = Section.NONE

    for raw_line in document.splitlines():
        line = raw_line.strip()

        if line.startswith("## "):
            fields["title"] = line[3:].strip()
            section = Section.TITLE
            continue
        if line.startswith("### "):
            section = classify_heading(line[4:])
            continue
        if not line or line.startswith("#"):
            continue

        if section in PREAMBLE_SECTIONS:
            if not fields["description"] and _looks_like_description(line):
                fields["description"] = line
            metadata = _match_metadata(line)
            if metadata:
                field, value = metadata
                fields[field] = value
        elif section is Section.INGREDIENTS:
            fields["ingredients"].append(normalize_ingredient(line))
        elif section is Section.NUTRITION:
            if nutrition is None:
                nutrition = {}
            parse_nutrition_line(line, nutrition)
        elif section in _LIST_SECTIONS:
            fields[_LIST_SECTIONS[section]].append(line)
        # Section.OTHER content is dropped

    recipe = ParsedRecipe(
        **fields,
        nutrition_info=NutritionInfo(**nutrition) if nutrition is not None else None,
    )
    logger.debug(
        f"Parsed recipe '{recipe.title}': {len(recipe.ingredients)} ingredients, "
        f"{len(recipe.instructions)} instructions, nutrition={'yes' if recipe.nutrition_info else 'no'}"
    )
    return recipe
