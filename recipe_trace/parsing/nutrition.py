"""Extraction of the JSON nutrition summary from a nutrition-analysis response.

The nutrition call asks the model to answer with a JSON object, but models
wrap it in prose or code fences, or skip it entirely. The greedy ``{...}``
span is parsed leniently; anything unusable falls back to zero totals with
the raw text kept for display.
"""

import json
import re

from pydantic import ValidationError

from recipe_trace.models.models import NutritionAnalysis
from recipe_trace.utils.logger import logger


_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_nutrition_response(text: str) -> NutritionAnalysis:
    """Parse a nutrition-analysis model response.

    Args:
        text: Raw model output.

    Returns:
        NutritionAnalysis. When no JSON object is present, totals are zero
        and ``raw_response`` holds the text. When the JSON is malformed or
        does not fit the schema, ``parse_error`` explains why.
    """
    text = text if isinstance(text, str) else ""
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        logger.debug("Nutrition response contained no JSON object")
        return NutritionAnalysis(raw_response=text)

    try:
        payload = json.loads(match.group(0))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return NutritionAnalysis.model_validate(payload)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        logger.warning(f"Failed to parse nutrition response: {e}")
        return NutritionAnalysis(raw_response=text, parse_error=str(e))
