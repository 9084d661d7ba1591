"""Data models and schemas for recipe extraction and tool-call telemetry.

Defines Pydantic models for parsed recipes, generation steps, reconstructed
tool invocations and service traces. All models use Pydantic v2.

Output models serialize with camelCase aliases (``model_dump(by_alias=True)``)
so the presentation layer receives ``prepTime``, ``toolName``, ``isError`` and
friends, while Python callers keep snake_case attribute names. Input models
accept both spellings.
"""

import json
import re
from typing import Any, Annotated, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class OutputModel(BaseModel):
    """Base for immutable value objects handed to the presentation layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ============================================================================
# Recipe documents
# ============================================================================


class NutritionInfo(OutputModel):
    """Nutrition facts scraped from a recipe's nutrition section.

    Numeric fields stay None until a line for that nutrient is seen.
    """

    calories: Optional[int] = None
    protein: Optional[int] = None
    carbs: Optional[int] = None
    fat: Optional[int] = None
    fiber: Optional[int] = None
    sugar: Optional[int] = None
    sodium: Optional[int] = None
    highlights: Annotated[
        Optional[str], Field(description="Descriptive nutrition prose, space-joined across lines")
    ] = None


class ParsedRecipe(OutputModel):
    """Structured recipe recovered from model-generated markdown.

    Every list defaults to empty and every string to "" so a document with no
    recognizable structure still yields a complete record.
    """

    title: str = ""
    description: str = ""
    prep_time: str = ""
    cook_time: str = ""
    total_time: str = ""
    servings: str = ""
    ingredients: Annotated[
        List[str], Field(default_factory=list, description="Ingredient lines, each starting with a bullet or number")
    ]
    instructions: Annotated[
        List[str], Field(default_factory=list, description="Instruction lines as written (numbering kept)")
    ]
    tips: Annotated[List[str], Field(default_factory=list, description="Tips, notes and chef remarks")]
    variations: Annotated[List[str], Field(default_factory=list, description="Optional variations")]
    seasonal_additions: Annotated[
        List[str], Field(default_factory=list, description="Seasonal or local additions")
    ]
    nutrition_info: Annotated[
        Optional[NutritionInfo], Field(description="Present only when the document has a nutrition section")
    ] = None


class InlineSpan(OutputModel):
    """Run of text that is either plain or bold."""

    text: str
    bold: bool = False


class MarkdownBlock(OutputModel):
    """Block-level display node produced by the markdown renderer.

    Paragraphs carry ``spans``; lists carry one span list per item in ``items``.
    """

    kind: Literal["paragraph", "unordered_list", "ordered_list", "break"]
    spans: Annotated[List[InlineSpan], Field(default_factory=list)]
    items: Annotated[List[List[InlineSpan]], Field(default_factory=list)]


# ============================================================================
# Nutrition analysis responses
# ============================================================================


def _coerce_number(value: Any) -> Any:
    """Turn LLM-style quantities (None, "12g", "1,200 mg") into numbers."""
    if value is None:
        return 0
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        return float(match.group()) if match else 0
    return value


class NutritionTotals(OutputModel):
    """Whole-recipe nutrition totals."""

    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    fiber: float = 0
    sugar: float = 0
    sodium: float = 0

    @field_validator("*", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _coerce_number(v)


class IngredientNutrition(OutputModel):
    """Per-ingredient nutrition line."""

    name: str = ""
    amount: str = ""
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0

    @field_validator("calories", "protein", "carbs", "fat", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _coerce_number(v)

    @field_validator("name", "amount", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class NutritionAnalysis(OutputModel):
    """Nutrition summary returned by a nutrition-analysis generation call."""

    total_nutrition: Annotated[NutritionTotals, Field(default_factory=NutritionTotals)]
    ingredients: Annotated[List[IngredientNutrition], Field(default_factory=list)]
    raw_response: Annotated[
        Optional[str], Field(description="Model text, kept when no usable JSON was found")
    ] = None
    parse_error: Optional[str] = None

    @field_validator("ingredients", mode="before")
    @classmethod
    def drop_unusable_ingredients(cls, v: Any) -> Any:
        """Skip entries that are not objects so one bad line does not discard the totals."""
        if v is None:
            return []
        if isinstance(v, list):
            return [item for item in v if isinstance(item, (dict, IngredientNutrition))]
        return v


# ============================================================================
# Generation steps (input)
# ============================================================================


def _coerce_id(v: Any) -> Optional[str]:
    return None if v is None else str(v)


def _keep_mappings(items: Any, model: type) -> list:
    """Drop list entries that are neither dicts nor instances of ``model``."""
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        return []
    return [item for item in items if isinstance(item, (dict, model))]


class ToolCall(BaseModel):
    """One tool invocation requested by the model within a step."""

    model_config = ConfigDict(extra="ignore")

    tool_call_id: Annotated[
        Optional[str], Field(validation_alias=AliasChoices("toolCallId", "tool_call_id", "id"))
    ] = None
    tool_name: Annotated[str, Field(validation_alias=AliasChoices("toolName", "tool_name", "name"))] = "unknown"
    args: Annotated[
        dict[str, Any], Field(default_factory=dict, validation_alias=AliasChoices("args", "input", "arguments"))
    ]

    @field_validator("tool_call_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return _coerce_id(v)

    @field_validator("tool_name", mode="before")
    @classmethod
    def default_tool_name(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "unknown"
        return str(v)

    @field_validator("args", mode="before")
    @classmethod
    def normalize_args(cls, v: Any) -> dict:
        """Accept mappings, JSON-encoded objects, or wrap anything else under "value"."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(key): value for key, value in v.items()}
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                decoded = json.loads(v)
            except (json.JSONDecodeError, ValueError):
                return {"value": v}
            return decoded if isinstance(decoded, dict) else {"value": decoded}
        return {"value": v}


class ToolResult(BaseModel):
    """Result reported for a tool call, matched to its call by ``tool_call_id``."""

    model_config = ConfigDict(extra="ignore")

    tool_call_id: Annotated[
        Optional[str], Field(validation_alias=AliasChoices("toolCallId", "tool_call_id", "id"))
    ] = None
    result: Annotated[Any, Field(validation_alias=AliasChoices("result", "output"))] = None
    error: Any = None
    is_error: Annotated[bool, Field(validation_alias=AliasChoices("isError", "is_error"))] = False
    message: Optional[str] = None

    @field_validator("tool_call_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return _coerce_id(v)

    @field_validator("is_error", mode="before")
    @classmethod
    def truthy(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)


class GenerationStep(BaseModel):
    """One round of a multi-step generation call.

    A step holds the tool calls the model issued (possibly in parallel) and the
    results that came back. Either list may be empty.
    """

    model_config = ConfigDict(extra="ignore")

    tool_calls: Annotated[
        List[ToolCall], Field(default_factory=list, validation_alias=AliasChoices("toolCalls", "tool_calls"))
    ]
    tool_results: Annotated[
        List[ToolResult], Field(default_factory=list, validation_alias=AliasChoices("toolResults", "tool_results"))
    ]

    @field_validator("tool_calls", mode="before")
    @classmethod
    def keep_call_mappings(cls, v: Any) -> list:
        return _keep_mappings(v, ToolCall)

    @field_validator("tool_results", mode="before")
    @classmethod
    def keep_result_mappings(cls, v: Any) -> list:
        return _keep_mappings(v, ToolResult)


class Usage(OutputModel):
    """Token usage reported by the generation call, passed through verbatim."""

    prompt_tokens: Annotated[
        Optional[int], Field(validation_alias=AliasChoices("promptTokens", "prompt_tokens", "inputTokens", "input_tokens"))
    ] = None
    completion_tokens: Annotated[
        Optional[int],
        Field(validation_alias=AliasChoices("completionTokens", "completion_tokens", "outputTokens", "output_tokens")),
    ] = None
    total_tokens: Annotated[Optional[int], Field(validation_alias=AliasChoices("totalTokens", "total_tokens"))] = None


# ============================================================================
# Reconstructed timeline (output)
# ============================================================================


class ToolInvocation(OutputModel):
    """A tool call with synthesized timing and error classification.

    ``start_time``/``end_time`` are epoch milliseconds apportioned from the
    generation call's total duration, not measured per call.
    """

    tool_call_id: Optional[str] = None
    tool_name: str
    args: Annotated[dict[str, Any], Field(default_factory=dict)]
    result: Any = None
    start_time: int
    end_time: int
    duration: Annotated[int, Field(ge=0)]
    error: Optional[str] = None
    is_error: bool = False
    step_index: Annotated[int, Field(ge=0, description="Position of the step among steps that made calls")] = 0
    call_index: Annotated[int, Field(ge=0, description="Position of the call within its step")] = 0


class Timing(OutputModel):
    """Wall-clock bounds of one generation call in epoch milliseconds."""

    start_time: int
    end_time: int
    duration: int


class ServiceTrace(OutputModel):
    """Tool telemetry for one generation call (one service, e.g. recipe or nutrition)."""

    service: str
    model: Optional[str] = None
    enabled: bool = True
    tools_available: Annotated[List[str], Field(default_factory=list)]
    tools_used: Annotated[List[ToolInvocation], Field(default_factory=list)]
    usage: Optional[Usage] = None
    timing: Optional[Timing] = None
    error: Optional[str] = None


class TimelineBar(OutputModel):
    """A tool call positioned on a combined timeline, in percent of the total span."""

    service: str
    tool_name: str
    start_time: int
    end_time: int
    duration: int
    is_error: bool = False
    offset_percent: float
    width_percent: float


class TraceSummary(OutputModel):
    """Combined view over several service traces."""

    total_tools: int = 0
    error_count: int = 0
    services: int = 0
    earliest_start: Optional[int] = None
    latest_end: Optional[int] = None
    total_duration: int = 0
    total_tokens: Annotated[Optional[int], Field(description="Sum of usage.total_tokens, None when zero")] = None
    bars: Annotated[List[TimelineBar], Field(default_factory=list)]
