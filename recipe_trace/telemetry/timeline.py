"""Tool-call timeline reconstruction.

A generation call only reports its total wall-clock duration, not when each
tool call inside it ran. The timeline is therefore apportioned (waterfall
style) rather than measured:

1. Steps without tool calls are ignored and consume no time.
2. The total duration is split evenly across the remaining steps, in order.
3. Each step's slice is split evenly across its calls, in call order.

Even apportionment assumes every step and call costs the same.

Every call is also classified as succeeded or failed from its matching
result entry. Ambiguous failure-looking strings are flagged.
"""

import math
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from recipe_trace.models.models import GenerationStep, ToolCall, ToolInvocation, ToolResult
from recipe_trace.telemetry.payloads import envelope_text, stringify_payload
from recipe_trace.utils.config import config
from recipe_trace.utils.logger import log_context, logger


FAILURE_KEYWORDS = ("error", "failed", "exception", "timeout", "invalid")
FAILURE_GLYPHS = ("❌", "✗", "✖")


# ============================================================================
# Input normalization
# ============================================================================


def coerce_steps(steps: Any) -> List[GenerationStep]:
    """Validate raw steps into ``GenerationStep`` models, skipping unusable entries.

    Accepts models or dicts (camelCase or snake_case). Non-mapping entries and
    entries that fail validation are logged and dropped.
    """
    if not steps:
        return []
    if not isinstance(steps, (list, tuple)):
        logger.warning(f"Expected a list of steps, got {type(steps).__name__}; ignoring")
        return []

    coerced: List[GenerationStep] = []
    for index, raw in enumerate(steps):
        if isinstance(raw, GenerationStep):
            coerced.append(raw)
            continue
        if not isinstance(raw, dict):
            logger.warning(f"Skipping step {index}: expected a mapping, got {type(raw).__name__}")
            continue
        try:
            coerced.append(GenerationStep.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed step {index}: {e.error_count()} validation errors")
    return coerced


def _as_number(value: Any, name: str) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number):
        logger.warning(f"Invalid {name} {value!r}; using 0")
        return 0.0
    return number


def _round_ms(value: float) -> int:
    """Round half up, matching how timestamps are rounded on the display side."""
    return int(math.floor(value + 0.5))


# ============================================================================
# Error classification
# ============================================================================


def _is_set(value: Any) -> bool:
    """Empty values (None, False, 0, "", {}, []) mean no error was reported."""
    return bool(value)


def _error_message(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("message"):
        return str(value["message"])
    return stringify_payload(value)


def looks_like_failure(text: str) -> bool:
    """True when result text reads like a failure report."""
    stripped = text.strip()
    lower = stripped.lower()
    return any(keyword in lower for keyword in FAILURE_KEYWORDS) or stripped.startswith(FAILURE_GLYPHS)


def classify_tool_error(entry: Optional[ToolResult]) -> tuple[Optional[str], bool]:
    """Decide whether a tool call failed.

    Checks, first match wins:
    explicit ``error`` on the result entry, ``is_error`` on the entry,
    an ``error`` key inside a mapping result, ``isError`` inside a mapping
    result, failure-looking text in a string result. A call with no result
    entry at all is a failure.

    Args:
        entry: The result entry matched to the call, or None.

    Returns:
        (error message or None, is_error).
    """
    if entry is None:
        return config.UNRESOLVED_TOOL_MESSAGE, True
    if _is_set(entry.error):
        return _error_message(entry.error), True
    if entry.is_error:
        return entry.message or config.GENERIC_TOOL_ERROR_MESSAGE, True

    value = entry.result
    if isinstance(value, dict):
        if _is_set(value.get("error")):
            return _error_message(value["error"]), True
        if value.get("isError") or value.get("is_error"):
            message = value.get("message")
            return (str(message) if message else None) or envelope_text(value) or config.GENERIC_TOOL_ERROR_MESSAGE, True
    if isinstance(value, str) and looks_like_failure(value):
        return value, True
    return None, False


def match_results(step: GenerationStep) -> dict:
    """Index a step's results by tool call id. Duplicate ids keep the first entry."""
    by_id: dict = {}
    for entry in step.tool_results:
        if entry.tool_call_id is not None:
            by_id.setdefault(entry.tool_call_id, entry)
    return by_id


def _find_result(step: GenerationStep, by_id: dict, call: ToolCall, call_index: int) -> Optional[ToolResult]:
    if call.tool_call_id is not None:
        return by_id.get(call.tool_call_id)
    # Providers that omit ids keep results in call order
    if call_index < len(step.tool_results) and step.tool_results[call_index].tool_call_id is None:
        return step.tool_results[call_index]
    return None


# ============================================================================
# Reconstruction
# ============================================================================


def reconstruct_timeline(steps: Iterable[Any], overall_start: Any, total_duration: Any) -> List[ToolInvocation]:
    """Rebuild per-call tool invocations with apportioned timing.

    Args:
        steps: Generation steps, as ``GenerationStep`` models or dicts.
        overall_start: Epoch milliseconds when the generation call started.
        total_duration: Wall-clock duration of the whole call in milliseconds.

    Returns:
        One ToolInvocation per call, in step order then call order. Calls in
        a step are contiguous and the steps together cover
        ``[overall_start, overall_start + total_duration]``. With no calls or
        a non-positive duration every timestamp collapses to
        ``overall_start``.
    """
    qualifying = [step for step in coerce_steps(steps) if step.tool_calls]
    start = _as_number(overall_start, "overall_start")
    total = max(_as_number(total_duration, "total_duration"), 0.0)

    step_count = len(qualifying)
    step_duration = total / step_count if step_count else 0.0

    invocations: List[ToolInvocation] = []
    for step_index, step in enumerate(qualifying):
        step_start = start + step_index * step_duration
        step_end = start + total if step_index == step_count - 1 else start + (step_index + 1) * step_duration

        call_count = len(step.tool_calls)
        call_duration = (step_end - step_start) / call_count
        by_id = match_results(step)

        for call_index, call in enumerate(step.tool_calls):
            call_start = step_start + call_index * call_duration
            call_end = step_end if call_index == call_count - 1 else step_start + (call_index + 1) * call_duration
            start_ms = _round_ms(call_start)
            end_ms = _round_ms(call_end)

            entry = _find_result(step, by_id, call, call_index)
            error, is_error = classify_tool_error(entry)
            if is_error:
                logger.debug(f"Tool call flagged as error: {error}", extra=log_context(tool_name=call.tool_name))

            invocations.append(
                ToolInvocation(
                    tool_call_id=call.tool_call_id,
                    tool_name=call.tool_name,
                    args=call.args,
                    result=entry.result if entry is not None else None,
                    start_time=start_ms,
                    end_time=end_ms,
                    duration=end_ms - start_ms,
                    error=error,
                    is_error=is_error,
                    step_index=step_index,
                    call_index=call_index,
                )
            )

    logger.debug(f"Reconstructed {len(invocations)} tool invocations across {step_count} steps")
    return invocations
