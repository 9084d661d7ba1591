"""Post-hooks and run adapters for Agno agents.

Bridges an Agno agent run to the pure extraction core:

Adapters:
1. steps_from_messages - Groups assistant tool calls and tool replies into generation steps
2. usage_from_metrics / duration_ms_from_metrics - Token usage and wall-clock duration of the run
3. trace_from_run_output - Full ServiceTrace for one run

Post-hook Pipeline:
1. parse_recipe_post_hook - Parses the markdown answer into metadata["parsed_recipe"]
2. attach_tool_trace_post_hook - Reconstructs the tool timeline into metadata["tool_trace"]

Post-hooks never raise into the agent run: telemetry failures are logged
and the run output is left untouched.
"""

import json
import time
from typing import Any, Dict, List, Optional

from agno.run.agent import RunOutput

from recipe_trace.models.models import ServiceTrace
from recipe_trace.parsing.recipe_parser import parse_recipe
from recipe_trace.telemetry.trace import build_service_trace
from recipe_trace.utils.config import config
from recipe_trace.utils.logger import log_context, logger


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an Agno object or its dict form."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _decode_content(content: Any) -> Any:
    """Tool replies are usually JSON text; decode objects and arrays, keep other text as-is."""
    if not isinstance(content, str):
        return content
    stripped = content.strip()
    if not stripped.startswith(("{", "[")):
        return content
    try:
        return json.loads(stripped)
    except (json.JSONDecodeError, ValueError):
        return content


def _call_record(call: Any) -> Optional[Dict[str, Any]]:
    """Convert an OpenAI-style tool call ``{"id", "function": {"name", "arguments"}}``."""
    if not isinstance(call, dict):
        return None
    function = call.get("function") or {}
    return {
        "tool_call_id": call.get("id"),
        "tool_name": function.get("name") or call.get("name"),
        "args": function.get("arguments", call.get("arguments")),
    }


def steps_from_messages(messages: Optional[List[Any]]) -> List[Dict[str, Any]]:
    """Group a run's messages into generation steps.

    Each assistant message that requests tools opens a new step; the tool
    messages that follow attach their results to it. Tool messages with no
    open step are ignored.

    Args:
        messages: Agno ``Message`` objects (or dicts) in conversation order.

    Returns:
        List of step dicts accepted by ``reconstruct_timeline``.
    """
    steps: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None

    for message in messages or []:
        role = _field(message, "role")
        tool_calls = _field(message, "tool_calls")

        if role == "assistant" and tool_calls:
            calls = [record for record in (_call_record(call) for call in tool_calls) if record]
            current = {"tool_calls": calls, "tool_results": []}
            steps.append(current)
        elif role == "tool" and current is not None:
            content = _field(message, "content")
            failed = bool(_field(message, "tool_call_error"))
            current["tool_results"].append(
                {
                    "tool_call_id": _field(message, "tool_call_id"),
                    "result": _decode_content(content),
                    "is_error": failed,
                    "message": content if failed and isinstance(content, str) else None,
                }
            )

    return steps


def usage_from_metrics(metrics: Any) -> Optional[Dict[str, Any]]:
    """Map Agno run metrics to prompt/completion/total token usage."""
    if metrics is None:
        return None
    usage = {
        "prompt_tokens": _field(metrics, "input_tokens"),
        "completion_tokens": _field(metrics, "output_tokens"),
        "total_tokens": _field(metrics, "total_tokens"),
    }
    if all(value is None for value in usage.values()):
        return None
    return usage


def duration_ms_from_metrics(metrics: Any) -> int:
    """Wall-clock duration of the run in milliseconds, 0 when unknown."""
    if metrics is None:
        return 0
    seconds = _field(metrics, "duration")
    if seconds is None:
        seconds = _field(metrics, "time_taken_seconds")
    if not isinstance(seconds, (int, float)) or seconds <= 0:
        return 0
    return int(seconds * 1000)


def trace_from_run_output(run_output: RunOutput, service: Optional[str] = None) -> ServiceTrace:
    """Build the ServiceTrace of one agent run.

    The run start comes from ``created_at`` (epoch seconds); when missing it is
    derived from the current time and the run duration.
    """
    metrics = _field(run_output, "metrics")
    duration_ms = duration_ms_from_metrics(metrics)

    created_at = _field(run_output, "created_at")
    if isinstance(created_at, (int, float)) and created_at > 0:
        start_ms = int(created_at * 1000)
    else:
        start_ms = int(time.time() * 1000) - duration_ms

    return build_service_trace(
        service=service or config.TRACE_SERVICE_NAME,
        steps=steps_from_messages(_field(run_output, "messages")),
        start_time=start_ms,
        end_time=start_ms + duration_ms,
        usage=usage_from_metrics(metrics),
        model=_field(run_output, "model"),
    )


def _response_text(content: Any) -> Optional[str]:
    """Markdown text of a run's content: plain string, structured ``response`` field, or dict."""
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        text = content.get("response")
        return text if isinstance(text, str) else None
    text = getattr(content, "response", None)
    return text if isinstance(text, str) else None


def _store_metadata(run_output: RunOutput, key: str, value: Any) -> None:
    metadata = getattr(run_output, "metadata", None) or {}
    metadata[key] = value
    run_output.metadata = metadata


def parse_recipe_post_hook(
    run_output: RunOutput,
    session=None,
    user_id: Optional[str] = None,
    debug_mode: Optional[bool] = None,
) -> None:
    """Post-hook: Parse the markdown answer into a structured recipe.

    Stores the camelCase dict form under ``run_output.metadata["parsed_recipe"]``.
    """
    try:
        text = _response_text(getattr(run_output, "content", None))
        if not text:
            return

        recipe = parse_recipe(text)
        _store_metadata(run_output, "parsed_recipe", recipe.model_dump(by_alias=True))
        logger.info(
            f"Post-hook: Parsed recipe '{recipe.title}' "
            f"({len(recipe.ingredients)} ingredients, {len(recipe.instructions)} steps)",
            extra=log_context(run_id=getattr(run_output, "run_id", None)),
        )
    except Exception as e:
        logger.warning(f"Post-hook failed to parse recipe: {e}")


def attach_tool_trace_post_hook(
    run_output: RunOutput,
    session=None,
    user_id: Optional[str] = None,
    debug_mode: Optional[bool] = None,
) -> None:
    """Post-hook: Reconstruct the tool-call timeline of the run.

    Stores the camelCase dict form under ``run_output.metadata["tool_trace"]``.
    """
    try:
        trace = trace_from_run_output(run_output)
        _store_metadata(run_output, "tool_trace", trace.model_dump(by_alias=True))
        logger.info(
            f"Post-hook: Attached tool trace ({len(trace.tools_used)} calls)",
            extra=log_context(run_id=getattr(run_output, "run_id", None)),
        )
    except Exception as e:
        logger.warning(f"Post-hook failed to attach tool trace: {e}")


def get_post_hooks() -> List:
    """Get list of post-hooks based on configuration.

    Returns:
        List of post-hooks to register with an agent in execution order.

    Includes:
        - Recipe parsing (ENABLE_RECIPE_PARSING_HOOK)
        - Tool trace reconstruction (ENABLE_TOOL_TRACE_HOOK)
    """
    hooks: List = []

    if config.ENABLE_RECIPE_PARSING_HOOK:
        hooks.append(parse_recipe_post_hook)
        logger.info("Registered recipe parsing post-hook")

    if config.ENABLE_TOOL_TRACE_HOOK:
        hooks.append(attach_tool_trace_post_hook)
        logger.info("Registered tool trace post-hook")

    return hooks
