"""Service traces and combined timeline summaries.

A ``ServiceTrace`` bundles the tool telemetry of one generation call (the
recipe call, the nutrition call, ...). ``summarize_traces`` merges several of
them into one timeline with shared bounds and token totals.
"""

from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from recipe_trace.models.models import ServiceTrace, TimelineBar, Timing, TraceSummary, Usage
from recipe_trace.telemetry.timeline import reconstruct_timeline
from recipe_trace.utils.logger import log_context, logger


MIN_BAR_WIDTH_PERCENT = 2.0


def coerce_usage(usage: Any) -> Optional[Usage]:
    """Validate a usage mapping, returning None when absent or unusable."""
    if usage is None or isinstance(usage, Usage):
        return usage
    if not isinstance(usage, dict):
        logger.warning(f"Ignoring usage of type {type(usage).__name__}")
        return None
    try:
        return Usage.model_validate(usage)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed usage: {e.error_count()} validation errors")
        return None


def build_service_trace(
    service: str,
    steps: Any,
    start_time: int,
    end_time: int,
    usage: Any = None,
    model: Optional[str] = None,
    tools_available: Optional[List[str]] = None,
    error: Optional[str] = None,
) -> ServiceTrace:
    """Build the trace of one generation call.

    Args:
        service: Service label shown on the timeline (e.g. "recipe", "nutrition").
        steps: Generation steps as returned by the model call.
        start_time: Epoch milliseconds when the call started.
        end_time: Epoch milliseconds when the call returned.
        usage: Token usage mapping, passed through.
        model: Model identifier.
        tools_available: Names of the tools offered to the model.
        error: Failure message when the call itself failed.

    Returns:
        ServiceTrace with reconstructed tool invocations.
    """
    start_time, end_time = int(start_time), int(end_time)
    duration = max(end_time - start_time, 0)
    tools_used = reconstruct_timeline(steps, start_time, duration)
    trace = ServiceTrace(
        service=service,
        model=model,
        tools_available=list(tools_available or []),
        tools_used=tools_used,
        usage=coerce_usage(usage),
        timing=Timing(start_time=start_time, end_time=end_time, duration=duration),
        error=error,
    )
    logger.info(
        f"Trace built: {len(tools_used)} tool calls, "
        f"{sum(1 for call in tools_used if call.is_error)} errors, {format_duration(duration)}",
        extra=log_context(service=service),
    )
    return trace


def format_duration(duration_ms: float) -> str:
    """Format milliseconds as "850ms" below one second, "1.25s" above."""
    if duration_ms < 1000:
        return f"{int(duration_ms)}ms"
    return f"{duration_ms / 1000:.2f}s"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def summarize_traces(traces: Iterable[Optional[ServiceTrace]]) -> TraceSummary:
    """Merge service traces into one timeline summary.

    ``None`` entries (a service that has not reported yet) are skipped. Bars
    are positioned relative to the earliest start across all traces; offsets
    are clamped to 0-100% and widths to 2-100% so short calls stay visible.
    """
    present = [trace for trace in traces if trace is not None]
    calls = [(trace.service, call) for trace in present for call in trace.tools_used]

    total_tokens = sum(
        trace.usage.total_tokens for trace in present if trace.usage and trace.usage.total_tokens
    )

    if not calls:
        return TraceSummary(services=len(present), total_tokens=total_tokens or None)

    earliest = min(call.start_time for _, call in calls)
    latest = max(call.end_time for _, call in calls)
    span = latest - earliest

    bars = []
    for service, call in calls:
        offset = (call.start_time - earliest) / span * 100 if span > 0 else 0.0
        width = call.duration / span * 100 if span > 0 else 100.0
        bars.append(
            TimelineBar(
                service=service,
                tool_name=call.tool_name,
                start_time=call.start_time,
                end_time=call.end_time,
                duration=call.duration,
                is_error=call.is_error,
                offset_percent=_clamp(offset, 0.0, 100.0),
                width_percent=_clamp(width, MIN_BAR_WIDTH_PERCENT, 100.0),
            )
        )

    return TraceSummary(
        total_tools=len(calls),
        error_count=sum(1 for _, call in calls if call.is_error),
        services=len(present),
        earliest_start=earliest,
        latest_end=latest,
        total_duration=span,
        total_tokens=total_tokens or None,
        bars=bars,
    )
