#!/usr/bin/env python3
"""Ad hoc inspection of model output.

Parse a markdown recipe (and optionally a tool trace) from files without
running any model.

Usage:
    python query.py recipe.md
    python query.py --json recipe.md                # camelCase JSON instead of tables
    python query.py --trace run.json recipe.md      # also reconstruct the tool timeline
    python query.py --trace run.json                # timeline only
    python query.py --nutrition reply.txt           # parse a nutrition-analysis reply

Trace files hold one run or a list of runs:
    {"service": "nutrition", "model": "gpt-4o-mini", "startTime": 1700000000000,
     "endTime": 1700000003000, "steps": [...], "usage": {...}}
"""

import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from recipe_trace.models.models import ParsedRecipe, ServiceTrace, TraceSummary
from recipe_trace.parsing.markdown import blocks_to_text, render_markdown, strip_list_marker
from recipe_trace.parsing.nutrition import parse_nutrition_response
from recipe_trace.parsing.recipe_parser import parse_recipe
from recipe_trace.telemetry.payloads import stringify_payload
from recipe_trace.telemetry.trace import build_service_trace, format_duration, summarize_traces
from recipe_trace.utils.config import config
from recipe_trace.utils.logger import logger

console = Console()


def load_traces(path: Path) -> List[ServiceTrace]:
    """Read one run or a list of runs from a JSON trace file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    runs = data if isinstance(data, list) else [data]

    traces = []
    for index, run in enumerate(runs):
        start = run.get("startTime", run.get("start_time", 0))
        end = run.get("endTime", run.get("end_time"))
        if end is None:
            end = start + run.get("durationMs", run.get("duration_ms", 0))
        traces.append(
            build_service_trace(
                service=run.get("service", f"{config.TRACE_SERVICE_NAME}-{index}" if index else config.TRACE_SERVICE_NAME),
                steps=run.get("steps", []),
                start_time=start,
                end_time=end,
                usage=run.get("usage"),
                model=run.get("model"),
                tools_available=run.get("toolsAvailable", run.get("tools_available")),
            )
        )
    return traces


def print_recipe(recipe: ParsedRecipe) -> None:
    """Print a parsed recipe as panels."""
    meta = [
        f"{label}: {value}"
        for label, value in (
            ("Prep", recipe.prep_time),
            ("Cook", recipe.cook_time),
            ("Total", recipe.total_time),
            ("Serves", recipe.servings),
        )
        if value
    ]
    header = "\n".join(filter(None, [recipe.description, " | ".join(meta)]))
    console.print(Panel(header or "[dim]No description[/dim]", title=recipe.title or "Untitled recipe"))

    sections = (
        ("Ingredients", recipe.ingredients),
        ("Instructions", [f"{n}. {strip_list_marker(step)}" for n, step in enumerate(recipe.instructions, start=1)]),
        ("Tips", recipe.tips),
        ("Variations", recipe.variations),
        ("Seasonal Additions", recipe.seasonal_additions),
    )
    for title, lines in sections:
        if lines:
            console.print(Panel(blocks_to_text(render_markdown("\n".join(lines))), title=title))

    if recipe.nutrition_info:
        table = Table(title="Nutrition")
        table.add_column("Nutrient")
        table.add_column("Amount", justify="right")
        for field, value in recipe.nutrition_info.model_dump(exclude={"highlights"}).items():
            if value is not None:
                table.add_row(field, str(value))
        console.print(table)
        if recipe.nutrition_info.highlights:
            console.print(f"[italic]{recipe.nutrition_info.highlights}[/italic]")


def print_trace(traces: List[ServiceTrace], summary: TraceSummary, debug: bool = False) -> None:
    """Print the combined tool timeline."""
    tokens = f"{summary.total_tokens:,}" if summary.total_tokens else "N/A"
    console.print(
        f"[bold]Tools:[/bold] {summary.total_tools}  "
        f"[bold]Errors:[/bold] {summary.error_count}  "
        f"[bold]Duration:[/bold] {format_duration(summary.total_duration)}  "
        f"[bold]Services:[/bold] {summary.services}  "
        f"[bold]Tokens:[/bold] {tokens}"
    )

    table = Table(title="Tool Timeline")
    table.add_column("Service")
    table.add_column("Tool")
    table.add_column("Start", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    for bar in summary.bars:
        status = "[red]error[/red]" if bar.is_error else "[green]ok[/green]"
        table.add_row(
            bar.service,
            bar.tool_name,
            f"+{bar.start_time - (summary.earliest_start or 0)}ms",
            format_duration(bar.duration),
            status,
        )
    console.print(table)

    for trace in traces:
        for call in trace.tools_used:
            if call.is_error:
                console.print(f"[red]✗ {trace.service}/{call.tool_name}:[/red] {call.error}")
            elif debug:
                console.print(Panel(stringify_payload(call.result), title=f"{trace.service}/{call.tool_name}"))


def run(
    recipe_path: Optional[str],
    trace_path: Optional[str] = None,
    nutrition_path: Optional[str] = None,
    as_json: bool = False,
    debug: bool = False,
) -> None:
    """Parse the given files and print the result."""
    output: dict[str, Any] = {}
    try:
        if recipe_path:
            recipe = parse_recipe(Path(recipe_path).read_text(encoding="utf-8"))
            output["recipe"] = recipe.model_dump(by_alias=True)
            if not as_json:
                print_recipe(recipe)

        if nutrition_path:
            analysis = parse_nutrition_response(Path(nutrition_path).read_text(encoding="utf-8"))
            output["nutrition"] = analysis.model_dump(by_alias=True)
            if not as_json:
                console.print_json(data=output["nutrition"])

        if trace_path:
            traces = load_traces(Path(trace_path))
            summary = summarize_traces(traces)
            output["traces"] = [trace.model_dump(by_alias=True) for trace in traces]
            output["summary"] = summary.model_dump(by_alias=True)
            if not as_json:
                print_trace(traces, summary, debug=debug)

        if as_json:
            console.print_json(data=output, default=str)

    except FileNotFoundError as e:
        console.print(f"[red]✗ Error: File not found: {e.filename}[/red]")
        sys.exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Error: Trace file is not valid JSON: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Inspection failed: {e}", exc_info=True)
        sys.exit(1)


USAGE = 'Usage: python query.py [--json] [--debug] [--trace RUN.json] [--nutrition REPLY.txt] [RECIPE.md]'


if __name__ == "__main__":
    as_json = config.OUTPUT_FORMAT == "json"
    debug_mode = False
    trace_file = None
    nutrition_file = None
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        flag = sys.argv[argv_start]
        if flag == "--json":
            as_json = True
            argv_start += 1
        elif flag == "--debug":
            debug_mode = True
            argv_start += 1
        elif flag in ("--trace", "--nutrition"):
            argv_start += 1
            if argv_start >= len(sys.argv):
                print(f"Error: {flag} flag requires a file path")
                sys.exit(1)
            if flag == "--trace":
                trace_file = sys.argv[argv_start]
            else:
                nutrition_file = sys.argv[argv_start]
            argv_start += 1
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)

    recipe_file = sys.argv[argv_start] if argv_start < len(sys.argv) else None
    if not (recipe_file or trace_file or nutrition_file):
        print(USAGE)
        sys.exit(1)

    run(recipe_file, trace_path=trace_file, nutrition_path=nutrition_file, as_json=as_json, debug=debug_mode)
