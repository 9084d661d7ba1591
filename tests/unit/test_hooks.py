"""Unit tests for Agno post-hooks and run adapters."""

import json
from types import SimpleNamespace

import pytest

from recipe_trace.hooks import hooks
from recipe_trace.hooks.hooks import (
    attach_tool_trace_post_hook,
    duration_ms_from_metrics,
    get_post_hooks,
    parse_recipe_post_hook,
    steps_from_messages,
    trace_from_run_output,
    usage_from_metrics,
)


RECIPE_MARKDOWN = "## Pancakes\n### Ingredients\n- 1 cup flour\n### Instructions\n1. Whisk\n"


def assistant(*calls):
    return {
        "role": "assistant",
        "tool_calls": [
            {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(args)}}
            for call_id, name, args in calls
        ],
    }


def tool_reply(call_id, content, failed=False):
    return SimpleNamespace(role="tool", tool_call_id=call_id, content=content, tool_call_error=failed)


MESSAGES = [
    {"role": "system", "content": "You are a chef"},
    {"role": "user", "content": "eggs and flour"},
    assistant(("c1", "find_recipes_by_ingredients", {"ingredients": "eggs,flour"})),
    tool_reply("c1", '{"results": [{"id": 1, "title": "Pancakes"}]}'),
    assistant(("c2", "get_recipe_information", {"id": 1}), ("c3", "get_nutrition", {"id": 1})),
    tool_reply("c2", '{"title": "Pancakes"}'),
    tool_reply("c3", "Spoonacular quota exhausted", failed=True),
    {"role": "assistant", "content": RECIPE_MARKDOWN},
]


def make_run(**overrides):
    fields = {
        "run_id": "run-1",
        "content": RECIPE_MARKDOWN,
        "messages": MESSAGES,
        "metrics": SimpleNamespace(input_tokens=100, output_tokens=40, total_tokens=140, duration=0.5),
        "created_at": 1_700_000_000,
        "model": "gemini-2.5-flash",
        "metadata": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestStepsFromMessages:
    """Test grouping of run messages into generation steps."""

    def test_one_step_per_tool_requesting_assistant_message(self):
        steps = steps_from_messages(MESSAGES)

        assert len(steps) == 2
        assert [c["tool_name"] for c in steps[1]["tool_calls"]] == ["get_recipe_information", "get_nutrition"]

    def test_tool_replies_attached_and_decoded(self):
        steps = steps_from_messages(MESSAGES)

        assert steps[0]["tool_results"][0]["tool_call_id"] == "c1"
        assert steps[0]["tool_results"][0]["result"] == {"results": [{"id": 1, "title": "Pancakes"}]}

    def test_failed_tool_reply_flagged_with_message(self):
        failed = steps_from_messages(MESSAGES)[1]["tool_results"][1]

        assert failed["is_error"] is True
        assert failed["message"] == "Spoonacular quota exhausted"

    def test_orphan_tool_message_ignored(self):
        assert steps_from_messages([tool_reply("x", "data")]) == []

    def test_none_messages(self):
        assert steps_from_messages(None) == []


class TestMetrics:
    """Test usage and duration extraction from Agno metrics."""

    def test_usage_mapping(self):
        metrics = SimpleNamespace(input_tokens=10, output_tokens=5, total_tokens=15)
        assert usage_from_metrics(metrics) == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}

    def test_usage_absent(self):
        assert usage_from_metrics(None) is None
        assert usage_from_metrics({}) is None

    @pytest.mark.parametrize(
        "metrics,expected",
        [
            (SimpleNamespace(duration=1.5), 1500),
            ({"time_taken_seconds": 0.25}, 250),
            (SimpleNamespace(duration=None), 0),
            (None, 0),
        ],
    )
    def test_duration(self, metrics, expected):
        assert duration_ms_from_metrics(metrics) == expected


class TestTraceFromRunOutput:
    """Test building a ServiceTrace from an agent run."""

    def test_trace_timeline(self):
        trace = trace_from_run_output(make_run(), service="recipe")
        start = 1_700_000_000_000

        assert trace.service == "recipe"
        assert trace.model == "gemini-2.5-flash"
        assert trace.timing.start_time == start
        assert trace.timing.duration == 500
        assert [(c.tool_name, c.start_time - start, c.end_time - start) for c in trace.tools_used] == [
            ("find_recipes_by_ingredients", 0, 250),
            ("get_recipe_information", 250, 375),
            ("get_nutrition", 375, 500),
        ]
        assert [c.is_error for c in trace.tools_used] == [False, False, True]
        assert trace.tools_used[2].error == "Spoonacular quota exhausted"
        assert trace.tools_used[0].args == {"ingredients": "eggs,flour"}
        assert trace.usage.total_tokens == 140

    def test_default_service_name(self):
        trace = trace_from_run_output(make_run())
        assert trace.service == hooks.config.TRACE_SERVICE_NAME


class TestPostHooks:
    """Test post-hooks store results in run metadata without raising."""

    def test_parse_recipe_post_hook(self):
        run = make_run()
        parse_recipe_post_hook(run)

        parsed = run.metadata["parsed_recipe"]
        assert parsed["title"] == "Pancakes"
        assert parsed["ingredients"] == ["- 1 cup flour"]
        assert "prepTime" in parsed

    def test_parse_recipe_from_structured_content(self):
        run = make_run(content=SimpleNamespace(response=RECIPE_MARKDOWN), metadata={"existing": 1})
        parse_recipe_post_hook(run)

        assert run.metadata["existing"] == 1
        assert run.metadata["parsed_recipe"]["title"] == "Pancakes"

    def test_parse_recipe_skips_empty_content(self):
        run = make_run(content=None)
        parse_recipe_post_hook(run)
        assert run.metadata is None

    def test_attach_tool_trace_post_hook(self):
        run = make_run()
        attach_tool_trace_post_hook(run)

        trace = run.metadata["tool_trace"]
        assert len(trace["toolsUsed"]) == 3
        assert trace["toolsUsed"][2]["isError"] is True

    def test_post_hook_failure_is_swallowed(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(hooks, "trace_from_run_output", boom)
        run = make_run()

        attach_tool_trace_post_hook(run)

        assert run.metadata is None


class TestGetPostHooks:
    """Test hook registration follows configuration."""

    def test_all_enabled(self, monkeypatch):
        monkeypatch.setattr(hooks.config, "ENABLE_RECIPE_PARSING_HOOK", True)
        monkeypatch.setattr(hooks.config, "ENABLE_TOOL_TRACE_HOOK", True)

        assert get_post_hooks() == [parse_recipe_post_hook, attach_tool_trace_post_hook]

    def test_trace_disabled(self, monkeypatch):
        monkeypatch.setattr(hooks.config, "ENABLE_RECIPE_PARSING_HOOK", True)
        monkeypatch.setattr(hooks.config, "ENABLE_TOOL_TRACE_HOOK", False)

        assert get_post_hooks() == [parse_recipe_post_hook]

    def test_all_disabled(self, monkeypatch):
        monkeypatch.setattr(hooks.config, "ENABLE_RECIPE_PARSING_HOOK", False)
        monkeypatch.setattr(hooks.config, "ENABLE_TOOL_TRACE_HOOK", False)

        assert get_post_hooks() == []
