"""
End-to-end tests for the orchestrator loop with a scripted chat model.

The fake model returns pre-built AIMessages in order, so every test drives
the real graph, tool registry, router and database without any LLM calls.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage
from langgraph.graph import END

from services.orchestrator import (
    build_completion_result,
    execute_run,
    route_after_turn,
    run_content_generation,
    run_progress,
)
from services.router import RouterConfig
from state import GenerationRequest, create_initial_state
from tools.context import Capabilities


class ScriptedLLM:
    """Returns scripted responses in order; plain text once the script runs out."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.bound_tools = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if self.responses:
            return self.responses.pop(0)
        return AIMessage(content="Nothing more to do.")


class FailingLLM(ScriptedLLM):
    async def ainvoke(self, messages):
        raise RuntimeError("provider exploded")


class SlowLLM(ScriptedLLM):
    async def ainvoke(self, messages):
        await asyncio.sleep(10)


def _call(name, args, call_id):
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


def _analyze(blogs=0, articles=0, resources=0):
    return _call(
        "analyzeRequest",
        {"blogs": blogs, "articles": articles, "resources": resources, "reasoning": "explicit"},
        "call-analyze",
    )


def _save_blog(title, call_id):
    return _call(
        "saveBlog",
        {"title": title, "content": f"## {title}\n\nA practical walkthrough of {title}."},
        call_id,
    )


def _request(author, message="Create 2 blogs about Vite"):
    return GenerationRequest(requester_id=author.id, message=message)


class TestSatisfiedRun:
    @pytest.mark.asyncio
    async def test_two_blogs_end_to_end(self, session_factory, author):
        llm = ScriptedLLM([
            _analyze(blogs=2),
            _save_blog("Vite Basics", "call-1"),
            _save_blog("Vite Plugins", "call-2"),
            AIMessage(content="should never be requested"),
        ])

        result, state = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=llm,
        )

        assert result.outcome == "satisfied"
        assert result.success is True
        assert result.truncated is False
        assert result.stop_reason == "all_work_satisfied"
        assert result.iterations_used == 3
        assert [i.title for i in result.saved_items["blogs"]] == ["Vite Basics", "Vite Plugins"]
        assert result.requested == {"blog": 2, "article": 0, "resource": 0}
        assert len(llm.calls) == 3
        assert {t.name for t in llm.bound_tools} >= {"analyzeRequest", "saveBlog"}
        assert [r.tools_called for r in state.iteration_history] == [
            ["analyzeRequest"], ["saveBlog"], ["saveBlog"],
        ]

    @pytest.mark.asyncio
    async def test_first_prompt_carries_author(self, session_factory, author):
        llm = ScriptedLLM([_analyze()])
        result = await run_content_generation(
            _request(author, "Just say hi"),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=llm,
        )
        first_user_message = llm.calls[0][1]
        assert isinstance(first_user_message, HumanMessage)
        assert f"Session Author ID: {author.id}" in first_user_message.content
        assert result.outcome == "satisfied"
        assert result.iterations_used == 1

    @pytest.mark.asyncio
    async def test_tool_results_are_fed_back(self, session_factory, author):
        llm = ScriptedLLM([_analyze(blogs=1), _save_blog("Only One", "call-1")])
        await execute_run(
            _request(author), session_factory=session_factory, capabilities=Capabilities(), llm=llm
        )
        second_turn = llm.calls[1]
        tool_message = second_turn[-1]
        assert tool_message.tool_call_id == "call-analyze"
        assert '"requested_blogs": 1' in tool_message.content


class TestTruncatedRuns:
    @pytest.mark.asyncio
    async def test_stalled_run_is_partial(self, session_factory, author):
        llm = ScriptedLLM([
            _analyze(blogs=2),
            _save_blog("Vite Basics", "call-1"),
            AIMessage(content="Let me plan the second post."),
            AIMessage(content="Still planning."),
            AIMessage(content="Here is an outline."),
        ])

        result, state = await execute_run(
            _request(author), session_factory=session_factory, capabilities=Capabilities(), llm=llm
        )

        assert result.outcome == "partial"
        assert result.success is True
        assert result.truncated is True
        assert result.stop_reason == "stalled"
        assert len(result.saved_items["blogs"]) == 1
        assert state.consecutive_text_only_turns == 3

    @pytest.mark.asyncio
    async def test_text_turn_gets_continuation_prompt(self, session_factory, author):
        llm = ScriptedLLM([
            _analyze(blogs=1),
            AIMessage(content="Thinking about it."),
            _save_blog("Late Post", "call-1"),
        ])
        result, _ = await execute_run(
            _request(author), session_factory=session_factory, capabilities=Capabilities(), llm=llm
        )
        nudge = llm.calls[2][-1]
        assert isinstance(nudge, HumanMessage)
        assert "Still to create: 1 blog(s)." in nudge.content
        assert result.outcome == "satisfied"

    @pytest.mark.asyncio
    async def test_iteration_cap(self, session_factory, author):
        llm = ScriptedLLM([
            _analyze(blogs=1),
            _call("checkProgress", {}, "call-1"),
            _call("checkProgress", {}, "call-2"),
        ])
        result, state = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=llm,
            max_iterations=2,
        )
        assert result.stop_reason == "max_iterations"
        assert result.truncated is True
        assert result.outcome == "partial"
        assert result.iterations_used == 2
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_completion_signal(self, session_factory, author):
        llm = ScriptedLLM([
            _analyze(blogs=1),
            AIMessage(content="These posts already exist, so I will not create more."),
        ])
        result, _ = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=llm,
            router_config=RouterConfig(),
        )
        assert result.stop_reason == "completion_signal"
        assert result.outcome == "partial"

    @pytest.mark.asyncio
    async def test_timeout(self, session_factory, author):
        result, _ = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=SlowLLM([]),
            timeout=0.05,
        )
        assert result.stop_reason == "timeout"
        assert result.truncated is True
        assert result.outcome == "partial"


class TestFailedRuns:
    @pytest.mark.asyncio
    async def test_unknown_model_fails_to_start(self, session_factory, author):
        result, state = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            model_name="no-such-model",
        )
        assert state is None
        assert result.outcome == "failed_to_start"
        assert result.success is False
        assert "Unknown model" in result.errors[0]

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_to_start(self, session_factory, author, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr("agents.orchestrator_agent._llm_cache", {})
        result = await run_content_generation(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            model_name="gpt-4o",
        )
        assert result.outcome == "failed_to_start"
        assert "OPENAI_API_KEY" in result.errors[0]

    @pytest.mark.asyncio
    async def test_llm_error_aborts(self, session_factory, author):
        result, state = await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=FailingLLM([]),
            run_id="run-abort",
        )
        assert result.outcome == "aborted"
        assert result.success is False
        assert result.run_id == "run-abort"
        assert "provider exploded" in result.errors[-1]
        assert state.stop_reason == "aborted"


class TestProgressReporting:
    @pytest.mark.asyncio
    async def test_callback_sees_every_iteration(self, session_factory, author):
        snapshots = []
        llm = ScriptedLLM([
            _analyze(blogs=2),
            _save_blog("Vite Basics", "call-1"),
            _save_blog("Vite Plugins", "call-2"),
        ])

        await execute_run(
            _request(author),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=llm,
            progress_callback=snapshots.append,
        )

        assert [s["phase"] for s in snapshots] == ["starting", "creating", "creating", "creating"]
        assert [s["iteration"] for s in snapshots] == [0, 1, 2, 3]
        assert snapshots[1]["current_step"] == "Iteration 1: analyzeRequest"
        assert [s["progress"]["blogs"]["completed"] for s in snapshots] == [0, 0, 1, 2]
        assert snapshots[-1]["progress"]["blogs"]["requested"] == 2
        assert snapshots[-1]["progress"]["articles"] == {"completed": 0, "requested": 0}

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, session_factory, author):
        seen = []

        async def callback(snapshot):
            seen.append(snapshot["current_step"])

        await run_content_generation(
            _request(author, "Just say hi"),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=ScriptedLLM([_analyze()]),
            progress_callback=callback,
        )
        assert seen == [None, "Iteration 1: analyzeRequest"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_abort_run(self, session_factory, author):
        def callback(snapshot):
            raise RuntimeError("store unavailable")

        result, _ = await execute_run(
            _request(author, "Create 1 blog about Vite"),
            session_factory=session_factory,
            capabilities=Capabilities(),
            llm=ScriptedLLM([_analyze(blogs=1), _save_blog("Vite Basics", "call-1")]),
            progress_callback=callback,
        )
        assert result.outcome == "satisfied"

    def test_phase_before_analysis(self):
        state = create_initial_state("author-1", "Create a blog")
        snapshot = run_progress(state, current_step="Iteration 1: research")
        assert snapshot["phase"] == "analyzing"
        assert snapshot["progress"]["resources"] == {"completed": 0, "requested": 0}


class TestCompletionResult:
    def test_pending_append_is_not_satisfied(self):
        state = create_initial_state("author-1", "Write a long blog")
        state.analysis.requested = {"blog": 1, "article": 0, "resource": 0}
        state.analysis.complete = True
        item = state.track_item("blog", "Long")
        state.mark_saved(item, "db-1", "long", 30_000, needs_more_content=True)
        state.stop_reason = "stalled"

        result = build_completion_result(state, started=0.0)

        assert result.outcome == "partial"
        assert result.truncated is True
        assert result.saved_items["blogs"][0].needs_more_content is True

    def test_route_after_turn(self):
        assert route_after_turn({"messages": [], "iteration": 1, "decision": "continue"}) == "orchestrator"
        assert route_after_turn({"messages": [], "iteration": 1, "decision": "stop"}) == END
