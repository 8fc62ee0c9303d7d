"""
Unit tests for the router's continue/stop decisions.

These tests cover the decision order without any LLM or database: the
router is a pure function of the run state and the last turn.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.router import (
    ALL_WORK_SATISFIED,
    COMPLETION_SIGNAL,
    RUNAWAY_OUTPUT,
    STALLED,
    RouterConfig,
    TurnOutput,
    route,
)
from state import REPETITION_PHRASE, create_initial_state


def _state(blogs=0, articles=0, resources=0, analyzed=True):
    state = create_initial_state("author-1", "Create content")
    if analyzed:
        state.analysis.requested = {"blog": blogs, "article": articles, "resource": resources}
        state.analysis.complete = True
        state.refresh_completion_flags()
    return state


def _save(state, kind, title, needs_more=False):
    item = state.track_item(kind, title)
    state.mark_saved(item, f"{kind}-{title}", title.lower(), 100, needs_more_content=needs_more)
    return item


class TestAnalysisGate:
    def test_continue_before_analysis(self):
        state = _state(analyzed=False)
        decision = route(state, TurnOutput(text="Thinking..."), 1)
        assert not decision.should_stop
        assert state.consecutive_text_only_turns == 0

    def test_completion_phrase_ignored_before_analysis(self):
        state = _state(analyzed=False)
        decision = route(state, TurnOutput(text="The task is complete."), 1)
        assert not decision.should_stop


class TestCountBasedCompletion:
    def test_stop_when_all_work_satisfied(self):
        state = _state(blogs=1)
        _save(state, "blog", "Only")
        decision = route(state, TurnOutput(tool_calls=["saveBlog"]), 3)
        assert decision.should_stop
        assert decision.reason == ALL_WORK_SATISFIED

    def test_zero_request_stops_immediately(self):
        state = _state()
        decision = route(state, TurnOutput(tool_calls=["analyzeRequest"]), 1)
        assert decision.should_stop
        assert decision.reason == ALL_WORK_SATISFIED

    def test_pending_append_keeps_running(self):
        state = _state(blogs=1)
        _save(state, "blog", "Long", needs_more=True)
        decision = route(state, TurnOutput(tool_calls=["saveBlog"]), 2)
        assert not decision.should_stop

    def test_satisfied_wins_over_runaway_text(self):
        state = _state(blogs=1)
        _save(state, "blog", "Only")
        text = (REPETITION_PHRASE + ". ") * 10 + "x" * 1000
        decision = route(state, TurnOutput(text=text), 4)
        assert decision.reason == ALL_WORK_SATISFIED


class TestRunawayDetection:
    def test_stop_on_repeated_phrase(self):
        state = _state(blogs=2)
        text = ("I will now end the session. " * 4) + "x" * 1000
        decision = route(state, TurnOutput(text=text, tool_calls=["saveBlog"]), 5)
        assert decision.should_stop
        assert decision.reason == RUNAWAY_OUTPUT

    def test_short_text_is_not_runaway(self):
        state = _state(blogs=2)
        text = "I will now end the session. " * 4
        assert len(text) < 1000
        decision = route(state, TurnOutput(text=text, tool_calls=["saveBlog"]), 5)
        assert not decision.should_stop


class TestTextOnlyTurns:
    def test_tool_calls_reset_counter(self):
        state = _state(blogs=2)
        state.consecutive_text_only_turns = 2
        decision = route(state, TurnOutput(tool_calls=["research"]), 3)
        assert not decision.should_stop
        assert state.consecutive_text_only_turns == 0

    def test_completion_signal_stops(self):
        state = _state(blogs=2)
        decision = route(state, TurnOutput(text="These blogs already exist, so I will not create more."), 2)
        assert decision.should_stop
        assert decision.reason == COMPLETION_SIGNAL

    def test_stalls_after_three_text_only_turns(self):
        """Scenario E: three consecutive text-only turns with work remaining."""
        state = _state(blogs=2)
        _save(state, "blog", "First")

        first = route(state, TurnOutput(text="Let me think about the next post."), 3)
        second = route(state, TurnOutput(text="Still planning."), 4)
        third = route(state, TurnOutput(text="Here is an outline."), 5)

        assert not first.should_stop
        assert not second.should_stop
        assert third.should_stop
        assert third.reason == STALLED
        assert state.consecutive_text_only_turns == 3

    def test_counter_reset_between_text_turns(self):
        state = _state(blogs=2)
        route(state, TurnOutput(text="thinking"), 1)
        route(state, TurnOutput(text="thinking"), 2)
        route(state, TurnOutput(tool_calls=["research"]), 3)
        decision = route(state, TurnOutput(text="thinking"), 4)
        assert not decision.should_stop
        assert state.consecutive_text_only_turns == 1


class TestRouterConfig:
    def test_custom_stall_limit(self):
        state = _state(blogs=1)
        decision = route(state, TurnOutput(text="hmm"), 1, RouterConfig(no_tool_call_limit=1))
        assert decision.reason == STALLED

    def test_custom_completion_signals(self):
        state = _state(blogs=1)
        config = RouterConfig(completion_signals=("fertig",))
        assert route(state, TurnOutput(text="Ich bin fertig"), 1, config).reason == COMPLETION_SIGNAL
        state.consecutive_text_only_turns = 0
        assert not route(state, TurnOutput(text="task is complete"), 2, config).should_stop
