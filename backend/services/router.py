"""
Router — decides after every agent turn whether the run continues or stops.

The router is the only place that ends a run (the driver adds a hard
iteration cap and a wall-clock timeout on top). It is a pure function of the
run state and the turn that just finished; the only state it touches is the
consecutive_text_only_turns counter.

Decision order:
    1. analysis not done              → continue
    2. every kind satisfied           → stop  (all_work_satisfied)
    3. runaway repetition in the text → stop  (runaway_output)
    4. tool calls present             → reset counter, continue
       text only:
         a. all requested items saved → stop  (all_work_satisfied)
         b. completion phrase in text → stop  (completion_signal)
         c. counter hits the limit    → stop  (stalled)
         d. otherwise                 → continue
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from state import (
    COMPLETION_SIGNALS,
    NO_TOOL_CALL_LIMIT,
    REPETITION_LIMIT,
    REPETITION_MIN_LENGTH,
    REPETITION_PHRASE,
    OrchestrationState,
)

logger = logging.getLogger(__name__)

CONTINUE = "continue"
STOP = "stop"

ALL_WORK_SATISFIED = "all_work_satisfied"
RUNAWAY_OUTPUT = "runaway_output"
COMPLETION_SIGNAL = "completion_signal"
STALLED = "stalled"


@dataclass
class RouterConfig:
    """Thresholds for the text heuristics; defaults come from the environment."""

    no_tool_call_limit: int = NO_TOOL_CALL_LIMIT
    repetition_phrase: str = REPETITION_PHRASE
    repetition_limit: int = REPETITION_LIMIT
    repetition_min_length: int = REPETITION_MIN_LENGTH
    completion_signals: Tuple[str, ...] = COMPLETION_SIGNALS


@dataclass
class TurnOutput:
    """What the agent produced in one turn."""

    text: str = ""
    tool_calls: List[str] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class RouteDecision:
    action: str
    reason: str

    @property
    def should_stop(self) -> bool:
        return self.action == STOP


def _continue(reason: str) -> RouteDecision:
    return RouteDecision(CONTINUE, reason)


def _stop(reason: str) -> RouteDecision:
    return RouteDecision(STOP, reason)


def is_runaway(text: str, config: RouterConfig) -> bool:
    if len(text) <= config.repetition_min_length:
        return False
    return text.lower().count(config.repetition_phrase) > config.repetition_limit


def has_completion_signal(text: str, config: RouterConfig) -> bool:
    lowered = text.lower()
    return any(signal in lowered for signal in config.completion_signals)


def route(
    state: OrchestrationState,
    last_turn: TurnOutput,
    iteration: int,
    config: Optional[RouterConfig] = None,
) -> RouteDecision:
    """
    Decide whether the run continues after the turn that just finished.

    Count-based completion is checked before any text heuristic, so a run
    whose work is done always stops as satisfied.
    """
    config = config or RouterConfig()

    if not state.analysis.complete:
        decision = _continue("analysis_pending")
    elif state.all_satisfied():
        decision = _stop(ALL_WORK_SATISFIED)
    elif is_runaway(last_turn.text, config):
        decision = _stop(RUNAWAY_OUTPUT)
    elif last_turn.has_tool_calls:
        state.consecutive_text_only_turns = 0
        decision = _continue("tool_calls")
    else:
        total_requested = state.total_requested()
        if state.total_completed() >= total_requested:
            decision = _stop(ALL_WORK_SATISFIED)
        elif has_completion_signal(last_turn.text, config):
            decision = _stop(COMPLETION_SIGNAL)
        else:
            state.consecutive_text_only_turns += 1
            if state.consecutive_text_only_turns >= config.no_tool_call_limit:
                decision = _stop(STALLED)
            else:
                decision = _continue("text_only")

    logger.info(
        "Run %s iteration %d: %s (%s), %d/%d complete",
        state.run_id, iteration, decision.action, decision.reason,
        state.total_completed(), state.total_requested(),
    )
    return decision
