"""
Orchestrator — the agent loop driver for one content-generation run.

Graph topology:
    orchestrator ──(continue)──> orchestrator
                 └─(stop)──────> END

The single "orchestrator" node is one iteration: call the LLM with the
conversation so far, execute its tool calls one after another, record the
iteration, and ask the router whether to go on. The node writes its decision
into the graph state; route_after_turn only reads it back.

run_content_generation wraps the graph with author resolution, a hard
iteration cap and a wall-clock timeout, and always returns a CompletionResult.
Callers that poll a run can pass a progress_callback to receive a
run_progress snapshot once at start and after every iteration.
"""

import asyncio
import inspect
import json
import logging
import operator
import time
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, TypedDict

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.graph import END, StateGraph
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from agents.orchestrator_agent import (
    SYSTEM_PROMPT,
    CapabilityUnavailableError,
    build_continuation_prompt,
    build_prompt,
    get_orchestrator_llm,
    message_text,
)
from services import content_service
from services.router import RouterConfig, TurnOutput, route
from state import (
    CONTENT_KINDS,
    MAX_ITERATIONS,
    RUN_TIMEOUT_SECONDS,
    GenerationRequest,
    OrchestrationState,
    create_initial_state,
)
from tools.assets import create_default_asset_capabilities
from tools.context import Capabilities, ToolContext
from tools.registry import ToolRegistry, build_tool_registry, execute_tool_call
from tools.research import create_research_client

logger = logging.getLogger(__name__)

Outcome = Literal["satisfied", "partial", "failed_to_start", "aborted"]

_PLURAL = {"blog": "blogs", "article": "articles", "resource": "resources"}


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

class SavedItem(BaseModel):
    db_id: str
    title: str
    slug: Optional[str] = None
    needs_more_content: bool = False


class CompletionResult(BaseModel):
    """What a caller gets back from a run, whatever happened during it."""

    success: bool
    outcome: Outcome
    run_id: Optional[str] = None
    saved_items: Dict[str, List[SavedItem]] = Field(
        default_factory=lambda: {plural: [] for plural in _PLURAL.values()}
    )
    requested: Dict[str, int] = Field(default_factory=dict)
    duration_ms: int = 0
    iterations_used: int = 0
    errors: List[str] = Field(default_factory=list)
    truncated: bool = False
    stop_reason: Optional[str] = None
    message: str = ""


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _failed_to_start(error: str, started: float, run_id: Optional[str]) -> CompletionResult:
    logger.error("Run %s failed to start: %s", run_id, error)
    return CompletionResult(
        success=False,
        outcome="failed_to_start",
        run_id=run_id,
        duration_ms=_elapsed_ms(started),
        errors=[error],
        stop_reason="failed_to_start",
        message=f"Run could not start: {error}",
    )


ProgressCallback = Callable[[Dict[str, Any]], Any]


def run_progress(
    state: OrchestrationState,
    phase: Optional[str] = None,
    current_step: Optional[str] = None,
) -> Dict[str, Any]:
    """Live snapshot of a run for pollers: phase, last step and per-kind counters."""
    if phase is None:
        phase = "creating" if state.analysis.complete else "analyzing"
    return {
        "phase": phase,
        "current_step": current_step,
        "iteration": state.current_iteration,
        "progress": {
            _PLURAL[kind]: {
                "completed": state.completed_count(kind),
                "requested": state.requested(kind),
            }
            for kind in CONTENT_KINDS
        },
    }


async def _report_progress(callback: Optional[ProgressCallback], snapshot: Dict[str, Any]) -> None:
    if callback is None:
        return
    try:
        outcome = callback(snapshot)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as exc:  # noqa: BLE001
        logger.warning("Progress callback failed: %s", exc)


def build_completion_result(
    state: OrchestrationState,
    started: float,
    aborted: bool = False,
) -> CompletionResult:
    """Summarize a finished (or interrupted) run from its state."""
    saved = {
        _PLURAL[kind]: [
            SavedItem(
                db_id=item.db_id,
                title=item.title,
                slug=item.slug,
                needs_more_content=item.needs_more_content,
            )
            for item in state.saved_items(kind)
        ]
        for kind in CONTENT_KINDS
    }

    satisfied = (
        state.analysis.complete
        and state.all_satisfied()
        and not state.pending_appends("blog")
    )
    if aborted:
        outcome = "aborted"
    elif satisfied:
        outcome = "satisfied"
    else:
        outcome = "partial"

    total_requested = state.total_requested()
    total_completed = state.total_completed()
    if outcome == "satisfied":
        message = f"Created {total_completed}/{total_requested} requested items."
    elif outcome == "aborted":
        message = f"Run aborted after creating {total_completed}/{total_requested} items."
    else:
        message = (
            f"Run stopped ({state.stop_reason}) with {total_completed}/{total_requested} "
            "requested items complete."
        )

    return CompletionResult(
        success=outcome in ("satisfied", "partial"),
        outcome=outcome,
        run_id=state.run_id,
        saved_items=saved,
        requested=dict(state.analysis.requested),
        duration_ms=_elapsed_ms(started),
        iterations_used=state.current_iteration,
        errors=list(state.errors),
        truncated=state.truncated or outcome == "partial",
        stop_reason=state.stop_reason,
        message=message,
    )


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

class GraphState(TypedDict):
    messages: Annotated[List[BaseMessage], operator.add]
    iteration: int
    decision: str


def route_after_turn(graph_state: GraphState) -> str:
    """
    Conditional edge function: loop back to the orchestrator or finish.

    Returns:
        "orchestrator" if the node decided to continue, END otherwise.
    """
    if graph_state.get("decision") == "continue":
        return "orchestrator"
    return END


def build_orchestrator_graph(
    llm: Any,
    registry: ToolRegistry,
    state: OrchestrationState,
    router_config: Optional[RouterConfig] = None,
    max_iterations: int = MAX_ITERATIONS,
    progress_callback: Optional[ProgressCallback] = None,
) -> Any:
    """
    Build and compile the single-node agent loop for one run.

    Args:
        llm:            A chat model with the registry's tools already bound.
        registry:       The run's tool registry (bound to the same state).
        state:          The run's OrchestrationState.
        router_config:  Optional thresholds for the router heuristics.
        max_iterations: Hard cap on iterations; reaching it truncates the run.
        progress_callback: Optional sync or async callable that receives a
                        run_progress snapshot after every iteration.

    Returns:
        A compiled LangGraph StateGraph.
    """

    async def orchestrator_node(graph_state: GraphState) -> dict:
        iteration = graph_state["iteration"] + 1
        response = await llm.ainvoke(graph_state["messages"])

        new_messages: List[BaseMessage] = [response]
        called: List[str] = []
        for tool_call in getattr(response, "tool_calls", None) or []:
            name = tool_call["name"]
            result = await execute_tool_call(registry, name, tool_call.get("args") or {})
            called.append(name)
            new_messages.append(
                ToolMessage(
                    content=json.dumps(result, default=str),
                    tool_call_id=tool_call["id"],
                    name=name,
                )
            )

        state.record_iteration(iteration, called)
        decision = route(
            state,
            TurnOutput(text=message_text(response), tool_calls=called),
            iteration,
            router_config,
        )

        if decision.should_stop:
            state.stop_reason = decision.reason
            next_step = "stop"
        elif iteration >= max_iterations:
            logger.warning("Run %s hit the iteration cap (%d)", state.run_id, max_iterations)
            state.stop_reason = "max_iterations"
            state.truncated = True
            next_step = "stop"
        else:
            if not called:
                new_messages.append(build_continuation_prompt(state))
            next_step = "continue"

        step = f"Iteration {iteration}: " + (", ".join(called) if called else "no tool calls")
        await _report_progress(progress_callback, run_progress(state, current_step=step))
        return {"messages": new_messages, "iteration": iteration, "decision": next_step}

    orchestrator_node.__name__ = "orchestrator"

    graph = StateGraph(GraphState)
    graph.add_node("orchestrator", orchestrator_node)
    graph.set_entry_point("orchestrator")
    graph.add_conditional_edges(
        "orchestrator",
        route_after_turn,
        {
            "orchestrator": "orchestrator",
            END: END,
        },
    )
    return graph.compile()


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

def default_capabilities() -> Capabilities:
    """Tavily research (when configured) plus local asset storage."""
    logo_fetcher, og_generator = create_default_asset_capabilities()
    return Capabilities(
        research_client=create_research_client(),
        logo_fetcher=logo_fetcher,
        og_generator=og_generator,
    )


def _default_session_factory() -> Callable[[], Any]:
    from database import async_session

    return async_session


async def execute_run(
    request: GenerationRequest,
    session_factory: Optional[Callable[[], Any]] = None,
    capabilities: Optional[Capabilities] = None,
    llm: Any = None,
    model_name: Optional[str] = None,
    max_iterations: int = MAX_ITERATIONS,
    timeout: float = RUN_TIMEOUT_SECONDS,
    router_config: Optional[RouterConfig] = None,
    run_id: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> Tuple[CompletionResult, Optional[OrchestrationState]]:
    """
    Run one generation request to completion.

    Returns the CompletionResult and the final OrchestrationState (None when
    the run failed to start).
    """
    started = time.monotonic()
    session_factory = session_factory or _default_session_factory()
    capabilities = capabilities or default_capabilities()

    try:
        if llm is None:
            llm = get_orchestrator_llm(model_name)
        async with session_factory() as session:
            user = await content_service.resolve_user(
                session,
                request.requester_id,
                email=request.requester_email,
                name=request.requester_name,
            )
            author_id = user.id
    except CapabilityUnavailableError as exc:
        return _failed_to_start(str(exc), started, run_id), None
    except SQLAlchemyError as exc:
        return _failed_to_start(f"Could not resolve author: {exc}", started, run_id), None

    state = create_initial_state(
        author_id,
        request.message,
        thread_id=request.thread_id,
        run_id=run_id,
        max_iterations=max_iterations,
    )
    registry = build_tool_registry(ToolContext(state, session_factory, capabilities))
    graph = build_orchestrator_graph(
        llm.bind_tools(registry.tools),
        registry,
        state,
        router_config=router_config,
        max_iterations=max_iterations,
        progress_callback=progress_callback,
    )
    initial: GraphState = {
        "messages": [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=build_prompt(request, author_id)),
        ],
        "iteration": 0,
        "decision": "",
    }

    logger.info("Run %s started for author %s", state.run_id, author_id)
    await _report_progress(progress_callback, run_progress(state, phase="starting"))
    aborted = False
    try:
        await asyncio.wait_for(
            graph.ainvoke(initial, config={"recursion_limit": max_iterations + 5}),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Run %s timed out after %.0fs", state.run_id, timeout)
        state.stop_reason = "timeout"
        state.truncated = True
    except Exception as exc:  # noqa: BLE001
        logger.exception("Run %s aborted", state.run_id)
        state.record_error(f"Run aborted: {exc}")
        state.stop_reason = "aborted"
        aborted = True

    result = build_completion_result(state, started, aborted=aborted)
    logger.info(
        "Run %s finished: %s (%s) in %d iterations, %dms",
        state.run_id, result.outcome, result.stop_reason, result.iterations_used, result.duration_ms,
    )
    return result, state


async def run_content_generation(
    request: GenerationRequest,
    session_factory: Optional[Callable[[], Any]] = None,
    capabilities: Optional[Capabilities] = None,
    llm: Any = None,
    model_name: Optional[str] = None,
    max_iterations: int = MAX_ITERATIONS,
    timeout: float = RUN_TIMEOUT_SECONDS,
    router_config: Optional[RouterConfig] = None,
    run_id: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> CompletionResult:
    """Execute a full generation run and return its CompletionResult."""
    result, _ = await execute_run(
        request,
        session_factory=session_factory,
        capabilities=capabilities,
        llm=llm,
        model_name=model_name,
        max_iterations=max_iterations,
        timeout=timeout,
        router_config=router_config,
        run_id=run_id,
        progress_callback=progress_callback,
    )
    return result
