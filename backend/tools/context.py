"""
Tool context — the dependencies every tool handler receives.

A ToolContext bundles the run's OrchestrationState, a session factory for the
content database and the injected external capabilities. Handlers never reach
for module-level singletons; tests build a ToolContext fixture-style.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from state import MAX_CONTENT_CHARS, OrchestrationState


@dataclass
class Capabilities:
    """
    External collaborators the tools call out to.

    Any of them may be None; the corresponding tool then reports the
    capability as unavailable instead of failing the run.
    """

    research_client: Optional[Any] = None
    logo_fetcher: Optional[Any] = None
    og_generator: Optional[Any] = None


@dataclass
class ToolContext:
    state: OrchestrationState
    session_factory: Callable[[], Any]
    capabilities: Capabilities = field(default_factory=Capabilities)
    max_content_chars: int = MAX_CONTENT_CHARS
