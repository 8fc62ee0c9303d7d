"""Agent prompts and chat models for ContentOS."""

from .orchestrator_agent import (
    SYSTEM_PROMPT,
    CapabilityUnavailableError,
    build_continuation_prompt,
    build_prompt,
    get_orchestrator_llm,
    message_text,
)

__all__ = [
    "SYSTEM_PROMPT",
    "CapabilityUnavailableError",
    "build_continuation_prompt",
    "build_prompt",
    "get_orchestrator_llm",
    "message_text",
]
