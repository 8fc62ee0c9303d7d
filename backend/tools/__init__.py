"""Agent tools for ContentOS."""

from .context import Capabilities, ToolContext
from .registry import TOOL_SPECS, ToolRegistry, build_tool_registry, execute_tool_call

__all__ = [
    "Capabilities",
    "ToolContext",
    "TOOL_SPECS",
    "ToolRegistry",
    "build_tool_registry",
    "execute_tool_call",
]
