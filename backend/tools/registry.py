"""
Tool Registry — the fixed tool set exposed to the orchestrator agent.

Each ToolSpec pairs a camelCase tool name (the name the model sees) with a
pydantic input schema and an async handler. build_tool_registry binds every
spec to one run's ToolContext and produces LangChain StructuredTools for
.bind_tools(). execute_tool_call is the single dispatch point used by the
driver: it validates arguments, runs the handler, times it and records a
ToolCallRecord on the run state. It never raises.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Type

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ValidationError

from state import ToolCallRecord
from tools import assets, content_tools, progress_tools, research
from tools.context import ToolContext

logger = logging.getLogger(__name__)

# Tool inputs are logged truncated to this many characters per value
_LOG_VALUE_CHARS = 100


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_schema: Type[BaseModel]
    handler: Callable[[ToolContext, Any], Awaitable[Dict[str, Any]]]


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        "analyzeRequest",
        "MUST be called FIRST. Record how many blogs, articles and resources the user "
        "asked for. Explicit numbers win; a bare singular means 1; unmentioned types are 0. "
        "Call exactly once.",
        content_tools.AnalyzeRequestInput,
        content_tools.analyze_request,
    ),
    ToolSpec(
        "research",
        "Research a topic on the web (1 credit). Optionally add a GitHub search, extract "
        "one URL's full text, or crawl a documentation site. Results are stored in the run.",
        research.ResearchInput,
        research.research,
    ),
    ToolSpec(
        "getStoredResearch",
        "Read research, extracted page text or crawled pages gathered earlier in this run "
        "without fetching again.",
        progress_tools.GetStoredResearchInput,
        progress_tools.get_stored_research,
    ),
    ToolSpec(
        "checkProgress",
        "Show requested vs saved counts per content type and what to do next.",
        progress_tools.CheckProgressInput,
        progress_tools.check_progress,
    ),
    ToolSpec(
        "fetchAndUploadLogo",
        "Find a resource's logo in its GitHub repository and upload it. Call before "
        "saveResource and pass the returned logo_url.",
        assets.FetchLogoInput,
        assets.fetch_and_upload_logo,
    ),
    ToolSpec(
        "getResources",
        "List existing resources to find a resource_id.",
        progress_tools.GetResourcesInput,
        progress_tools.get_resources,
    ),
    ToolSpec(
        "getCategories",
        "List content or resource categories to find a category_id.",
        progress_tools.GetCategoriesInput,
        progress_tools.get_categories,
    ),
    ToolSpec(
        "getBlogs",
        "List existing blogs, optionally filtered by resource, search text or status. "
        "Use before updateBlog.",
        content_tools.GetBlogsInput,
        content_tools.get_blogs,
    ),
    ToolSpec(
        "saveBlog",
        "Save ONE blog post. Only content is required; title, excerpt, SEO fields and tags "
        "are derived when omitted. Each call needs a UNIQUE title. Content over 30000 "
        "characters must be split: set has_more_content=true and continue with appendToBlog.",
        content_tools.SaveBlogInput,
        content_tools.save_blog,
    ),
    ToolSpec(
        "appendToBlog",
        "Append more content to a blog saved with has_more_content=true. Set "
        "is_last_part=true on the final part.",
        content_tools.AppendToBlogInput,
        content_tools.append_to_blog,
    ),
    ToolSpec(
        "updateBlog",
        "Change an existing blog's title, excerpt, content, tags, SEO fields, resource "
        "or status. Does not count toward the number of blogs to create.",
        content_tools.UpdateBlogInput,
        content_tools.update_blog,
    ),
    ToolSpec(
        "saveArticle",
        "Save ONE technical article. title, excerpt, content and author_id are required; "
        "articles must belong to a resource.",
        content_tools.SaveArticleInput,
        content_tools.save_article,
    ),
    ToolSpec(
        "saveResource",
        "Save ONE resource (tool, library or framework). Later blogs and articles "
        "default to the resource created here.",
        content_tools.SaveResourceInput,
        content_tools.save_resource,
    ),
]


def _make_coroutine(spec: ToolSpec, ctx: ToolContext) -> Callable[..., Awaitable[Dict[str, Any]]]:
    async def run(**kwargs: Any) -> Dict[str, Any]:
        return await spec.handler(ctx, spec.args_schema(**kwargs))

    run.__name__ = spec.name
    return run


class ToolRegistry:
    """The tool set bound to one run's ToolContext."""

    def __init__(self, ctx: ToolContext, specs: List[ToolSpec]) -> None:
        self.ctx = ctx
        self.specs: Dict[str, ToolSpec] = {spec.name: spec for spec in specs}
        self.tools = [
            StructuredTool.from_function(
                coroutine=_make_coroutine(spec, ctx),
                name=spec.name,
                description=spec.description,
                args_schema=spec.args_schema,
            )
            for spec in specs
        ]

    @property
    def names(self) -> List[str]:
        return list(self.specs)


def build_tool_registry(ctx: ToolContext) -> ToolRegistry:
    return ToolRegistry(ctx, TOOL_SPECS)


def _loggable(args: Dict[str, Any]) -> Dict[str, Any]:
    loggable = {}
    for key, value in args.items():
        text = value if isinstance(value, str) else repr(value)
        if len(text) > _LOG_VALUE_CHARS:
            text = text[:_LOG_VALUE_CHARS] + "..."
        loggable[key] = text
    return loggable


async def execute_tool_call(
    registry: ToolRegistry,
    name: str,
    args: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Validate and run one tool call, returning its structured result.

    Unknown tools, invalid arguments and unexpected handler exceptions all
    become {"success": False, "error": ...}; the run state records every call.
    """
    state = registry.ctx.state
    started = time.monotonic()
    spec = registry.specs.get(name)

    if spec is None:
        result = {
            "success": False,
            "error": f"Unknown tool '{name}'. Available tools: {', '.join(registry.names)}",
        }
    else:
        try:
            parsed = spec.args_schema(**(args or {}))
        except ValidationError as exc:
            result = {
                "success": False,
                "error": f"Invalid arguments for {name}: {exc.errors(include_url=False)}",
            }
        else:
            try:
                result = await spec.handler(registry.ctx, parsed)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Tool %s raised", name)
                state.record_error(f"{name}: {exc}")
                result = {"success": False, "error": f"{name} failed: {exc}"}

    duration_ms = int((time.monotonic() - started) * 1000)
    success = bool(result.get("success", False))
    state.tool_calls.append(
        ToolCallRecord(
            tool=name,
            input=_loggable(args or {}),
            success=success,
            duration_ms=duration_ms,
        )
    )
    logger.info("[%s] %s (%dms)", name, "✓" if success else "✗", duration_ms)
    return result
