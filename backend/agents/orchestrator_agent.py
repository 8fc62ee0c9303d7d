"""
Orchestrator Agent — prompts and chat model for the content-generation loop.

The agent is a tool-calling chat model. It sees the system prompt below, one
user prompt built from the GenerationRequest, and then the growing
conversation of its own turns and tool results. Stopping is not its call:
the router decides after every turn.
"""

import os
from typing import Any, Dict, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from state import GenerationRequest, OrchestrationState

DEFAULT_MODEL = os.environ.get("CONTENT_MODEL", "claude-3-5-sonnet")


class CapabilityUnavailableError(RuntimeError):
    """A required external capability (LLM provider, API key) is not available."""


SYSTEM_PROMPT = """You are the content orchestrator for a developer-education site.
You create blogs, articles and resources by calling tools. You never write
content into the chat; content only exists once a save tool has stored it.

Workflow:
1. Call analyzeRequest FIRST, exactly once. Count only what the user asked for:
   explicit numbers win, "a blog" means 1, types that are not mentioned are 0.
2. Call research before writing about a topic. Use getStoredResearch to reread
   what you already gathered instead of researching again.
3. Create resources first (fetchAndUploadLogo, then saveResource). Blogs and
   articles created afterwards link to that resource automatically.
4. Create exactly the requested number of blogs (saveBlog) and articles
   (saveArticle), one call per item, every item with a unique title.
5. A blog longer than 30000 characters is saved in parts: saveBlog with
   has_more_content=true, then appendToBlog until is_last_part=true.
6. To change an existing blog use getBlogs and updateBlog; updates do not
   count as new content.

Tool results tell you what remains. When a result says a limit is reached or
everything is complete, stop creating that type. Use checkProgress whenever
you are unsure what is left. Write complete, accurate, well-structured MDX
with headings and code examples where they help."""


def build_prompt(request: GenerationRequest, author_id: str) -> str:
    """Build the first user message for a run."""
    lines = [
        f"User Request: {request.message}",
        "",
        "IMPORTANT: Call analyzeRequest FIRST to determine how many blogs, "
        "articles and resources to create.",
    ]

    if request.content_type_hint:
        lines.append(f"Content Type Hint: {request.content_type_hint}")

    context = request.context
    if context is not None:
        labels = (
            ("topic", "Topic"),
            ("instructions", "Additional Instructions"),
            ("audience", "Target Audience"),
            ("tone", "Tone"),
            ("word_count", "Target Word Count"),
            ("resource_id", "Resource ID"),
            ("category_id", "Category ID"),
            ("difficulty", "Difficulty"),
            ("resource_name", "Resource Name"),
            ("official_url", "Official URL"),
            ("docs_url", "Documentation URL"),
            ("github_url", "GitHub URL"),
        )
        for field_name, label in labels:
            value = getattr(context, field_name)
            if value:
                lines.append(f"{label}: {value}")

    lines.append("")
    lines.append(f"Session Author ID: {author_id} (use this for author_id in save tools)")
    return "\n".join(lines)


def build_continuation_prompt(state: OrchestrationState) -> HumanMessage:
    """Nudge sent after a text-only turn that did not end the run."""
    if not state.analysis.complete:
        return HumanMessage(
            content="You have not called analyzeRequest yet. Call it now, then continue with tools."
        )

    remaining = []
    for kind in ("resource", "blog", "article"):
        count = state.remaining(kind)
        if count:
            remaining.append(f"{count} {kind}(s)")
    pending = state.pending_appends("blog")

    parts = ["Work is not finished."]
    if remaining:
        parts.append(f"Still to create: {', '.join(remaining)}.")
    if pending:
        parts.append(
            "Blogs waiting for more content: "
            + ", ".join(f"\"{i.title}\" (blog_id={i.db_id})" for i in pending)
            + "."
        )
    parts.append("Continue by calling the appropriate tool.")
    return HumanMessage(content=" ".join(parts))


# ---------------------------------------------------------------------------
# LLM factory: maps model names to LangChain chat models
# ---------------------------------------------------------------------------

_MODEL_MAP = {
    "claude-3-5-sonnet": (
        "ANTHROPIC_API_KEY",
        lambda api_key: ChatAnthropic(
            model="claude-3-5-sonnet-20241022",
            api_key=api_key,
            temperature=0.7,
            max_tokens=8192,
        ),
    ),
    "gpt-4o": (
        "OPENAI_API_KEY",
        lambda api_key: ChatOpenAI(
            model="gpt-4o",
            api_key=api_key,
            temperature=0.7,
            max_tokens=8192,
        ),
    ),
}

_llm_cache: Dict[str, Any] = {}


def get_orchestrator_llm(model_name: Optional[str] = None) -> Any:
    """
    Return the chat model for model_name, creating it on first use.

    Raises:
        CapabilityUnavailableError: unknown model name or missing API key.
    """
    model_name = model_name or DEFAULT_MODEL
    if model_name in _llm_cache:
        return _llm_cache[model_name]

    entry = _MODEL_MAP.get(model_name)
    if entry is None:
        raise CapabilityUnavailableError(
            f"Unknown model '{model_name}'. Supported models: {list(_MODEL_MAP.keys())}"
        )

    env_var, factory = entry
    api_key = os.environ.get(env_var)
    if not api_key:
        raise CapabilityUnavailableError(f"{env_var} is not set; cannot use model '{model_name}'.")

    llm = factory(api_key)
    _llm_cache[model_name] = llm
    return llm


def message_text(message: Any) -> str:
    """Plain text of an AI message whose content may be a list of blocks."""
    content = getattr(message, "content", "")
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "\n".join(parts)
