"""
Progress & Lookup Tools — read-only views over the run state and the catalog.

checkProgress reports what is left to do, getStoredResearch replays research
already gathered in this run, and getResources / getCategories let the agent
discover ids for foreign keys before saving.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from services import content_service
from state import CONTENT_KINDS
from tools.content_tools import progress_snapshot
from tools.context import ToolContext

_PLURAL = {"blog": "blogs", "article": "articles", "resource": "resources"}


# ---------------------------------------------------------------------------
# checkProgress
# ---------------------------------------------------------------------------

class CheckProgressInput(BaseModel):
    pass


async def check_progress(ctx: ToolContext, args: CheckProgressInput) -> Dict[str, Any]:
    """Summarize requested vs completed counts and the next thing to do."""
    state = ctx.state

    if not state.analysis.complete:
        return {
            "success": True,
            "analysis_complete": False,
            "is_complete": False,
            "message": "analyzeRequest has not been called yet.",
            "next_action": "Call analyzeRequest first to set quantities.",
        }

    kinds = {}
    for kind in CONTENT_KINDS:
        kinds[_PLURAL[kind]] = {
            "requested": state.requested(kind),
            "saved": state.completed_count(kind),
            "remaining": state.remaining(kind),
            "items": [item.summary() for item in state.items[kind]],
        }

    needing_more = state.pending_appends("blog")
    is_complete = state.all_satisfied() and not needing_more
    total_requested = state.total_requested()
    total_completed = state.total_completed()

    if is_complete:
        next_action = "ALL DONE. Stop calling tools and give a brief summary."
    elif needing_more:
        item = needing_more[0]
        next_action = f"Finish blog \"{item.title}\" with appendToBlog(blog_id=\"{item.db_id}\")."
    elif state.remaining("resource"):
        next_action = f"Create {state.remaining('resource')} more resource(s) with saveResource."
    elif state.remaining("blog"):
        next_action = f"Create {state.remaining('blog')} more blog(s) with saveBlog."
    else:
        next_action = f"Create {state.remaining('article')} more article(s) with saveArticle."

    return {
        "success": True,
        "analysis_complete": True,
        **kinds,
        "blogs_needing_more_content": [i.summary() for i in needing_more],
        "total_requested": total_requested,
        "total_completed": total_completed,
        "is_complete": is_complete,
        "research_count": len(state.research),
        "iteration": state.current_iteration,
        "errors": list(state.errors[-5:]),
        "message": f"Progress: {total_completed}/{total_requested} items complete.",
        "next_action": next_action,
    }


# ---------------------------------------------------------------------------
# getStoredResearch
# ---------------------------------------------------------------------------

class GetStoredResearchInput(BaseModel):
    type: Literal["all", "extracted", "crawled", "research"] = Field(
        default="all",
        description="Which stored content to return.",
    )
    url: Optional[str] = Field(default=None, description="Only content for this URL.")
    research_id: Optional[str] = Field(default=None, description="Only content linked to this research id.")
    include_content: bool = Field(
        default=True,
        description="Return full text; false returns lengths only, to save context.",
    )


def _text_or_size(text: str, include_content: bool) -> str:
    return text if include_content else f"[{len(text)} chars]"


async def get_stored_research(ctx: ToolContext, args: GetStoredResearchInput) -> Dict[str, Any]:
    """Return research, extracted text and crawled pages gathered earlier in this run."""
    state = ctx.state
    result: Dict[str, Any] = {"success": True}

    if args.type in ("all", "research"):
        entries = state.research
        if args.research_id:
            entries = [e for e in entries if e.id == args.research_id]
        result["research"] = [
            {
                "id": e.id,
                "query": e.query,
                "type": e.type,
                "result_count": e.result_count,
                "credits_used": e.credits_used,
                "answer": e.answer,
                "results": e.results if args.include_content else [],
                "timestamp": e.timestamp.isoformat(),
            }
            for e in entries
        ]

    if args.type in ("all", "extracted"):
        extracted = state.extracted_content
        if args.url:
            extracted = [e for e in extracted if e.url == args.url]
        if args.research_id:
            extracted = [e for e in extracted if e.research_id == args.research_id]
        result["extracted_content"] = [
            {
                "id": e.id,
                "url": e.url,
                "research_id": e.research_id,
                "raw_text": _text_or_size(e.raw_text, args.include_content),
                "length": len(e.raw_text),
            }
            for e in extracted
        ]

    if args.type in ("all", "crawled"):
        crawls = state.crawled_pages
        if args.url:
            crawls = [c for c in crawls if c.base_url == args.url or any(p.url == args.url for p in c.pages)]
        if args.research_id:
            crawls = [c for c in crawls if c.research_id == args.research_id]
        result["crawled_pages"] = [
            {
                "id": c.id,
                "base_url": c.base_url,
                "research_id": c.research_id,
                "page_count": len(c.pages),
                "pages": [
                    {"url": p.url, "content": _text_or_size(p.content, args.include_content)}
                    for p in c.pages
                ],
            }
            for c in crawls
        ]

    counts: List[str] = []
    for key in ("research", "extracted_content", "crawled_pages"):
        if key in result:
            counts.append(f"{len(result[key])} {key.replace('_', ' ')}")
    result["message"] = "Stored content: " + ", ".join(counts) if counts else "No stored content."
    return result


# ---------------------------------------------------------------------------
# getResources / getCategories
# ---------------------------------------------------------------------------

class GetResourcesInput(BaseModel):
    search: Optional[str] = Field(default=None, description="Match against name or description.")
    category_id: Optional[str] = Field(default=None, description="Only resources in this category.")
    limit: int = Field(default=20, ge=1, le=100)


async def get_resources(ctx: ToolContext, args: GetResourcesInput) -> Dict[str, Any]:
    async with ctx.session_factory() as session:
        resources = await content_service.list_resources(
            session, search=args.search, category_id=args.category_id, limit=args.limit
        )
        rows = [r.to_dict() for r in resources]
    return {
        "success": True,
        "resources": rows,
        "count": len(rows),
        "message": f"Found {len(rows)} resource(s)" if rows else "No resources found",
    }


class GetCategoriesInput(BaseModel):
    type: Literal["content", "resource"] = Field(
        default="content",
        description="Content categories (for blogs/articles) or resource categories.",
    )


async def get_categories(ctx: ToolContext, args: GetCategoriesInput) -> Dict[str, Any]:
    async with ctx.session_factory() as session:
        categories = await content_service.list_categories(session, category_type=args.type)
        rows = [c.to_dict() for c in categories]
    return {
        "success": True,
        "type": args.type,
        "categories": rows,
        "count": len(rows),
    }
