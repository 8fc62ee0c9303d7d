"""
Research Tool — Tavily search, extract and crawl, recorded into the run state.

Every invocation appends one ResearchEntry. Extracted page text and crawled
pages are additionally stored in their own caches, linked back to the
research id, so later turns can read them through getStoredResearch without
fetching again.

Credits follow Tavily's pricing for the calls made:
    search 1, GitHub search +1, extract +0.2, crawl 2 + 0.2 per page.
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from tavily import AsyncTavilyClient

from state import CrawledPage, CrawlEntry, ExtractedContent, ResearchEntry
from tools.context import ToolContext

logger = logging.getLogger(__name__)

MAX_CRAWL_PAGES = 25

SEARCH_CREDITS = 1.0
GITHUB_CREDITS = 1.0
EXTRACT_CREDITS = 0.2
CRAWL_BASE_CREDITS = 2.0
CRAWL_PAGE_CREDITS = 0.2


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------

class TavilyResearchClient:
    """Thin async wrapper over Tavily's search, extract and crawl endpoints."""

    def __init__(self, api_key: str) -> None:
        self._client = AsyncTavilyClient(api_key=api_key)

    async def search(self, query: str, max_results: int = 5, include_answer: bool = False) -> dict:
        return await self._client.search(
            query=query,
            search_depth="basic",
            max_results=max_results,
            include_answer=include_answer,
        )

    async def extract(self, url: str) -> Optional[str]:
        response = await self._client.extract(urls=[url], extract_depth="basic")
        results = response.get("results", [])
        if not results:
            return None
        return results[0].get("raw_content")

    async def crawl(
        self,
        url: str,
        limit: int,
        instructions: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        kwargs: Dict[str, Any] = {"max_depth": 1, "limit": limit}
        if instructions:
            kwargs["instructions"] = instructions
        response = await self._client.crawl(url, **kwargs)
        return [
            {"url": r.get("url", ""), "content": r.get("raw_content") or ""}
            for r in response.get("results", [])
        ]


def create_research_client() -> Optional[TavilyResearchClient]:
    """Factory that returns a research client if Tavily is configured."""
    api_key = os.environ.get("TAVILY_API_KEY")
    if api_key:
        return TavilyResearchClient(api_key)
    return None


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------

class ResearchInput(BaseModel):
    topic: str = Field(..., min_length=1, description="The topic to research.")
    include_github: bool = Field(
        default=False,
        description="Add a GitHub search (+1 credit) when code examples are needed.",
    )
    extract_url: Optional[str] = Field(
        default=None,
        description="URL whose full raw text should be extracted (+0.2 credits).",
    )
    crawl_url: Optional[str] = Field(
        default=None,
        description="Base URL of a documentation site to crawl (2 credits + 0.2 per page).",
    )
    crawl_instructions: Optional[str] = Field(
        default=None,
        description="What to look for while crawling, e.g. 'find all API reference pages'.",
    )
    max_crawl_pages: int = Field(
        default=5,
        ge=1,
        le=MAX_CRAWL_PAGES,
        description="Maximum pages to crawl (1-25).",
    )


def _format_results(response: Optional[dict]) -> List[Dict[str, Any]]:
    if not response:
        return []
    return [
        {
            "title": r.get("title", "No title"),
            "url": r.get("url", ""),
            "snippet": r.get("content", ""),
            "score": r.get("score"),
        }
        for r in response.get("results", [])
    ]


def _research_type(args: ResearchInput) -> str:
    if args.crawl_url:
        return "docs"
    if args.include_github:
        return "github"
    if args.extract_url:
        return "web"
    return "general"


async def research(ctx: ToolContext, args: ResearchInput) -> Dict[str, Any]:
    """Search the web for a topic, optionally adding GitHub, extract and crawl."""
    state = ctx.state
    client = ctx.capabilities.research_client
    started = time.monotonic()

    if client is None:
        entry = ResearchEntry(query=args.topic, type=_research_type(args))
        state.research.append(entry)
        return {
            "success": False,
            "topic": args.topic,
            "research_id": entry.id,
            "results": [],
            "credits_used": 0,
            "message": "Tavily API key not configured. Proceeding with existing knowledge.",
        }

    calls = [client.search(f"{args.topic} documentation guide tutorial", max_results=5, include_answer=True)]
    credits = SEARCH_CREDITS
    if args.include_github:
        calls.append(client.search(f"site:github.com {args.topic}", max_results=3))
        credits += GITHUB_CREDITS
    if args.extract_url:
        calls.append(client.extract(args.extract_url))
        credits += EXTRACT_CREDITS

    responses = await asyncio.gather(*calls, return_exceptions=True)
    main_response = responses[0]
    if isinstance(main_response, Exception):
        exc = main_response
        logger.warning("Research failed for %r: %s", args.topic, exc)
        entry = ResearchEntry(query=args.topic, type=_research_type(args))
        state.research.append(entry)
        return {
            "success": False,
            "topic": args.topic,
            "research_id": entry.id,
            "results": [],
            "credits_used": 0,
            "message": f"Research failed: {exc}. Proceeding with existing knowledge.",
        }

    # Secondary lookups are optional; a failed one is dropped and not billed
    github_response = responses[1] if args.include_github else None
    if isinstance(github_response, Exception):
        logger.warning("GitHub search failed for %r: %s", args.topic, github_response)
        github_response = None
        credits -= GITHUB_CREDITS
    extracted_text = responses[-1] if args.extract_url else None
    if isinstance(extracted_text, Exception):
        logger.warning("Extract of %s failed: %s", args.extract_url, extracted_text)
        extracted_text = None
        credits -= EXTRACT_CREDITS

    results = _format_results(main_response)
    github_results = _format_results(github_response)

    crawl_pages: List[Dict[str, str]] = []
    if args.crawl_url:
        limit = min(args.max_crawl_pages, MAX_CRAWL_PAGES)
        logger.warning("Crawling %s (up to %d pages) costs extra credits", args.crawl_url, limit)
        try:
            crawl_pages = await client.crawl(args.crawl_url, limit, args.crawl_instructions)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Crawl of %s failed: %s", args.crawl_url, exc)
            crawl_pages = []
        if crawl_pages:
            credits += CRAWL_BASE_CREDITS + CRAWL_PAGE_CREDITS * len(crawl_pages)

    entry = ResearchEntry(
        query=args.topic,
        type=_research_type(args),
        results=results,
        github_results=github_results,
        answer=main_response.get("answer"),
        result_count=len(results) + len(github_results) + len(crawl_pages),
        credits_used=round(credits, 2),
        duration_ms=int((time.monotonic() - started) * 1000),
        extracted_url=args.extract_url,
        crawl_url=args.crawl_url,
        crawl_page_count=len(crawl_pages),
    )
    state.research.append(entry)

    if args.extract_url and extracted_text:
        state.extracted_content.append(
            ExtractedContent(url=args.extract_url, raw_text=extracted_text, research_id=entry.id)
        )
    if args.crawl_url and crawl_pages:
        state.crawled_pages.append(
            CrawlEntry(
                base_url=args.crawl_url,
                pages=[CrawledPage(**page) for page in crawl_pages],
                research_id=entry.id,
            )
        )

    total_credits = round(sum(r.credits_used for r in state.research), 2)
    logger.info(
        "Research for %r: %d results in %dms (%.1f credits)",
        args.topic, entry.result_count, entry.duration_ms, entry.credits_used,
    )

    parts = [f"Found {len(results)} web results"]
    if github_results:
        parts.append(f"{len(github_results)} GitHub results")
    if extracted_text:
        parts.append(f"extracted raw text from {args.extract_url} (stored in state)")
    if crawl_pages:
        parts.append(f"crawled {len(crawl_pages)} pages from {args.crawl_url} (stored in state)")

    return {
        "success": True,
        "topic": args.topic,
        "research_id": entry.id,
        "results": results,
        "github_results": github_results,
        "answer": entry.answer,
        "raw_text_content": extracted_text,
        "raw_text_url": args.extract_url,
        "crawl_results": crawl_pages or None,
        "crawl_page_count": len(crawl_pages),
        "credits_used": entry.credits_used,
        "total_credits_used": total_credits,
        "stored_content": {
            "extracted_urls": [e.url for e in state.extracted_content],
            "crawled_sites": [
                {"base_url": c.base_url, "page_count": len(c.pages)} for c in state.crawled_pages
            ],
        },
        "message": (
            f"Research complete for \"{args.topic}\". {', '.join(parts)}. "
            f"Credits this call: {entry.credits_used}. "
            "All content is stored in state; use getStoredResearch to read it again."
        ),
    }
