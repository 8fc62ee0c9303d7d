"""Tests for the research tool with a mocked Tavily-backed client."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from tools.context import Capabilities
from tools.research import ResearchInput, TavilyResearchClient, create_research_client, research


def _search_response(n=2, answer="Short answer"):
    return {
        "answer": answer,
        "results": [
            {"title": f"Result {i}", "url": f"https://example.com/{i}", "content": f"snippet {i}", "score": 0.9}
            for i in range(n)
        ],
    }


def _client(search=None, extract=None, crawl=None):
    client = MagicMock()
    client.search = AsyncMock(side_effect=search or (lambda *a, **k: _search_response()))
    client.extract = AsyncMock(return_value=extract)
    client.crawl = AsyncMock(return_value=crawl or [])
    return client


class TestResearchUnavailable:
    @pytest.mark.asyncio
    async def test_no_client_still_records_entry(self, ctx):
        result = await research(ctx, ResearchInput(topic="Vite"))
        assert result["success"] is False
        assert "not configured" in result["message"]
        assert len(ctx.state.research) == 1
        assert ctx.state.research[0].credits_used == 0

    def test_factory_without_api_key(self, monkeypatch):
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)
        assert create_research_client() is None

    def test_factory_with_api_key(self, monkeypatch):
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-test")
        with patch("tools.research.AsyncTavilyClient") as mock_cls:
            client = create_research_client()
        assert isinstance(client, TavilyResearchClient)
        mock_cls.assert_called_once_with(api_key="tvly-test")


class TestResearchCredits:
    @pytest.mark.asyncio
    async def test_plain_search_costs_one_credit(self, ctx):
        ctx.capabilities = Capabilities(research_client=_client())
        result = await research(ctx, ResearchInput(topic="Vite"))
        assert result["success"] is True
        assert result["credits_used"] == 1.0
        assert len(result["results"]) == 2
        assert result["answer"] == "Short answer"
        assert ctx.state.research[0].type == "general"

    @pytest.mark.asyncio
    async def test_github_search_adds_one_credit(self, ctx):
        client = _client()
        ctx.capabilities = Capabilities(research_client=client)
        result = await research(ctx, ResearchInput(topic="Vite", include_github=True))
        assert result["credits_used"] == 2.0
        assert len(result["github_results"]) == 2
        assert client.search.await_count == 2
        assert ctx.state.research[0].type == "github"

    @pytest.mark.asyncio
    async def test_extract_is_stored(self, ctx):
        ctx.capabilities = Capabilities(research_client=_client(extract="Full page text"))
        result = await research(
            ctx, ResearchInput(topic="Vite", extract_url="https://vitejs.dev/guide")
        )
        assert result["credits_used"] == 1.2
        assert result["raw_text_content"] == "Full page text"
        stored = ctx.state.extracted_content[0]
        assert stored.url == "https://vitejs.dev/guide"
        assert stored.research_id == result["research_id"]

    @pytest.mark.asyncio
    async def test_crawl_charges_per_page(self, ctx):
        pages = [{"url": f"https://vitejs.dev/p{i}", "content": f"page {i}"} for i in range(3)]
        client = _client(crawl=pages)
        ctx.capabilities = Capabilities(research_client=client)
        result = await research(
            ctx,
            ResearchInput(topic="Vite", crawl_url="https://vitejs.dev", max_crawl_pages=3),
        )
        assert result["credits_used"] == 3.6
        assert result["crawl_page_count"] == 3
        assert ctx.state.crawled_pages[0].base_url == "https://vitejs.dev"
        assert len(ctx.state.crawled_pages[0].pages) == 3
        assert ctx.state.research[0].type == "docs"
        client.crawl.assert_awaited_once_with("https://vitejs.dev", 3, None)

    @pytest.mark.asyncio
    async def test_total_credits_accumulate(self, ctx):
        ctx.capabilities = Capabilities(research_client=_client())
        await research(ctx, ResearchInput(topic="Vite"))
        result = await research(ctx, ResearchInput(topic="Vitest", include_github=True))
        assert result["total_credits_used"] == 3.0

    def test_crawl_page_limit_is_validated(self):
        with pytest.raises(ValueError):
            ResearchInput(topic="Vite", max_crawl_pages=26)


class TestResearchFailures:
    @pytest.mark.asyncio
    async def test_search_failure_is_reported(self, ctx):
        def boom(*args, **kwargs):
            raise RuntimeError("quota exceeded")

        ctx.capabilities = Capabilities(research_client=_client(search=boom))
        result = await research(ctx, ResearchInput(topic="Vite"))
        assert result["success"] is False
        assert "quota exceeded" in result["message"]
        assert len(ctx.state.research) == 1

    @pytest.mark.asyncio
    async def test_crawl_failure_keeps_search_results(self, ctx):
        client = _client()
        client.crawl = AsyncMock(side_effect=RuntimeError("crawl blocked"))
        ctx.capabilities = Capabilities(research_client=client)
        result = await research(ctx, ResearchInput(topic="Vite", crawl_url="https://vitejs.dev"))
        assert result["success"] is True
        assert result["crawl_page_count"] == 0
        assert result["credits_used"] == 1.0
        assert ctx.state.crawled_pages == []

    @pytest.mark.asyncio
    async def test_extract_failure_keeps_search_results(self, ctx):
        client = _client()
        client.extract = AsyncMock(side_effect=RuntimeError("extract timed out"))
        ctx.capabilities = Capabilities(research_client=client)
        result = await research(
            ctx, ResearchInput(topic="Vite", extract_url="https://vitejs.dev/guide")
        )
        assert result["success"] is True
        assert len(result["results"]) == 2
        assert result["raw_text_content"] is None
        assert result["credits_used"] == 1.0
        assert ctx.state.extracted_content == []

    @pytest.mark.asyncio
    async def test_github_failure_keeps_search_results(self, ctx):
        def search(query, **kwargs):
            if query.startswith("site:github.com"):
                raise RuntimeError("rate limited")
            return _search_response()

        ctx.capabilities = Capabilities(research_client=_client(search=search))
        result = await research(ctx, ResearchInput(topic="Vite", include_github=True))
        assert result["success"] is True
        assert len(result["results"]) == 2
        assert result["github_results"] == []
        assert result["credits_used"] == 1.0
