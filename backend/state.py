"""
OrchestrationState — the run-scoped aggregate shared by the router and every tool.

One OrchestrationState exists per generation run. The driver creates it, hands
the same object to every tool handler and to the router, and discards it (or
persists a snapshot of it) once the run ends. Tools mutate it only through the
helper methods below so that counts, flags and multi-part bookkeeping stay in
step with each other.
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


ContentKind = Literal["blog", "article", "resource"]
ItemStatus = Literal["pending", "drafting", "saved", "failed"]
ResearchType = Literal["docs", "github", "web", "general"]

CONTENT_KINDS = ("blog", "article", "resource")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Hard cap on agent turns per run
MAX_ITERATIONS = int(os.environ.get("CONTENT_MAX_ITERATIONS", "100"))

# Wall-clock budget for a whole run, in seconds
RUN_TIMEOUT_SECONDS = float(os.environ.get("CONTENT_RUN_TIMEOUT", "1800"))

# Consecutive text-only turns tolerated before the router forces a stop
NO_TOOL_CALL_LIMIT = int(os.environ.get("ROUTER_NO_TOOL_CALL_LIMIT", "3"))

# Runaway detection: stock phrase, how often it may repeat, minimum text length
REPETITION_PHRASE = "i will now end the session"
REPETITION_LIMIT = int(os.environ.get("ROUTER_REPETITION_LIMIT", "3"))
REPETITION_MIN_LENGTH = 1000

COMPLETION_SIGNALS = (
    "end the session",
    "task is complete",
    "will not create",
    "already exist",
    "duplicates",
    "content is already available",
    "request has been fulfilled",
)

# Quantity clamps applied by analyzeRequest
MAX_ITEMS_PER_KIND = 10
MAX_TOTAL_ITEMS = 10

# Largest content body accepted by a single saveBlog / appendToBlog call
MAX_CONTENT_CHARS = 30_000


# ---------------------------------------------------------------------------
# Inbound request
# ---------------------------------------------------------------------------

class GenerationContext(BaseModel):
    """Optional structured hints attached to a generation request."""

    model_config = {"frozen": True}

    topic: Optional[str] = None
    instructions: Optional[str] = None
    audience: Optional[str] = None
    tone: Optional[str] = None
    word_count: Optional[int] = Field(default=None, ge=1)
    resource_id: Optional[str] = None
    category_id: Optional[str] = None
    difficulty: Optional[Literal["BEGINNER", "INTERMEDIATE", "ADVANCED"]] = None
    resource_name: Optional[str] = None
    official_url: Optional[str] = None
    docs_url: Optional[str] = None
    github_url: Optional[str] = None


class GenerationRequest(BaseModel):
    """Immutable input for one generation run."""

    model_config = {"frozen": True}

    requester_id: str = Field(..., min_length=1)
    requester_email: Optional[str] = None
    requester_name: Optional[str] = None
    thread_id: Optional[str] = None
    message: str = Field(
        ...,
        min_length=1,
        max_length=10_000,
        description="Natural-language description of the content to create.",
        examples=["Create 2 blog posts about React Server Components."],
    )
    content_type_hint: Optional[ContentKind] = None
    context: Optional[GenerationContext] = None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class ContentItem(BaseModel):
    """In-run tracking entry for one blog, article or resource."""

    tracking_id: str
    kind: ContentKind
    title: str
    status: ItemStatus = "pending"
    saved: bool = False
    db_id: Optional[str] = None
    slug: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    saved_at: Optional[datetime] = None
    needs_more_content: bool = False
    content_parts: int = 0
    total_content_length: int = 0
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.saved and not self.needs_more_content

    def summary(self) -> Dict[str, Any]:
        return {
            "tracking_id": self.tracking_id,
            "db_id": self.db_id,
            "title": self.title,
            "slug": self.slug,
            "status": self.status,
            "saved": self.saved,
            "needs_more_content": self.needs_more_content,
            "content_parts": self.content_parts,
            "total_content_length": self.total_content_length,
        }


class ResearchEntry(BaseModel):
    id: str = Field(default_factory=lambda: _new_id("research"))
    query: str
    type: ResearchType = "general"
    results: List[Dict[str, Any]] = Field(default_factory=list)
    github_results: List[Dict[str, Any]] = Field(default_factory=list)
    answer: Optional[str] = None
    result_count: int = 0
    credits_used: float = 0.0
    duration_ms: int = 0
    extracted_url: Optional[str] = None
    crawl_url: Optional[str] = None
    crawl_page_count: int = 0
    timestamp: datetime = Field(default_factory=_now)


class ExtractedContent(BaseModel):
    id: str = Field(default_factory=lambda: _new_id("extracted"))
    url: str
    raw_text: str
    research_id: str
    extracted_at: datetime = Field(default_factory=_now)


class CrawledPage(BaseModel):
    url: str
    content: str = ""


class CrawlEntry(BaseModel):
    id: str = Field(default_factory=lambda: _new_id("crawl"))
    base_url: str
    pages: List[CrawledPage] = Field(default_factory=list)
    research_id: str
    crawled_at: datetime = Field(default_factory=_now)


class IterationRecord(BaseModel):
    iteration: int
    tools_called: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)


class ToolCallRecord(BaseModel):
    tool: str
    input: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    duration_ms: int = 0
    timestamp: datetime = Field(default_factory=_now)


class Analysis(BaseModel):
    complete: bool = False
    requested: Dict[str, int] = Field(
        default_factory=lambda: {kind: 0 for kind in CONTENT_KINDS}
    )
    reasoning: str = ""


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class OrchestrationState(BaseModel):
    """
    The mutable state of one generation run.

    Fields:
        analysis:           Requested counts per kind, set once by analyzeRequest.
        items:              Ordered ContentItem lists keyed by kind.
        research:           Append-only log of research invocations.
        extracted_content:  Raw page text fetched during research, keyed by URL.
        crawled_pages:      Crawl results, linked back to a research id.
        iteration_history:  One record per agent turn.
        completion_flags:   Per-kind shortcut for "all requested items are done".
        created_resource_id:
                            The last resource saved in this run; used as the
                            default resource for later blogs and articles.
        last_created_blog_id:
                            Fallback target for appendToBlog.
        consecutive_text_only_turns:
                            Router bookkeeping for stall prevention.
    """

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    author_id: str
    thread_id: Optional[str] = None
    message: str = ""

    analysis: Analysis = Field(default_factory=Analysis)
    items: Dict[str, List[ContentItem]] = Field(
        default_factory=lambda: {kind: [] for kind in CONTENT_KINDS}
    )
    research: List[ResearchEntry] = Field(default_factory=list)
    extracted_content: List[ExtractedContent] = Field(default_factory=list)
    crawled_pages: List[CrawlEntry] = Field(default_factory=list)
    iteration_history: List[IterationRecord] = Field(default_factory=list)
    completion_flags: Dict[str, bool] = Field(
        default_factory=lambda: {kind: False for kind in CONTENT_KINDS}
    )

    created_resource_id: Optional[str] = None
    created_resource_name: Optional[str] = None
    last_created_blog_id: Optional[str] = None
    last_created_blog_title: Optional[str] = None

    consecutive_text_only_turns: int = 0
    current_iteration: int = 0
    max_iterations: int = MAX_ITERATIONS
    errors: List[str] = Field(default_factory=list)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_now)
    stop_reason: Optional[str] = None
    truncated: bool = False

    # -- counts -------------------------------------------------------------

    def requested(self, kind: str) -> int:
        return self.analysis.requested.get(kind, 0)

    def saved_count(self, kind: str) -> int:
        """Items persisted at least once, including ones still awaiting appends."""
        return sum(1 for item in self.items[kind] if item.saved)

    def completed_count(self, kind: str) -> int:
        """Items persisted and finalized; the only count that satisfies a request."""
        return sum(1 for item in self.items[kind] if item.is_complete)

    def remaining(self, kind: str) -> int:
        return max(self.requested(kind) - self.completed_count(kind), 0)

    def total_requested(self) -> int:
        return sum(self.requested(kind) for kind in CONTENT_KINDS)

    def total_completed(self) -> int:
        return sum(self.completed_count(kind) for kind in CONTENT_KINDS)

    def kind_satisfied(self, kind: str) -> bool:
        return (
            self.completion_flags.get(kind, False)
            or self.completed_count(kind) >= self.requested(kind)
        )

    def all_satisfied(self) -> bool:
        return all(self.kind_satisfied(kind) for kind in CONTENT_KINDS)

    def pending_appends(self, kind: str = "blog") -> List[ContentItem]:
        return [item for item in self.items[kind] if item.saved and item.needs_more_content]

    # -- lookups ------------------------------------------------------------

    def find_item(self, kind: str, tracking_id: str) -> Optional[ContentItem]:
        for item in self.items[kind]:
            if item.tracking_id == tracking_id:
                return item
        return None

    def find_by_db_id(self, kind: str, db_id: str) -> Optional[ContentItem]:
        for item in self.items[kind]:
            if item.db_id == db_id:
                return item
        return None

    def find_title(self, kind: str, title: str) -> Optional[ContentItem]:
        """Case-insensitive title match, ignoring items whose save failed."""
        normalized = normalize_title(title)
        for item in self.items[kind]:
            if item.status != "failed" and normalize_title(item.title) == normalized:
                return item
        return None

    # -- mutations ----------------------------------------------------------

    def track_item(self, kind: str, title: str) -> ContentItem:
        item = ContentItem(
            tracking_id=_new_id(kind),
            kind=kind,
            title=title,
            status="drafting",
        )
        self.items[kind].append(item)
        return item

    def mark_saved(
        self,
        item: ContentItem,
        db_id: str,
        slug: str,
        content_length: int = 0,
        needs_more_content: bool = False,
    ) -> None:
        item.status = "saved"
        item.saved = True
        item.db_id = db_id
        item.slug = slug
        item.saved_at = _now()
        item.needs_more_content = needs_more_content
        item.content_parts = 1
        item.total_content_length = content_length
        item.error = None
        self.refresh_completion_flags()

    def mark_appended(
        self,
        db_id: str,
        appended_length: int,
        is_last_part: bool,
    ) -> Optional[ContentItem]:
        """Record one appended part; only the final part clears needs_more_content."""
        item = self.find_by_db_id("blog", db_id)
        if item is None:
            return None
        item.content_parts += 1
        item.total_content_length += appended_length
        item.needs_more_content = not is_last_part
        self.refresh_completion_flags()
        return item

    def mark_failed(self, item: ContentItem, error: str) -> None:
        item.status = "failed"
        item.saved = False
        item.error = error

    def refresh_completion_flags(self) -> None:
        for kind in CONTENT_KINDS:
            requested = self.requested(kind)
            self.completion_flags[kind] = (
                requested > 0 and self.completed_count(kind) >= requested
            )

    def record_iteration(self, iteration: int, tools_called: List[str]) -> None:
        self.current_iteration = iteration
        self.iteration_history.append(
            IterationRecord(iteration=iteration, tools_called=list(tools_called))
        )

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    def saved_items(self, kind: str) -> List[ContentItem]:
        return [item for item in self.items[kind] if item.saved]


def normalize_title(title: str) -> str:
    return " ".join(title.split()).lower()


def create_initial_state(
    author_id: str,
    message: str,
    thread_id: Optional[str] = None,
    run_id: Optional[str] = None,
    max_iterations: int = MAX_ITERATIONS,
) -> OrchestrationState:
    """Create a fresh OrchestrationState for a new generation run."""
    state = OrchestrationState(
        author_id=author_id,
        message=message,
        thread_id=thread_id,
        max_iterations=max_iterations,
    )
    if run_id:
        state.run_id = run_id
    return state
