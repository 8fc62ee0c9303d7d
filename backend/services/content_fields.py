"""
Derived content fields — slugs, read times and the blog auto-fill helpers.

Pure functions only; nothing here touches the database or the run state.
"""

import math
import re
from datetime import date
from typing import List, Optional

WORDS_PER_MINUTE = 200

TITLE_MAX_LENGTH = 100
EXCERPT_MAX_LENGTH = 200
EXCERPT_MIN_CUT = 150
META_TITLE_MAX_LENGTH = 60
META_DESCRIPTION_MAX_LENGTH = 160
SLUG_BASE_MAX_LENGTH = 40

MAX_DERIVED_TAGS = 7
MAX_FALLBACK_TAGS = 5

COMMON_TECH_TERMS = (
    "javascript", "typescript", "react", "nextjs", "next.js", "node", "nodejs",
    "python", "api", "sdk", "cloud", "aws", "azure", "docker", "kubernetes",
    "database", "sql", "nosql", "mongodb", "postgresql", "redis", "graphql",
    "rest", "authentication", "security", "performance", "testing", "ci/cd",
    "devops", "frontend", "backend", "fullstack", "mobile", "web", "ai", "ml",
    "machine learning", "deep learning", "data", "analytics", "serverless",
    "microservices", "architecture", "design patterns", "best practices",
    "tutorial", "guide", "introduction", "getting started", "advanced",
)

_HEADING_RE = re.compile(r"^##?\s+(.+?)$", re.MULTILINE)
_CAPITALIZED_RE = re.compile(r"\b[A-Z][a-zA-Z]+\b")


def slugify(text: str, max_length: Optional[int] = None, fallback: str = "item") -> str:
    """Lowercase, collapse non-alphanumerics to single hyphens, trim hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    if max_length is not None:
        slug = slug[:max_length]
    return slug or fallback


def read_time(content: str) -> str:
    words = len(content.split())
    minutes = math.ceil(words / WORDS_PER_MINUTE)
    return "1 min read" if minutes == 1 else f"{minutes} min read"


def derive_title(content: str, today: Optional[date] = None) -> str:
    """Title from the first H1/H2 heading, else the first non-empty line."""
    match = _HEADING_RE.search(content)
    if match:
        return match.group(1).strip()

    for line in content.splitlines():
        if line.strip():
            return re.sub(r"^#+\s*", "", line).strip()[:TITLE_MAX_LENGTH]

    return f"Blog Post {(today or date.today()).isoformat()}"


def clean_markdown(content: str) -> str:
    text = re.sub(r"^#+\s+.+?\n", "", content, flags=re.MULTILINE)
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"\*\*|__", "", text)
    text = re.sub(r"\*|_", "", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"\n+", " ", text)
    return text.strip()


def derive_excerpt(content: str) -> str:
    """
    First ~200 characters of the cleaned content.

    When the text is longer, it is cut at the last word boundary past 150
    characters and suffixed with an ellipsis.
    """
    clean = clean_markdown(content)
    excerpt = clean[:EXCERPT_MAX_LENGTH]
    if len(clean) > EXCERPT_MAX_LENGTH:
        last_space = excerpt.rfind(" ")
        if last_space > EXCERPT_MIN_CUT:
            excerpt = excerpt[:last_space]
        excerpt += "..."
    return excerpt


def truncate_with_ellipsis(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def derive_meta_title(title: str) -> str:
    return truncate_with_ellipsis(title, META_TITLE_MAX_LENGTH)


def derive_meta_description(excerpt: str) -> str:
    return truncate_with_ellipsis(excerpt, META_DESCRIPTION_MAX_LENGTH)


def derive_tags(title: str, content: str) -> List[str]:
    """Known tech terms found in the title or body, else capitalized words."""
    haystack = f"{title} {content}".lower()
    tags = [term for term in COMMON_TECH_TERMS if term in haystack][:MAX_DERIVED_TAGS]
    if tags:
        return tags

    seen: List[str] = []
    for word in _CAPITALIZED_RE.findall(content):
        if len(word) > 3 and word not in seen:
            seen.append(word)
    return seen[:MAX_FALLBACK_TAGS]


def merge_tags(existing: List[str], additional: List[str]) -> List[str]:
    merged = list(existing)
    for tag in additional:
        if tag not in merged:
            merged.append(tag)
    return merged
