"""
Asset capabilities — storage, GitHub logo discovery and OG image cards.

LocalAssetStorage writes uploaded bytes under ASSET_DIR and serves them from
ASSET_BASE_URL. The logo fetcher probes well-known logo paths in a GitHub
repository (main branch first, then master) and re-uploads the first hit.
The OG generator renders a 1200x630 SVG card for a blog post.
"""

import asyncio
import logging
import os
import re
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

import httpx
from pydantic import BaseModel, Field

from tools.context import ToolContext

logger = logging.getLogger(__name__)

ASSET_DIR = os.environ.get("ASSET_DIR", "./assets")
ASSET_BASE_URL = os.environ.get("ASSET_BASE_URL", "/assets")

RAW_GITHUB_URL = "https://raw.githubusercontent.com"

LOGO_PATHS = (
    "logo.svg",
    "logo.png",
    "assets/logo.svg",
    "assets/logo.png",
    ".github/logo.svg",
    ".github/logo.png",
    "docs/logo.svg",
    "docs/logo.png",
    "public/logo.svg",
    "public/logo.png",
    "images/logo.svg",
    "images/logo.png",
    "static/logo.svg",
    "static/logo.png",
)

KNOWN_REPOS = {
    "ai sdk": ("vercel", "ai"),
    "next.js": ("vercel", "next.js"),
    "nextjs": ("vercel", "next.js"),
    "react": ("facebook", "react"),
    "vue": ("vuejs", "vue"),
    "angular": ("angular", "angular"),
    "svelte": ("sveltejs", "svelte"),
    "tailwind": ("tailwindlabs", "tailwindcss"),
    "tailwindcss": ("tailwindlabs", "tailwindcss"),
    "prisma": ("prisma", "prisma"),
    "typescript": ("microsoft", "TypeScript"),
    "vite": ("vitejs", "vite"),
    "astro": ("withastro", "astro"),
    "remix": ("remix-run", "remix"),
    "nuxt": ("nuxt", "nuxt"),
    "drizzle": ("drizzle-team", "drizzle-orm"),
    "trpc": ("trpc", "trpc"),
    "zod": ("colinhacks", "zod"),
    "tanstack query": ("TanStack", "query"),
    "react query": ("TanStack", "query"),
}


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class LocalAssetStorage:
    """Stores uploads on the local filesystem."""

    def __init__(self, root: str = ASSET_DIR, base_url: str = ASSET_BASE_URL) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _write(self, relative_path: str, data: bytes) -> None:
        target = self.root / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, relative_path: str, data: bytes) -> str:
        """Write data to relative_path and return its public URL."""
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._write, relative_path, data)
        return f"{self.base_url}/{relative_path}"


# ---------------------------------------------------------------------------
# Logo fetcher
# ---------------------------------------------------------------------------

def resolve_repo(
    resource_name: str,
    github_org: Optional[str] = None,
    repo_name: Optional[str] = None,
) -> tuple:
    """Work out (org, repo) from explicit hints, the known list, or the name."""
    normalized = resource_name.lower().strip()
    org, repo = github_org, repo_name
    if not org or not repo:
        known = KNOWN_REPOS.get(normalized)
        if known:
            org = org or known[0]
            repo = repo or known[1]
    if not org:
        org = re.sub(r"[^a-z0-9]", "", normalized)
    if not repo:
        repo = re.sub(r"[^a-z0-9-]", "-", normalized)
    return org, repo


class GitHubLogoFetcher:
    """Finds a repository logo on raw.githubusercontent.com and re-uploads it."""

    def __init__(
        self,
        storage: LocalAssetStorage,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.storage = storage
        self._transport = transport
        self._timeout = timeout

    async def _find_logo(self, client: httpx.AsyncClient, org: str, repo: str) -> Optional[tuple]:
        for path in LOGO_PATHS:
            for branch in ("main", "master"):
                url = f"{RAW_GITHUB_URL}/{org}/{repo}/{branch}/{path}"
                try:
                    response = await client.head(url)
                except httpx.HTTPError:
                    continue
                if response.status_code == 200:
                    return url, path
        return None

    async def fetch_and_upload(
        self,
        resource_name: str,
        github_org: Optional[str] = None,
        repo_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        org, repo = resolve_repo(resource_name, github_org, repo_name)

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            found = await self._find_logo(client, org, repo)
            if found is None:
                return {
                    "success": False,
                    "message": (
                        f"Could not find logo for {resource_name} in GitHub repo {org}/{repo}. "
                        "Try providing the correct github_org and repo_name."
                    ),
                    "searched_paths": list(LOGO_PATHS[:5]),
                }

            logo_url, found_path = found
            response = await client.get(logo_url)
            if response.status_code != 200:
                return {
                    "success": False,
                    "message": f"Found logo at {logo_url} but failed to download it.",
                    "found_url": logo_url,
                }

        extension = ".svg" if found_path.endswith(".svg") else ".png"
        file_name = f"logos/{re.sub(r'[^a-z0-9]', '-', resource_name.lower())}-logo{extension}"
        uploaded_url = await self.storage.upload(file_name, response.content)

        return {
            "success": True,
            "logo_url": uploaded_url,
            "original_url": logo_url,
            "found_path": found_path,
            "message": (
                f"Successfully fetched and uploaded logo for {resource_name}. "
                f"Use logo_url \"{uploaded_url}\" in saveResource."
            ),
        }


# ---------------------------------------------------------------------------
# OG image generator
# ---------------------------------------------------------------------------

_OG_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="1200" height="630" viewBox="0 0 1200 630">
  <defs>
    <linearGradient id="bg" x1="0" y1="0" x2="1" y2="1">
      <stop offset="0%" stop-color="#0f172a"/>
      <stop offset="100%" stop-color="#312e81"/>
    </linearGradient>
  </defs>
  <rect width="1200" height="630" fill="url(#bg)"/>
  <rect x="80" y="80" width="96" height="8" rx="4" fill="#6366f1"/>
{title_lines}
{excerpt_lines}
</svg>
"""


def _text_lines(text: str, width: int, max_lines: int, x: int, y: int, size: int, color: str, step: int) -> str:
    lines = textwrap.wrap(text, width=width)[:max_lines]
    return "\n".join(
        f'  <text x="{x}" y="{y + i * step}" font-family="Inter, sans-serif" '
        f'font-size="{size}" fill="{color}">{escape(line)}</text>'
        for i, line in enumerate(lines)
    )


def render_og_svg(title: str, excerpt: str = "") -> str:
    return _OG_TEMPLATE.format(
        title_lines=_text_lines(title, 32, 3, 80, 190, 64, "#ffffff", 76),
        excerpt_lines=_text_lines(excerpt, 60, 3, 80, 470, 30, "#c7d2fe", 40),
    )


class SvgOgImageGenerator:
    """Renders and uploads an SVG social card for a blog."""

    def __init__(self, storage: LocalAssetStorage) -> None:
        self.storage = storage

    async def generate(self, title: str, excerpt: str, entity_id: str) -> Optional[str]:
        svg = render_og_svg(title, excerpt)
        return await self.storage.upload(f"og/blog-{entity_id}.svg", svg.encode("utf-8"))


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------

class FetchLogoInput(BaseModel):
    resource_name: str = Field(
        ...,
        min_length=1,
        description="Name of the resource, e.g. 'AI SDK', 'Next.js', 'React'.",
    )
    github_org: Optional[str] = Field(
        default=None,
        description="GitHub organization if known, e.g. 'vercel'.",
    )
    repo_name: Optional[str] = Field(
        default=None,
        description="GitHub repository name if known, e.g. 'next.js'.",
    )


async def fetch_and_upload_logo(ctx: ToolContext, args: FetchLogoInput) -> Dict[str, Any]:
    """Find a resource's logo on GitHub and upload it to asset storage."""
    fetcher = ctx.capabilities.logo_fetcher
    if fetcher is None:
        return {
            "success": False,
            "message": "Logo fetching is not configured. Create the resource without a logo.",
        }
    try:
        return await fetcher.fetch_and_upload(args.resource_name, args.github_org, args.repo_name)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Logo fetch for %s failed: %s", args.resource_name, exc)
        return {
            "success": False,
            "error": str(exc),
            "message": "Logo fetch failed. You can still create the resource without a logo.",
        }


def create_default_asset_capabilities() -> tuple:
    """Build (logo_fetcher, og_generator) sharing one local storage."""
    storage = LocalAssetStorage()
    return GitHubLogoFetcher(storage), SvgOgImageGenerator(storage)
