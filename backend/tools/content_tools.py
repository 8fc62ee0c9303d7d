"""
Content Tools — analyze the request, then create, extend and update content.

Every handler takes (ToolContext, validated input model) and returns a dict.
Nothing here raises for expected failures: missing fields, duplicate titles,
quantity limits and persistence errors all come back as
{"success": False, "error": ...} so the agent can correct itself next turn.

Save pipeline, in order:
    required fields (blogs auto-derive what is missing)
    → analysis guard
    → duplicate title (database, same author, case-insensitive; then this run)
    → quantity ceiling
    → foreign keys (invalid ids dropped or replaced by defaults)
    → create with unique slug + verification read-back
    → resource counter, SEO record, OG image (best effort)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from services import content_service
from services.content_fields import (
    derive_excerpt,
    derive_meta_description,
    derive_meta_title,
    derive_tags,
    derive_title,
    merge_tags,
    read_time,
    slugify,
)
from state import CONTENT_KINDS, MAX_ITEMS_PER_KIND, MAX_TOTAL_ITEMS, OrchestrationState
from tools.context import ToolContext

logger = logging.getLogger(__name__)

_PLURAL = {"blog": "blogs", "article": "articles", "resource": "resources"}


def _fail(error: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, **extra}


def progress_snapshot(state: OrchestrationState) -> Dict[str, Any]:
    """Compact per-kind counters attached to save results."""
    return {
        _PLURAL[kind]: {
            "saved": state.completed_count(kind),
            "requested": state.requested(kind),
            "remaining": state.remaining(kind),
        }
        for kind in CONTENT_KINDS
    }


def _limit_reached(state: OrchestrationState, kind: str) -> bool:
    """A kind is closed once saved items (finalized or not) reach the requested count."""
    return state.saved_count(kind) >= state.requested(kind)


def _limit_result(state: OrchestrationState, kind: str, tool: str) -> Dict[str, Any]:
    saved = state.saved_count(kind)
    requested = state.requested(kind)
    return _fail(
        f"STOP! {kind.capitalize()} limit reached. Already saved {saved}/{requested} "
        f"{_PLURAL[kind]}. DO NOT call {tool} again.",
        limit_reached=True,
        saved_items=[{"db_id": i.db_id, "title": i.title} for i in state.saved_items(kind)],
        requested=requested,
        progress=progress_snapshot(state),
    )


def _analysis_required(state: OrchestrationState, tool: str) -> Dict[str, Any]:
    return _fail(
        f"MUST call analyzeRequest FIRST before {tool}. Call analyzeRequest to set quantities.",
        analysis_required=True,
    )


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _clean_tags(tags: Optional[List[str]]) -> List[str]:
    return [t.strip() for t in (tags or []) if t and t.strip()]


async def _valid_resource_id(session, *candidates: Optional[str]) -> Optional[str]:
    """First candidate id that names an existing resource, else None."""
    for resource_id in candidates:
        if not resource_id:
            continue
        resource = await content_service.find_resource(session, resource_id)
        if resource is not None:
            return resource.id
    return None


# ---------------------------------------------------------------------------
# analyzeRequest
# ---------------------------------------------------------------------------

class AnalyzeRequestInput(BaseModel):
    blogs: int = Field(..., description="Number of blog posts to create (0 if none requested).")
    articles: int = Field(..., description="Number of articles to create (0 if none requested).")
    resources: int = Field(..., description="Number of resources to create (0 if none requested).")
    reasoning: str = Field(
        default="",
        description="Brief explanation of how these quantities follow from the request.",
    )


def clamp_counts(blogs: int, articles: int, resources: int) -> Dict[str, int]:
    """
    Clamp each count to [0, 10] and the total to 10.

    Excess over the total is trimmed from articles first, then blogs, then
    resources, the reverse of the order in which items get created.
    """
    counts = {
        "blog": min(max(blogs, 0), MAX_ITEMS_PER_KIND),
        "article": min(max(articles, 0), MAX_ITEMS_PER_KIND),
        "resource": min(max(resources, 0), MAX_ITEMS_PER_KIND),
    }
    excess = sum(counts.values()) - MAX_TOTAL_ITEMS
    for kind in ("article", "blog", "resource"):
        if excess <= 0:
            break
        cut = min(counts[kind], excess)
        counts[kind] -= cut
        excess -= cut
    return counts


async def analyze_request(ctx: ToolContext, args: AnalyzeRequestInput) -> Dict[str, Any]:
    """Record how many blogs, articles and resources this run must create."""
    state = ctx.state
    if state.analysis.complete:
        return _fail(
            "analyzeRequest already called. Do not call again. Proceed with content creation.",
            requested=dict(state.analysis.requested),
            progress=progress_snapshot(state),
        )

    counts = clamp_counts(args.blogs, args.articles, args.resources)
    state.analysis.requested = counts
    state.analysis.reasoning = args.reasoning
    state.analysis.complete = True
    state.refresh_completion_flags()

    total = sum(counts.values())
    logger.info(
        "Run %s analysis: %d blogs, %d articles, %d resources",
        state.run_id, counts["blog"], counts["article"], counts["resource"],
    )

    if counts["resource"] > 0:
        next_steps = (
            "Start with resources (research -> fetchAndUploadLogo -> saveResource), "
            "then create blogs/articles."
        )
    elif counts["blog"] > 0:
        next_steps = "Research the topic, then create blog posts using saveBlog."
    elif counts["article"] > 0:
        next_steps = "Research the topic, then create articles using saveArticle."
    else:
        next_steps = "Nothing to create."

    return {
        "success": True,
        "requested_blogs": counts["blog"],
        "requested_articles": counts["article"],
        "requested_resources": counts["resource"],
        "total_items": total,
        "reasoning": args.reasoning,
        "message": (
            f"Analysis complete. Will create: {counts['resource']} resource(s), "
            f"{counts['blog']} blog(s), {counts['article']} article(s). Total: {total} items. "
            "DO NOT call analyzeRequest again."
        ),
        "next_steps": next_steps,
    }


# ---------------------------------------------------------------------------
# saveBlog
# ---------------------------------------------------------------------------

class SaveBlogInput(BaseModel):
    content: str = Field(
        ...,
        description="Full MDX content. Max 30000 characters; use appendToBlog for more.",
    )
    title: Optional[str] = Field(default=None, description="Blog title; derived from the first heading if omitted.")
    excerpt: Optional[str] = Field(default=None, description="Short summary, 150-200 characters.")
    meta_title: Optional[str] = Field(default=None, description="SEO meta title, 50-60 characters.")
    meta_description: Optional[str] = Field(default=None, description="SEO meta description, 150-160 characters.")
    tags: Optional[List[str]] = Field(default=None, description="Content tags used as SEO keywords.")
    author_id: Optional[str] = Field(default=None, description="Author id; defaults to the session author.")
    resource_id: Optional[str] = Field(
        default=None,
        description="Associated resource id; defaults to the resource created earlier in this run.",
    )
    category_id: Optional[str] = Field(default=None, description="Content category id.")
    has_more_content: bool = Field(
        default=False,
        description="True if more content will be added with appendToBlog.",
    )


async def _after_blog_created(
    ctx: ToolContext,
    blog_id: str,
    resource_id: Optional[str],
    title: str,
    excerpt: str,
    meta_title: str,
    meta_description: str,
    tags: List[str],
) -> None:
    """Counter, SEO record and OG image. Failures here never undo the save."""
    state = ctx.state
    try:
        async with ctx.session_factory() as session:
            if resource_id:
                await content_service.increment_resource_counter(session, resource_id, "blog")
            await content_service.create_seo_record(
                session,
                "blog",
                blog_id,
                {
                    "meta_title": meta_title,
                    "meta_description": meta_description,
                    "og_title": meta_title,
                    "og_description": meta_description,
                    "og_type": "article",
                    "twitter_title": meta_title,
                    "twitter_description": meta_description,
                    "twitter_card": "summary_large_image",
                    "robots": "index,follow",
                    "keywords": ", ".join(tags) if tags else None,
                    "schema_type": "BlogPosting",
                },
            )
    except SQLAlchemyError as exc:
        logger.warning("Post-save bookkeeping for blog %s failed: %s", blog_id, exc)
        state.record_error(f"saveBlog: SEO/counter update for {blog_id} failed: {exc}")

    generator = ctx.capabilities.og_generator
    if generator is None:
        return
    try:
        og_url = await generator.generate(title, excerpt, blog_id)
        if og_url:
            async with ctx.session_factory() as session:
                await content_service.update_blog(session, blog_id, {"thumbnail": og_url})
    except Exception as exc:  # noqa: BLE001
        logger.warning("OG image generation for blog %s failed (non-fatal): %s", blog_id, exc)


async def save_blog(ctx: ToolContext, args: SaveBlogInput) -> Dict[str, Any]:
    """Create one blog post, deriving any missing title/excerpt/SEO/tag fields."""
    state = ctx.state

    content = args.content.strip()
    if not content:
        return _fail("Content is required - it is the only field that cannot be auto-generated.")
    if len(content) > ctx.max_content_chars:
        return _fail(
            f"Content is {len(content)} characters; the limit per call is "
            f"{ctx.max_content_chars}. Save the first part with has_more_content=true, "
            "then add the rest with appendToBlog.",
            content_length=len(content),
        )

    title = _clean(args.title) or derive_title(content)
    excerpt = _clean(args.excerpt) or derive_excerpt(content)
    meta_title = _clean(args.meta_title) or derive_meta_title(title)
    meta_description = _clean(args.meta_description) or derive_meta_description(excerpt)
    tags = _clean_tags(args.tags) or derive_tags(title, content)
    author_id = _clean(args.author_id) or state.author_id
    if not author_id:
        return _fail("author_id is required and could not be taken from the session.")

    if not state.analysis.complete:
        return _analysis_required(state, "saveBlog")

    async with content_service.title_lock(author_id, title):
        async with ctx.session_factory() as session:
            existing = await content_service.find_blog_by_title_for_author(session, author_id, title)
            if existing is not None:
                return _fail(
                    f"DUPLICATE! Blog with title \"{title}\" already exists in database "
                    f"(id: {existing.id}). Create a DIFFERENT blog with a UNIQUE title.",
                    is_duplicate=True,
                    existing_blog={"id": existing.id, "title": existing.title, "slug": existing.slug},
                )

            tracked = state.find_title("blog", title)
            if tracked is not None:
                return _fail(
                    f"DUPLICATE! Blog with title \"{title}\" already tracked in this run "
                    f"(saved: {tracked.saved}). Create a DIFFERENT blog with a UNIQUE title.",
                    is_duplicate=True,
                    existing_blog=tracked.summary(),
                    all_blogs=[i.summary() for i in state.items["blog"]],
                )

            if _limit_reached(state, "blog"):
                return _limit_result(state, "blog", "saveBlog")

            resource_id = await _valid_resource_id(session, args.resource_id, state.created_resource_id)
            category_id = None
            if args.category_id:
                category = await content_service.find_content_category(session, args.category_id)
                category_id = category.id if category else None

        item = state.track_item("blog", title)
        try:
            async with ctx.session_factory() as session:
                blog = await content_service.create_blog(
                    session,
                    {
                        "title": title,
                        "excerpt": excerpt,
                        "content": content,
                        "author_id": author_id,
                        "resource_id": resource_id,
                        "category_id": category_id,
                        "meta_title": meta_title,
                        "meta_description": meta_description,
                        "read_time": read_time(content),
                        "status": "DRAFT",
                        "tags": tags,
                    },
                )
                blog_id, blog_slug, blog_status = blog.id, blog.slug, blog.status
            async with ctx.session_factory() as session:
                verified = await content_service.find_blog_by_id(session, blog_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("saveBlog failed for %r", title)
            state.mark_failed(item, str(exc))
            state.record_error(f"saveBlog: {exc}")
            return _fail(f"Failed to save blog: {exc}", progress=progress_snapshot(state))

        if verified is None:
            error = "Blog creation failed - record not found after insert"
            state.mark_failed(item, error)
            state.record_error(f"saveBlog: {error}")
            return _fail(error, progress=progress_snapshot(state))

    has_more = args.has_more_content
    state.mark_saved(item, blog_id, blog_slug, len(content), needs_more_content=has_more)
    state.last_created_blog_id = blog_id
    state.last_created_blog_title = title

    await _after_blog_created(
        ctx, blog_id, resource_id, title, excerpt, meta_title, meta_description, tags
    )

    requested = state.requested("blog")
    completed = state.completed_count("blog")
    remaining = state.remaining("blog")
    needing_more = state.pending_appends("blog")
    is_complete = remaining == 0 and not needing_more

    if has_more:
        message = (
            f"Blog \"{title}\" saved (part 1, {len(content)} chars). "
            f"Use appendToBlog with blog_id=\"{blog_id}\" to add more content."
        )
        next_action = f"Call appendToBlog(blog_id=\"{blog_id}\", content=...) to add more content."
    elif is_complete:
        message = f"All {requested} blog(s) saved. STOP - DO NOT call saveBlog again."
        next_action = "STOP creating blogs. All requested blogs are complete."
    else:
        titles = ", ".join(i.title for i in state.items["blog"])
        message = (
            f"Blog \"{title}\" saved ({completed}/{requested}). YOU MUST CREATE {remaining} "
            f"MORE BLOG(S) with DIFFERENT titles."
        )
        next_action = (
            f"Call saveBlog again for blog {completed + 1} of {requested}. "
            f"Use a UNIQUE title different from: {titles}"
        )

    return {
        "success": True,
        "content_type": "blog",
        "db_id": blog_id,
        "title": title,
        "slug": blog_slug,
        "status": blog_status,
        "tracking_id": item.tracking_id,
        "content_length": len(content),
        "has_more_content": has_more,
        "needs_append": has_more,
        "append_instructions": (
            f"Use appendToBlog(blog_id=\"{blog_id}\", content=...) to add more content."
            if has_more else None
        ),
        "blogs_needing_more_content": [i.summary() for i in needing_more],
        "saved_count": completed,
        "requested": requested,
        "remaining": remaining,
        "is_complete": is_complete,
        "progress": progress_snapshot(state),
        "message": message,
        "next_action": next_action,
    }


# ---------------------------------------------------------------------------
# appendToBlog
# ---------------------------------------------------------------------------

class AppendToBlogInput(BaseModel):
    content: str = Field(..., description="Additional MDX content appended to the end of the blog.")
    blog_id: Optional[str] = Field(
        default=None,
        description="Blog to extend (db_id from saveBlog); defaults to the last blog created in this run.",
    )
    is_last_part: bool = Field(
        default=False,
        description="True for the final part; marks the blog's content complete.",
    )
    update_excerpt: Optional[str] = Field(default=None, description="Replacement excerpt, if the summary changed.")
    additional_tags: Optional[List[str]] = Field(default=None, description="Tags to add to the blog.")


async def append_to_blog(ctx: ToolContext, args: AppendToBlogInput) -> Dict[str, Any]:
    """Append a content part to an existing blog and update multi-part tracking."""
    state = ctx.state
    blogs_in_state = [
        {"db_id": i.db_id, "title": i.title} for i in state.items["blog"] if i.db_id
    ]

    blog_id = _clean(args.blog_id) or state.last_created_blog_id
    if not blog_id:
        return _fail(
            "No blog_id provided and no blog created in this run. "
            "Provide blog_id or create a blog first with saveBlog.",
            blogs_in_state=blogs_in_state,
        )

    part = args.content.strip()
    if not part:
        return _fail("Content to append is required.")
    if len(part) > ctx.max_content_chars:
        return _fail(
            f"Part is {len(part)} characters; the limit per call is {ctx.max_content_chars}. "
            "Split it across several appendToBlog calls.",
            content_length=len(part),
        )

    try:
        async with ctx.session_factory() as session:
            blog = await content_service.find_blog_by_id(session, blog_id)
            if blog is None:
                return _fail(
                    f"Blog with ID \"{blog_id}\" not found. Use the db_id returned from saveBlog.",
                    blogs_in_state=blogs_in_state,
                )

            previous_length = len(blog.content)
            fields: Dict[str, Any] = {}
            if _clean(args.update_excerpt):
                fields["excerpt"] = _clean(args.update_excerpt)
            extra_tags = _clean_tags(args.additional_tags)
            if extra_tags:
                fields["tags"] = merge_tags(list(blog.tags or []), extra_tags)

            blog = await content_service.append_blog_content(session, blog_id, part, fields)
            title, slug = blog.title, blog.slug
            new_content, new_read_time = blog.content, blog.read_time
    except SQLAlchemyError as exc:
        logger.exception("appendToBlog failed for %s", blog_id)
        state.record_error(f"appendToBlog: {exc}")
        return _fail(f"Failed to append to blog: {exc}")

    item = state.mark_appended(blog_id, len(part), args.is_last_part)
    parts = item.content_parts if item else None
    needing_more = state.pending_appends("blog")

    if args.is_last_part:
        message = (
            f"Completed blog \"{title}\" with {parts or 'all'} parts. "
            f"Total content: {len(new_content)} characters."
        )
        if needing_more:
            next_action = "Complete remaining blogs: " + ", ".join(i.title for i in needing_more)
        else:
            next_action = "Blog content complete. Continue with other tasks."
    else:
        message = (
            f"Appended part {parts or '?'} to blog \"{title}\". Total: {len(new_content)} chars. "
            "Call appendToBlog again with is_last_part=true when done."
        )
        next_action = "Call appendToBlog again to add more content, or set is_last_part=true if done."

    return {
        "success": True,
        "blog_id": blog_id,
        "title": title,
        "slug": slug,
        "previous_content_length": previous_length,
        "appended_content_length": len(part),
        "new_total_content_length": len(new_content),
        "read_time": new_read_time,
        "is_last_part": args.is_last_part,
        "content_parts": parts,
        "needs_more_content": not args.is_last_part,
        "blogs_needing_more_content": [i.summary() for i in needing_more],
        "remaining": state.remaining("blog"),
        "is_complete": state.remaining("blog") == 0 and not needing_more,
        "progress": progress_snapshot(state),
        "message": message,
        "next_action": next_action,
    }


# ---------------------------------------------------------------------------
# updateBlog
# ---------------------------------------------------------------------------

class UpdateBlogInput(BaseModel):
    blog_id: str = Field(..., description="Blog to update; use getBlogs to find it.")
    title: Optional[str] = Field(default=None, description="New title.")
    excerpt: Optional[str] = Field(default=None, description="New excerpt, 150-200 characters.")
    content: Optional[str] = Field(default=None, description="New content REPLACING the existing body.")
    meta_title: Optional[str] = Field(default=None, description="New SEO meta title.")
    meta_description: Optional[str] = Field(default=None, description="New SEO meta description.")
    tags: Optional[List[str]] = Field(default=None, description="Tags REPLACING the existing ones.")
    add_tags: Optional[List[str]] = Field(default=None, description="Tags to ADD to the existing ones.")
    resource_id: Optional[str] = Field(default=None, description="Connect to a different resource.")
    status: Optional[Literal["DRAFT", "PUBLISHED", "ARCHIVED"]] = Field(
        default=None,
        description="Publication status.",
    )


async def update_blog(ctx: ToolContext, args: UpdateBlogInput) -> Dict[str, Any]:
    """Apply targeted changes to an existing blog; never touches create quotas."""
    new_title = _clean(args.title)
    if not new_title:
        return await _apply_blog_update(ctx, args, None)

    try:
        async with ctx.session_factory() as session:
            blog = await content_service.find_blog_by_id(session, args.blog_id)
            author_id = blog.author_id if blog else None
    except SQLAlchemyError as exc:
        logger.exception("updateBlog lookup failed for %s", args.blog_id)
        ctx.state.record_error(f"updateBlog: {exc}")
        return _fail(f"Failed to update blog: {exc}")

    if author_id is None:
        return await _apply_blog_update(ctx, args, new_title)
    # Same (author, title) lock saveBlog holds
    async with content_service.title_lock(author_id, new_title):
        return await _apply_blog_update(ctx, args, new_title)


async def _apply_blog_update(
    ctx: ToolContext,
    args: UpdateBlogInput,
    new_title: Optional[str],
) -> Dict[str, Any]:
    state = ctx.state
    try:
        async with ctx.session_factory() as session:
            blog = await content_service.find_blog_by_id(session, args.blog_id)
            if blog is None:
                return _fail(
                    f"Blog with ID \"{args.blog_id}\" not found. Use getBlogs to find existing blogs."
                )

            fields: Dict[str, Any] = {}
            changes: List[str] = []

            if new_title:
                existing = await content_service.find_blog_by_title_for_author(
                    session, blog.author_id, new_title
                )
                if existing is not None and existing.id != blog.id:
                    return _fail(
                        f"DUPLICATE! Blog with title \"{new_title}\" already exists in database "
                        f"(id: {existing.id}). Choose a DIFFERENT title.",
                        is_duplicate=True,
                        existing_blog={"id": existing.id, "title": existing.title, "slug": existing.slug},
                    )
                tracked = state.find_title("blog", new_title)
                if tracked is not None and tracked.db_id != blog.id:
                    return _fail(
                        f"DUPLICATE! Blog with title \"{new_title}\" already tracked in this run. "
                        "Choose a DIFFERENT title.",
                        is_duplicate=True,
                        existing_blog=tracked.summary(),
                    )

                fields["title"] = new_title
                fields["slug"] = f"{slugify(new_title, fallback='blog')}-{blog.id[-8:]}"
                changes.append(f"title: \"{blog.title}\" -> \"{new_title}\"")

            if _clean(args.excerpt):
                fields["excerpt"] = _clean(args.excerpt)
                changes.append("excerpt updated")

            new_content = _clean(args.content)
            if new_content:
                fields["content"] = new_content
                fields["read_time"] = read_time(new_content)
                changes.append(f"content replaced ({len(new_content)} chars)")

            if args.status:
                fields["status"] = args.status
                if args.status == "PUBLISHED" and blog.published_at is None:
                    fields["published_at"] = datetime.now(timezone.utc)
                changes.append(f"status: {blog.status} -> {args.status}")

            if args.resource_id:
                resource = await content_service.find_resource(session, args.resource_id)
                if resource is not None:
                    fields["resource_id"] = resource.id
                    changes.append(f"connected to resource: {resource.name}")

            replace_tags = _clean_tags(args.tags)
            add_tags = _clean_tags(args.add_tags)
            if replace_tags:
                fields["tags"] = replace_tags
                changes.append(f"tags replaced: [{', '.join(replace_tags)}]")
            elif add_tags:
                fields["tags"] = merge_tags(list(blog.tags or []), add_tags)
                changes.append(f"tags added: [{', '.join(add_tags)}]")

            seo_fields: Dict[str, Any] = {}
            if _clean(args.meta_title):
                seo_fields["meta_title"] = _clean(args.meta_title)
                fields["meta_title"] = seo_fields["meta_title"]
                changes.append("meta_title updated")
            if _clean(args.meta_description):
                seo_fields["meta_description"] = _clean(args.meta_description)
                fields["meta_description"] = seo_fields["meta_description"]
                changes.append("meta_description updated")

            if not fields:
                return _fail(
                    "No fields provided to update. Provide at least one field to change.",
                    current_blog=blog.to_dict(),
                )

            old_title = blog.title
            blog = await content_service.update_blog(session, args.blog_id, fields)

            if seo_fields:
                _, created = await content_service.upsert_seo_record(
                    session, "blog", blog.id, seo_fields
                )
                if created:
                    changes.append("SEO record created")

            snapshot = blog.to_dict()
            content_length = len(blog.content)
    except SQLAlchemyError as exc:
        logger.exception("updateBlog failed for %s", args.blog_id)
        state.record_error(f"updateBlog: {exc}")
        return _fail(f"Failed to update blog: {exc}")

    tracked = state.find_by_db_id("blog", args.blog_id)
    if tracked is not None and new_title:
        tracked.title = new_title
        tracked.slug = snapshot["slug"]

    logger.info("Blog %s updated (was %r): %s", args.blog_id, old_title, "; ".join(changes))
    return {
        "success": True,
        "blog_id": snapshot["id"],
        "title": snapshot["title"],
        "slug": snapshot["slug"],
        "status": snapshot["status"],
        "changes": changes,
        "updated_fields": sorted(fields),
        "current_state": {**snapshot, "content_length": content_length},
        "message": f"Blog \"{snapshot['title']}\" updated. Changes: {', '.join(changes)}",
    }


# ---------------------------------------------------------------------------
# saveArticle
# ---------------------------------------------------------------------------

class SaveArticleInput(BaseModel):
    title: str = Field(..., description="Article title.")
    excerpt: str = Field(..., description="Short summary, 150-200 characters.")
    content: str = Field(..., description="Full MDX content with code examples.")
    author_id: Optional[str] = Field(default=None, description="Author id (the session author).")
    meta_title: Optional[str] = Field(default=None, description="SEO meta title.")
    meta_description: Optional[str] = Field(default=None, description="SEO meta description.")
    tags: Optional[List[str]] = Field(default=None, description="Content tags.")
    resource_id: Optional[str] = Field(
        default=None,
        description="Associated resource id; defaults to the resource created earlier in this run.",
    )
    category_id: Optional[str] = Field(default=None, description="Content category id; defaults to Tutorial.")
    difficulty: Optional[Literal["BEGINNER", "INTERMEDIATE", "ADVANCED"]] = Field(
        default=None,
        description="Article difficulty level.",
    )


async def save_article(ctx: ToolContext, args: SaveArticleInput) -> Dict[str, Any]:
    """Create one technical article. Every field must be given explicitly."""
    state = ctx.state
    title = _clean(args.title)
    content = args.content.strip()
    excerpt = _clean(args.excerpt)
    author_id = _clean(args.author_id)

    for label, value in (("Title", title), ("Content", content), ("Excerpt", excerpt), ("author_id", author_id)):
        if not value:
            return _fail(f"{label} is required", progress=progress_snapshot(state))

    if not state.analysis.complete:
        return _analysis_required(state, "saveArticle")

    async with content_service.title_lock(author_id, title):
        async with ctx.session_factory() as session:
            existing = await content_service.find_article_by_title_for_author(session, author_id, title)
            if existing is not None:
                return _fail(
                    f"DUPLICATE! Article with title \"{title}\" already exists in database "
                    f"(id: {existing.id}). Create a DIFFERENT article with a UNIQUE title.",
                    is_duplicate=True,
                    existing_article={"id": existing.id, "title": existing.title, "slug": existing.slug},
                )

            tracked = state.find_title("article", title)
            if tracked is not None:
                return _fail(
                    f"DUPLICATE! Article with title \"{title}\" was already saved in this run. "
                    "Create a DIFFERENT article with a UNIQUE title.",
                    is_duplicate=True,
                    existing_article=tracked.summary(),
                    already_saved_titles=[i.title for i in state.items["article"]],
                )

            if _limit_reached(state, "article"):
                return _limit_result(state, "article", "saveArticle")

            resource_id = await _valid_resource_id(session, args.resource_id, state.created_resource_id)
            if resource_id is None:
                return _fail(
                    "Articles require a valid resource_id. Create a resource first "
                    "or provide a valid resource ID.",
                )

            category = None
            if args.category_id:
                category = await content_service.find_content_category(session, args.category_id)
            if category is None:
                category = await content_service.find_or_create_default(session, "contentCategory")
            category_id = category.id

        item = state.track_item("article", title)
        try:
            async with ctx.session_factory() as session:
                article = await content_service.create_article(
                    session,
                    {
                        "title": title,
                        "excerpt": excerpt,
                        "content": content,
                        "author_id": author_id,
                        "resource_id": resource_id,
                        "category_id": category_id,
                        "difficulty": args.difficulty or "INTERMEDIATE",
                        "meta_title": _clean(args.meta_title) or None,
                        "meta_description": _clean(args.meta_description) or None,
                        "read_time": read_time(content),
                        "status": "DRAFT",
                        "tags": _clean_tags(args.tags),
                    },
                )
                article_id, article_slug = article.id, article.slug
            async with ctx.session_factory() as session:
                verified = await content_service.find_article_by_id(session, article_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("saveArticle failed for %r", title)
            state.mark_failed(item, str(exc))
            state.record_error(f"saveArticle: {exc}")
            return _fail(f"Failed to save article: {exc}", progress=progress_snapshot(state))

        if verified is None:
            error = "Article creation failed - record not found after insert"
            state.mark_failed(item, error)
            state.record_error(f"saveArticle: {error}")
            return _fail(error, progress=progress_snapshot(state))

    try:
        async with ctx.session_factory() as session:
            await content_service.increment_resource_counter(session, resource_id, "article")
    except SQLAlchemyError as exc:
        logger.warning("article_count update for resource %s failed: %s", resource_id, exc)
        state.record_error(f"saveArticle: counter update for {resource_id} failed: {exc}")

    state.mark_saved(item, article_id, article_slug, len(content))

    requested = state.requested("article")
    completed = state.completed_count("article")
    remaining = state.remaining("article")
    is_complete = remaining == 0
    titles = ", ".join(i.title for i in state.saved_items("article"))

    return {
        "success": True,
        "content_type": "article",
        "db_id": article_id,
        "title": title,
        "slug": article_slug,
        "status": "DRAFT",
        "resource_id": resource_id,
        "tracking_id": item.tracking_id,
        "saved_count": completed,
        "requested": requested,
        "remaining": remaining,
        "is_complete": is_complete,
        "progress": progress_snapshot(state),
        "message": (
            f"All {requested} article(s) saved. STOP - DO NOT call saveArticle again."
            if is_complete
            else f"Article \"{title}\" saved ({completed}/{requested}). Create {remaining} more "
            f"article(s) with DIFFERENT titles. Already saved: {titles}"
        ),
        "next_action": (
            "STOP creating articles. All requested articles are complete."
            if is_complete
            else f"Create article {completed + 1} with a UNIQUE title (not: {titles})"
        ),
    }


# ---------------------------------------------------------------------------
# saveResource
# ---------------------------------------------------------------------------

class SaveResourceInput(BaseModel):
    name: str = Field(..., description="Resource name.")
    description: str = Field(..., description="Resource description (2-3 paragraphs).")
    icon: Optional[str] = Field(default=None, description="Emoji icon used when there is no logo.")
    logo_url: Optional[str] = Field(default=None, description="Uploaded logo URL from fetchAndUploadLogo.")
    color: Optional[str] = Field(default=None, description="Brand color as a hex code.")
    official_url: Optional[str] = Field(default=None, description="Official website URL.")
    docs_url: Optional[str] = Field(default=None, description="Documentation URL.")
    github_url: Optional[str] = Field(default=None, description="GitHub repository URL.")
    tags: Optional[List[str]] = Field(default=None, description="Resource tags.")
    type_id: Optional[str] = Field(default=None, description="Resource type id; defaults to Tool.")
    category_id: Optional[str] = Field(default=None, description="Resource category id; defaults to General.")


async def save_resource(ctx: ToolContext, args: SaveResourceInput) -> Dict[str, Any]:
    """Create one resource and remember it as the default for later content."""
    state = ctx.state
    name = _clean(args.name)
    description = _clean(args.description)
    if not name:
        return _fail("Name is required", progress=progress_snapshot(state))
    if not description:
        return _fail("Description is required", progress=progress_snapshot(state))

    if not state.analysis.complete:
        return _analysis_required(state, "saveResource")

    base_slug = slugify(name, fallback="resource")
    async with content_service.title_lock("resource", name):
        async with ctx.session_factory() as session:
            existing = await content_service.find_resource_by_name_or_slug(session, name, base_slug)
            if existing is not None:
                return _fail(
                    f"Resource already exists: {existing.name} (id: {existing.id}). "
                    "Use its id as resource_id instead of creating it again.",
                    is_duplicate=True,
                    existing_resource={"id": existing.id, "name": existing.name, "slug": existing.slug},
                )

            tracked = state.find_title("resource", name)
            if tracked is not None:
                return _fail(
                    f"DUPLICATE! Resource \"{name}\" was already saved in this run.",
                    is_duplicate=True,
                    existing_resource=tracked.summary(),
                )

            if _limit_reached(state, "resource"):
                return _limit_result(state, "resource", "saveResource")

            resource_type = None
            if args.type_id:
                resource_type = await content_service.find_lookup(session, "resourceType", args.type_id)
            if resource_type is None:
                resource_type = await content_service.find_or_create_default(session, "resourceType")

            category = None
            if args.category_id:
                category = await content_service.find_lookup(session, "resourceCategory", args.category_id)
            if category is None:
                category = await content_service.find_or_create_default(session, "resourceCategory")
            type_id, category_id = resource_type.id, category.id

        item = state.track_item("resource", name)
        try:
            async with ctx.session_factory() as session:
                resource = await content_service.create_resource(
                    session,
                    {
                        "name": name,
                        "description": description,
                        "icon": _clean(args.icon) or "📦",
                        "icon_url": _clean(args.logo_url) or None,
                        "color": _clean(args.color) or "#6366f1",
                        "official_url": _clean(args.official_url) or None,
                        "docs_url": _clean(args.docs_url) or None,
                        "github_url": _clean(args.github_url) or None,
                        "tags": _clean_tags(args.tags),
                        "type_id": type_id,
                        "category_id": category_id,
                    },
                )
                resource_id, resource_slug = resource.id, resource.slug
        except Exception as exc:  # noqa: BLE001
            logger.exception("saveResource failed for %r", name)
            state.mark_failed(item, str(exc))
            state.record_error(f"saveResource: {exc}")
            return _fail(f"Failed to save resource: {exc}", progress=progress_snapshot(state))

    state.mark_saved(item, resource_id, resource_slug, len(description))
    state.created_resource_id = resource_id
    state.created_resource_name = name

    requested = state.requested("resource")
    completed = state.completed_count("resource")
    remaining = state.remaining("resource")
    is_complete = remaining == 0
    blogs_wanted = state.requested("blog")
    articles_wanted = state.requested("article")

    if not is_complete:
        next_action = f"Create resource {completed + 1} of {requested}."
    elif blogs_wanted or articles_wanted:
        next_action = (
            f"Now create {blogs_wanted} blog(s) and {articles_wanted} article(s) "
            f"using resource_id: {resource_id}"
        )
    else:
        next_action = "All content complete."

    return {
        "success": True,
        "content_type": "resource",
        "db_id": resource_id,
        "resource_id": resource_id,
        "title": name,
        "slug": resource_slug,
        "saved_count": completed,
        "requested": requested,
        "remaining": remaining,
        "is_complete": is_complete,
        "progress": progress_snapshot(state),
        "message": (
            f"Resource saved ({completed}/{requested}). Resource ID: {resource_id}. "
            "Use this resource_id when creating blogs/articles."
        ),
        "next_action": next_action,
    }


# ---------------------------------------------------------------------------
# getBlogs
# ---------------------------------------------------------------------------

class GetBlogsInput(BaseModel):
    resource_id: Optional[str] = Field(default=None, description="Only blogs about this resource.")
    resource_slug: Optional[str] = Field(
        default=None,
        description="Resource slug (e.g. 'nextjs'), alternative to resource_id.",
    )
    search: Optional[str] = Field(default=None, description="Match against title or excerpt.")
    status: Optional[Literal["DRAFT", "PUBLISHED", "ARCHIVED"]] = Field(default=None)
    limit: int = Field(default=20, ge=1, le=100, description="Maximum number of blogs to return.")


async def get_blogs(ctx: ToolContext, args: GetBlogsInput) -> Dict[str, Any]:
    """List existing blogs, newest first."""
    async with ctx.session_factory() as session:
        resource_id = args.resource_id
        if args.resource_slug and not resource_id:
            resource = await content_service.find_resource_by_slug(session, args.resource_slug)
            if resource is None:
                return _fail(
                    f"Resource with slug \"{args.resource_slug}\" not found",
                    blogs=[],
                    count=0,
                )
            resource_id = resource.id

        blogs = await content_service.list_blogs(
            session,
            resource_id=resource_id,
            search=args.search,
            status=args.status,
            limit=args.limit,
        )
        rows = [b.to_dict() for b in blogs]

    if rows:
        scope = " for this resource" if resource_id else ""
        message = f"Found {len(rows)} blog(s){scope}"
    else:
        message = "No blogs found matching the criteria"
    return {"success": True, "blogs": rows, "count": len(rows), "message": message}
