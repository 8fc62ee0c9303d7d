"""
Content Service — persistence operations used by the generation tools.

Provides async functions over an AsyncSession to resolve authors, create
blogs/articles/resources with unique-slug retry, look up and update records,
maintain resource counters and SEO records, and lazily create the default
lookup rows ("Tool", "General", "Tutorial").

Duplicate-title protection across runs is application-level: a title lock
serializes check-then-create for one (author, title) pair inside this process.
Two separate processes can still race past the duplicate check; the unique
slug constraint is the only cross-process guard.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.content import (
    Article,
    Blog,
    ContentCategory,
    Resource,
    ResourceCategory,
    ResourceType,
    SeoRecord,
    User,
)
from services.content_fields import read_time, slugify
from state import normalize_title

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 5

SYSTEM_USER_EMAIL = "system@seanfilimon.com"

_DEFAULTS = {
    "resourceType": (ResourceType, "Tool", "tool", "General tools and utilities"),
    "resourceCategory": (ResourceCategory, "General", "general", "General resources"),
    "contentCategory": (ContentCategory, "Tutorial", "tutorial", "Tutorial articles"),
}


class SlugCollisionError(RuntimeError):
    """Raised when every slug attempt for a new record hit the unique constraint."""


def _slug_suffix() -> str:
    return str(uuid.uuid4())


def _is_slug_collision(exc: IntegrityError) -> bool:
    return "slug" in str(exc.orig).lower()


# ---------------------------------------------------------------------------
# Title locks
# ---------------------------------------------------------------------------

_title_locks: Dict[Tuple[str, str], List[Any]] = {}


@asynccontextmanager
async def title_lock(author_id: str, title: str):
    """
    Serialize duplicate-check-then-create for one (author, title) pair.

    Entries are reference counted and dropped once no task holds or awaits them.
    """
    key = (author_id, normalize_title(title))
    entry = _title_locks.setdefault(key, [asyncio.Lock(), 0])
    entry[1] += 1
    try:
        async with entry[0]:
            yield
    finally:
        entry[1] -= 1
        if entry[1] == 0:
            _title_locks.pop(key, None)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def find_user_by_id(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def find_user_by_external_id(session: AsyncSession, external_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


async def find_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, fields: Dict[str, Any]) -> User:
    user = User(**fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def resolve_user(
    session: AsyncSession,
    requester_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    """
    Resolve the requester to a database user.

    Fallback chain:
        1. direct id, then external id
        2. email lookup, creating an AUTHOR when the email is unknown
        3. the earliest ADMIN or AUTHOR
        4. a newly created system ADMIN
    """
    user = await find_user_by_id(session, requester_id)
    if user is None:
        user = await find_user_by_external_id(session, requester_id)
    if user is not None:
        return user

    if email:
        user = await find_user_by_email(session, email)
        if user is not None:
            return user
        logger.info("Creating AUTHOR for requester %s (%s)", requester_id, email)
        return await create_user(
            session,
            {
                "external_id": requester_id,
                "email": email.strip(),
                "name": (name or "").strip() or email.split("@")[0],
                "role": "AUTHOR",
            },
        )

    result = await session.execute(
        select(User)
        .where(User.role.in_(("ADMIN", "AUTHOR")))
        .order_by(User.created_at.asc())
        .limit(1)
    )
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    user = await find_user_by_email(session, SYSTEM_USER_EMAIL)
    if user is not None:
        return user

    logger.warning("No author found for requester %s; creating system user", requester_id)
    return await create_user(
        session,
        {"email": SYSTEM_USER_EMAIL, "name": "System", "role": "ADMIN"},
    )


# ---------------------------------------------------------------------------
# Create with unique-slug retry
# ---------------------------------------------------------------------------

async def _create_with_slug_retry(
    session: AsyncSession,
    model: Type[Any],
    fields: Dict[str, Any],
    base_slug: str,
    suffix_first_attempt: bool = True,
) -> Any:
    for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
        if suffix_first_attempt or attempt > 1:
            slug = f"{base_slug}-{_slug_suffix()}"
        else:
            slug = base_slug

        record = model(**fields, slug=slug)
        session.add(record)
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            if not _is_slug_collision(exc):
                raise
            logger.info(
                "Slug collision for %s on attempt %d/%d, retrying",
                model.__tablename__, attempt, MAX_SLUG_ATTEMPTS,
            )
            continue

        await session.refresh(record)
        return record

    raise SlugCollisionError(
        f"Failed to create {model.__tablename__} record after "
        f"{MAX_SLUG_ATTEMPTS} attempts due to slug collisions"
    )


async def create_blog(session: AsyncSession, fields: Dict[str, Any]) -> Blog:
    """Create a blog with slug `<slugified title[:40]>-<uuid>`."""
    base_slug = slugify(fields["title"], max_length=40, fallback="blog")
    return await _create_with_slug_retry(session, Blog, fields, base_slug)


async def create_article(session: AsyncSession, fields: Dict[str, Any]) -> Article:
    base_slug = slugify(fields["title"], max_length=40, fallback="article")
    return await _create_with_slug_retry(session, Article, fields, base_slug)


async def create_resource(session: AsyncSession, fields: Dict[str, Any]) -> Resource:
    """Resources keep the bare name slug; a suffix is only added on collision."""
    base_slug = slugify(fields["name"], fallback="resource")
    return await _create_with_slug_retry(
        session, Resource, fields, base_slug, suffix_first_attempt=False
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def find_blog_by_id(session: AsyncSession, blog_id: str) -> Optional[Blog]:
    result = await session.execute(select(Blog).where(Blog.id == blog_id))
    return result.scalar_one_or_none()


async def find_blog_by_title_for_author(
    session: AsyncSession,
    author_id: str,
    title: str,
) -> Optional[Blog]:
    """Case-insensitive exact title match scoped to one author."""
    result = await session.execute(
        select(Blog)
        .where(Blog.author_id == author_id)
        .where(func.lower(Blog.title) == title.strip().lower())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_article_by_id(session: AsyncSession, article_id: str) -> Optional[Article]:
    result = await session.execute(select(Article).where(Article.id == article_id))
    return result.scalar_one_or_none()


async def find_article_by_title_for_author(
    session: AsyncSession,
    author_id: str,
    title: str,
) -> Optional[Article]:
    result = await session.execute(
        select(Article)
        .where(Article.author_id == author_id)
        .where(func.lower(Article.title) == title.strip().lower())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_resource(session: AsyncSession, resource_id: str) -> Optional[Resource]:
    result = await session.execute(select(Resource).where(Resource.id == resource_id))
    return result.scalar_one_or_none()


async def find_resource_by_slug(session: AsyncSession, slug: str) -> Optional[Resource]:
    result = await session.execute(select(Resource).where(Resource.slug == slug))
    return result.scalar_one_or_none()


async def find_resource_by_name_or_slug(
    session: AsyncSession,
    name: str,
    slug: str,
) -> Optional[Resource]:
    result = await session.execute(
        select(Resource)
        .where(or_(func.lower(Resource.name) == name.strip().lower(), Resource.slug == slug))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_content_category(
    session: AsyncSession,
    category_id: str,
) -> Optional[ContentCategory]:
    result = await session.execute(
        select(ContentCategory).where(ContentCategory.id == category_id)
    )
    return result.scalar_one_or_none()


async def find_lookup(session: AsyncSession, kind: str, lookup_id: str) -> Optional[Any]:
    """Find a resource type / resource category / content category by id."""
    model = _DEFAULTS[kind][0]
    result = await session.execute(select(model).where(model.id == lookup_id))
    return result.scalar_one_or_none()


async def find_or_create_default(session: AsyncSession, kind: str) -> Any:
    """
    Return the default lookup row for kind, creating it on first use.

    kind is one of "resourceType" (Tool), "resourceCategory" (General) or
    "contentCategory" (Tutorial).
    """
    model, name, slug, description = _DEFAULTS[kind]
    result = await session.execute(select(model).where(model.slug == slug))
    row = result.scalar_one_or_none()
    if row is not None:
        return row

    row = model(name=name, slug=slug, description=description)
    session.add(row)
    try:
        await session.commit()
    except IntegrityError:
        # Another writer created it first
        await session.rollback()
        result = await session.execute(select(model).where(model.slug == slug))
        return result.scalar_one()
    await session.refresh(row)
    return row


async def list_blogs(
    session: AsyncSession,
    resource_id: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 20,
) -> List[Blog]:
    """List blogs, newest first, with optional resource/search/status filters."""
    query = select(Blog)
    if resource_id:
        query = query.where(Blog.resource_id == resource_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(func.lower(Blog.title).like(pattern), func.lower(Blog.excerpt).like(pattern))
        )
    if status:
        query = query.where(Blog.status == status)
    result = await session.execute(query.order_by(Blog.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def list_resources(
    session: AsyncSession,
    search: Optional[str] = None,
    category_id: Optional[str] = None,
    limit: int = 20,
) -> List[Resource]:
    query = select(Resource)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Resource.name).like(pattern),
                func.lower(Resource.description).like(pattern),
            )
        )
    if category_id:
        query = query.where(Resource.category_id == category_id)
    result = await session.execute(query.order_by(Resource.name.asc()).limit(limit))
    return list(result.scalars().all())


async def list_categories(session: AsyncSession, category_type: str = "content") -> List[Any]:
    model = ContentCategory if category_type == "content" else ResourceCategory
    result = await session.execute(
        select(model).order_by(model.sort_order.asc(), model.name.asc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

async def update_blog(
    session: AsyncSession,
    blog_id: str,
    fields: Dict[str, Any],
) -> Optional[Blog]:
    """Apply a partial update to a blog. Returns None when the blog is missing."""
    blog = await find_blog_by_id(session, blog_id)
    if blog is None:
        return None

    for key, value in fields.items():
        if hasattr(blog, key):
            setattr(blog, key, value)

    await session.commit()
    await session.refresh(blog)
    return blog


async def append_blog_content(
    session: AsyncSession,
    blog_id: str,
    part: str,
    fields: Optional[Dict[str, Any]] = None,
) -> Optional[Blog]:
    """
    Append part to a blog's body, separated by a blank line.

    Read time is recomputed from the combined body; any extra fields
    (excerpt, tags) are applied in the same commit.
    """
    blog = await find_blog_by_id(session, blog_id)
    if blog is None:
        return None

    blog.content = f"{blog.content}\n\n{part}"
    blog.read_time = read_time(blog.content)
    for key, value in (fields or {}).items():
        setattr(blog, key, value)

    await session.commit()
    await session.refresh(blog)
    return blog


async def increment_resource_counter(
    session: AsyncSession,
    resource_id: str,
    kind: str,
) -> None:
    """Bump blog_count or article_count on a resource."""
    resource = await find_resource(session, resource_id)
    if resource is None:
        return
    column = "blog_count" if kind == "blog" else "article_count"
    setattr(resource, column, (getattr(resource, column) or 0) + 1)
    await session.commit()


async def find_seo_record(
    session: AsyncSession,
    entity_type: str,
    entity_id: str,
) -> Optional[SeoRecord]:
    result = await session.execute(
        select(SeoRecord)
        .where(SeoRecord.entity_type == entity_type)
        .where(SeoRecord.entity_id == entity_id)
    )
    return result.scalar_one_or_none()


async def create_seo_record(
    session: AsyncSession,
    entity_type: str,
    entity_id: str,
    fields: Dict[str, Any],
) -> SeoRecord:
    record = SeoRecord(entity_type=entity_type, entity_id=entity_id, **fields)
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def upsert_seo_record(
    session: AsyncSession,
    entity_type: str,
    entity_id: str,
    fields: Dict[str, Any],
) -> Tuple[SeoRecord, bool]:
    """Update the SEO record for an entity, creating it if absent. Returns (record, created)."""
    record = await find_seo_record(session, entity_type, entity_id)
    if record is None:
        return await create_seo_record(session, entity_type, entity_id, fields), True

    for key, value in fields.items():
        setattr(record, key, value)
    await session.commit()
    await session.refresh(record)
    return record, False
