"""
Content models — users, blogs, articles, resources and their lookup tables.

Only the columns the generation pipeline reads or writes are modelled here.
Tags are stored as a JSON list of strings on each content row.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(Base):
    """An author or administrator that owns generated content."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    external_id = Column(String(255), nullable=True, unique=True)
    email = Column(String(255), nullable=True, unique=True)
    name = Column(String(255), nullable=True)
    image = Column(String(1024), nullable=True)
    role = Column(String(20), nullable=False, default="USER")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": _iso(self.created_at),
        }


class _Category:
    """Columns shared by the three lookup tables."""

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "color": self.color,
        }


class ResourceType(_Category, Base):
    __tablename__ = "resource_types"


class ResourceCategory(_Category, Base):
    __tablename__ = "resource_categories"


class ContentCategory(_Category, Base):
    __tablename__ = "content_categories"


class Resource(Base):
    """A technology, framework or tool that blogs and articles can reference."""

    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    icon = Column(String(32), nullable=True)
    icon_url = Column(String(1024), nullable=True)
    color = Column(String(20), nullable=True)
    official_url = Column(String(1024), nullable=True)
    docs_url = Column(String(1024), nullable=True)
    github_url = Column(String(1024), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    type_id = Column(String(36), ForeignKey("resource_types.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("resource_categories.id"), nullable=True)
    blog_count = Column(Integer, nullable=False, default=0)
    article_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "icon_url": self.icon_url,
            "color": self.color,
            "official_url": self.official_url,
            "docs_url": self.docs_url,
            "github_url": self.github_url,
            "tags": list(self.tags or []),
            "type_id": self.type_id,
            "category_id": self.category_id,
            "blog_count": self.blog_count,
            "article_count": self.article_count,
        }


class Blog(Base):
    """A blog post. Content is a single MDX column that appends extend."""

    __tablename__ = "blogs"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(500), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    resource_id = Column(String(36), ForeignKey("resources.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("content_categories.id"), nullable=True)
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    read_time = Column(String(32), nullable=True)
    status = Column(String(20), nullable=False, default="DRAFT")
    tags = Column(JSON, nullable=False, default=list)
    thumbnail = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    published_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self, include_content: bool = False) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "author_id": self.author_id,
            "resource_id": self.resource_id,
            "category_id": self.category_id,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "read_time": self.read_time,
            "status": self.status,
            "tags": list(self.tags or []),
            "thumbnail": self.thumbnail,
            "created_at": _iso(self.created_at),
            "published_at": _iso(self.published_at),
        }
        if include_content:
            data["content"] = self.content
        return data


class Article(Base):
    """A technical article. Always attached to a resource."""

    __tablename__ = "articles"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(500), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    excerpt = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    resource_id = Column(String(36), ForeignKey("resources.id"), nullable=False)
    category_id = Column(String(36), ForeignKey("content_categories.id"), nullable=False)
    difficulty = Column(String(20), nullable=False, default="INTERMEDIATE")
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    read_time = Column(String(32), nullable=True)
    status = Column(String(20), nullable=False, default="DRAFT")
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "author_id": self.author_id,
            "resource_id": self.resource_id,
            "category_id": self.category_id,
            "difficulty": self.difficulty,
            "read_time": self.read_time,
            "status": self.status,
            "tags": list(self.tags or []),
            "created_at": _iso(self.created_at),
        }


class SeoRecord(Base):
    """Search and social metadata for one content entity."""

    __tablename__ = "seo_records"
    __table_args__ = (UniqueConstraint("entity_type", "entity_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(String(36), nullable=False)
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    og_title = Column(String(255), nullable=True)
    og_description = Column(Text, nullable=True)
    og_type = Column(String(32), nullable=True)
    twitter_title = Column(String(255), nullable=True)
    twitter_description = Column(Text, nullable=True)
    twitter_card = Column(String(32), nullable=True)
    robots = Column(String(64), nullable=True)
    keywords = Column(Text, nullable=True)
    schema_type = Column(String(64), nullable=True)
