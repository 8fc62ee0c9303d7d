"""Create content tables: users, lookups, resources, blogs, articles, seo_records

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_LOOKUP_TABLES = ("resource_types", "resource_categories", "content_categories")


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("image", sa.String(1024), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="USER"),
        _timestamp("created_at"),
    )

    for table in _LOOKUP_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("slug", sa.String(255), nullable=False, unique=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("color", sa.String(20), nullable=True),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        )

    op.create_table(
        "resources",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("icon", sa.String(32), nullable=True),
        sa.Column("icon_url", sa.String(1024), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("official_url", sa.String(1024), nullable=True),
        sa.Column("docs_url", sa.String(1024), nullable=True),
        sa.Column("github_url", sa.String(1024), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("type_id", sa.String(36), sa.ForeignKey("resource_types.id"), nullable=True),
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("resource_categories.id"),
            nullable=True,
        ),
        sa.Column("blog_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("article_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
    )

    op.create_table(
        "blogs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_id", sa.String(36), sa.ForeignKey("resources.id"), nullable=True),
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("content_categories.id"),
            nullable=True,
        ),
        sa.Column("meta_title", sa.String(255), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("read_time", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("thumbnail", sa.String(1024), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("published_at", nullable=True),
    )
    op.create_index("ix_blogs_author_id", "blogs", ["author_id"])

    op.create_table(
        "articles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("excerpt", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_id", sa.String(36), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("content_categories.id"),
            nullable=False,
        ),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="INTERMEDIATE"),
        sa.Column("meta_title", sa.String(255), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("read_time", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_articles_author_id", "articles", ["author_id"])

    op.create_table(
        "seo_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("meta_title", sa.String(255), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("og_title", sa.String(255), nullable=True),
        sa.Column("og_description", sa.Text(), nullable=True),
        sa.Column("og_type", sa.String(32), nullable=True),
        sa.Column("twitter_title", sa.String(255), nullable=True),
        sa.Column("twitter_description", sa.Text(), nullable=True),
        sa.Column("twitter_card", sa.String(32), nullable=True),
        sa.Column("robots", sa.String(64), nullable=True),
        sa.Column("keywords", sa.Text(), nullable=True),
        sa.Column("schema_type", sa.String(64), nullable=True),
        sa.UniqueConstraint("entity_type", "entity_id"),
    )


def downgrade() -> None:
    op.drop_table("seo_records")
    op.drop_index("ix_articles_author_id", table_name="articles")
    op.drop_table("articles")
    op.drop_index("ix_blogs_author_id", table_name="blogs")
    op.drop_table("blogs")
    op.drop_table("resources")
    for table in reversed(_LOOKUP_TABLES):
        op.drop_table(table)
    op.drop_table("users")
