"""Tests for slug, read-time and blog auto-fill helpers."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import date

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


class TestSlugify:
    def test_basic(self):
        assert slugify("React Server Components!") == "react-server-components"

    def test_collapses_and_trims_separators(self):
        assert slugify("  --Next.js   & Vite-- ") == "next-js-vite"

    def test_max_length(self):
        assert slugify("a" * 80, max_length=40) == "a" * 40

    def test_fallback_for_symbols_only(self):
        assert slugify("!!!", fallback="blog") == "blog"


class TestReadTime:
    def test_short_content_is_one_minute(self):
        assert read_time("word " * 150) == "1 min read"

    def test_rounds_up(self):
        assert read_time("word " * 401) == "3 min read"


class TestDeriveTitle:
    def test_uses_first_heading(self):
        content = "Intro line\n\n## Getting Started with Vite\n\nBody"
        assert derive_title(content) == "Getting Started with Vite"

    def test_h1_heading(self):
        assert derive_title("# Hello World\ntext") == "Hello World"

    def test_falls_back_to_first_line(self):
        assert derive_title("\n\nPlain first line\nsecond") == "Plain first line"

    def test_first_line_is_truncated(self):
        assert len(derive_title("x" * 300)) == 100

    def test_dated_fallback(self):
        assert derive_title("   \n  ", today=date(2026, 3, 1)) == "Blog Post 2026-03-01"


class TestDeriveExcerpt:
    def test_short_content_is_kept(self):
        assert derive_excerpt("# Title\nA short **bold** intro.") == "A short bold intro."

    def test_long_content_cut_at_word_boundary(self):
        content = "word " * 100
        excerpt = derive_excerpt(content)
        assert excerpt.endswith("...")
        assert len(excerpt) <= 203
        assert not excerpt[:-3].endswith(" ")

    def test_strips_code_and_links(self):
        content = "See [the docs](https://example.com).\n```js\nconst a = 1;\n```\nDone."
        assert derive_excerpt(content) == "See the docs. Done."


class TestMetaFields:
    def test_meta_title_truncated_to_60(self):
        meta = derive_meta_title("T" * 80)
        assert len(meta) == 60
        assert meta.endswith("...")

    def test_meta_title_short_unchanged(self):
        assert derive_meta_title("Short") == "Short"

    def test_meta_description_truncated_to_160(self):
        assert len(derive_meta_description("d" * 300)) == 160


class TestTags:
    def test_known_terms_first(self):
        tags = derive_tags("React testing guide", "Use TypeScript with React.")
        assert "react" in tags
        assert "typescript" in tags
        assert "testing" in tags
        assert len(tags) <= 7

    def test_capitalized_fallback(self):
        tags = derive_tags("Zebra notes", "Zebras Roam Over Savannah Hills. Zebras Return.")
        assert tags == ["Zebras", "Roam", "Over", "Savannah", "Hills"]

    def test_merge_tags_deduplicates(self):
        assert merge_tags(["a", "b"], ["b", "c"]) == ["a", "b", "c"]
