from datetime import datetime, timezone
from pathlib import Path

import pytest

from dsbg.collections import ArticleCollection, sort_articles
from dsbg.config import SortOrder
from dsbg.content import Article
from dsbg.errors import ConfigError


def make_article(title, created, updated=None, tags=None, path=None):
    return Article(
        title=title,
        description="",
        tags=tags or [],
        created=datetime(*created, tzinfo=timezone.utc),
        updated=datetime(*(updated or created), tzinfo=timezone.utc),
        text_content="",
        html_content="",
        body_html="",
        original_path=Path(path or f"content/{title}.md"),
        source_type="markdown",
    )


@pytest.fixture
def articles():
    return [
        make_article("beta", (2024, 2, 1), (2024, 3, 1), path="content/c.md"),
        make_article("alpha", (2024, 1, 1), (2024, 5, 1), path="content/a.md"),
        make_article("gamma", (2024, 3, 1), (2024, 4, 1), path="content/b.md"),
    ]


def titles(items):
    return [a.title for a in items]


@pytest.mark.parametrize(
    "order, expected",
    [
        ("date-created", ["gamma", "beta", "alpha"]),
        ("reverse-date-created", ["alpha", "beta", "gamma"]),
        ("date-updated", ["alpha", "gamma", "beta"]),
        ("reverse-date-updated", ["beta", "gamma", "alpha"]),
        ("title", ["alpha", "beta", "gamma"]),
        ("reverse-title", ["gamma", "beta", "alpha"]),
        ("path", ["alpha", "gamma", "beta"]),
        ("reverse-path", ["beta", "gamma", "alpha"]),
    ],
)
def test_sort_orders(articles, order, expected):
    assert titles(sort_articles(articles, SortOrder.parse(order))) == expected


def test_sort_is_stable_for_equal_keys():
    first = make_article("same", (2024, 1, 1), path="content/1.md")
    second = make_article("same", (2024, 1, 1), path="content/2.md")
    result = sort_articles([first, second], SortOrder.TITLE)
    assert result[0] is first
    assert result[1] is second


def test_sort_order_parse():
    assert SortOrder.parse(" Title ") is SortOrder.TITLE
    with pytest.raises(ConfigError, match="unsupported sort order"):
        SortOrder.parse("random")


def test_collection_pages_posts_and_tags():
    page = make_article("about", (2024, 1, 1), tags=["PAGE", "meta"])
    post_a = make_article("a", (2024, 1, 2), tags=["go", "web"])
    post_b = make_article("b", (2024, 1, 3), tags=["web", "cli"])
    collection = ArticleCollection([page, post_a, post_b])

    assert titles(collection.pages()) == ["about"]
    assert titles(collection.posts()) == ["a", "b"]
    assert collection.all_tags() == ["go", "web", "cli"]
    assert titles(collection.with_tag("web")) == ["a", "b"]
    assert titles(collection.newest_first()) == ["b", "a", "about"]
    assert len(collection) == 3
    assert collection[0] is page
