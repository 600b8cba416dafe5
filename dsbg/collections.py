from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from .config import SortOrder
from .content import Article

_SORT_KEYS = {
    SortOrder.DATE_CREATED: (lambda a: a.created, True),
    SortOrder.REVERSE_DATE_CREATED: (lambda a: a.created, False),
    SortOrder.DATE_UPDATED: (lambda a: a.updated, True),
    SortOrder.REVERSE_DATE_UPDATED: (lambda a: a.updated, False),
    SortOrder.TITLE: (lambda a: a.title, False),
    SortOrder.REVERSE_TITLE: (lambda a: a.title, True),
    SortOrder.PATH: (lambda a: str(a.original_path), False),
    SortOrder.REVERSE_PATH: (lambda a: str(a.original_path), True),
}


def sort_articles(articles: Iterable[Article], order: SortOrder) -> list[Article]:
    """Return articles sorted by order.

    The sort is stable: articles with equal keys keep their relative order.
    Date orders put the newest first unless reversed; title and path
    orders are ascending unless reversed.
    """
    key, reverse = _SORT_KEYS[SortOrder.parse(order)]
    return sorted(articles, key=key, reverse=reverse)


class ArticleCollection(Sequence[Article]):
    """Lightweight helper for working with lists of Articles in templates and code."""

    def __init__(self, articles: Iterable[Article]):
        self._articles = list(articles)

    def __iter__(self) -> Iterator[Article]:
        return iter(self._articles)

    def __len__(self) -> int:
        return len(self._articles)

    def __getitem__(self, item):
        return self._articles[item]

    def pages(self) -> ArticleCollection:
        """Standalone pages (tagged PAGE), listed apart from posts."""
        return ArticleCollection(a for a in self._articles if a.is_page)

    def posts(self) -> ArticleCollection:
        return ArticleCollection(a for a in self._articles if not a.is_page)

    def with_tag(self, tag: str) -> ArticleCollection:
        return ArticleCollection(a for a in self._articles if tag in a.tags)

    def all_tags(self) -> list[str]:
        """Tags of all posts, first occurrence order, without duplicates."""
        return list(dict.fromkeys(tag for a in self.posts() for tag in a.tags))

    def sorted(self, order: SortOrder) -> ArticleCollection:
        return ArticleCollection(sort_articles(self._articles, order))

    def newest_first(self) -> ArticleCollection:
        """Copy ordered by creation date, newest first."""
        return self.sorted(SortOrder.DATE_CREATED)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ArticleCollection({len(self._articles)} articles)"
