"""Protocol definitions for dsbg.

This module defines the interfaces the build pipeline depends on, so a new
content format or a different template engine can be plugged in without
touching the orchestrator.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .collections import ArticleCollection
    from .content import Article, ParsedContent


@runtime_checkable
class ContentParser(Protocol):
    """Protocol for turning a source file into an Article.

    Implementations handle one content type each (Markdown, HTML).
    """

    source_type: str

    @abstractmethod
    def can_parse(self, path: Path) -> bool:
        """Check if this parser can handle the given file.

        Args:
            path: Path to the source file.

        Returns:
            True if this parser can process the file.
        """
        ...

    @abstractmethod
    def parse(self, path: Path) -> ParsedContent:
        """Parse a file.

        Args:
            path: Path to the source file.

        Returns:
            The article and its raw resource references.

        Raises:
            ContentError: If the file cannot be read or parsed.
        """
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering the site's pages and feed."""

    @abstractmethod
    def render_article(self, article: Article) -> str:
        """Render an article into a full HTML page."""
        ...

    @abstractmethod
    def render_index(self, articles: ArticleCollection) -> str:
        """Render the index page."""
        ...

    @abstractmethod
    def render_rss(self, articles: ArticleCollection) -> str:
        """Render the RSS feed."""
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for discovering content files."""

    @abstractmethod
    def iter_files(self) -> list[Path]:
        """Return every content file to process."""
        ...
