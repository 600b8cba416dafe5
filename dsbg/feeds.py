"""Site-wide artifacts for dsbg.

After all articles are processed, a handful of files describing the whole
site are written to the output root: the index page, the RSS feed and the
search index used by the client-side search.

Classes:
    ArtifactGenerator: Base class for site-wide artifacts.
    SearchIndexGenerator: Writes search_index.json.
    IndexPageGenerator: Writes the index page.
    RSSGenerator: Writes rss.xml.
    ArtifactRegistry: Runs every registered generator.

Functions:
    search_record: One search index entry for an article.
    create_default_registry: Registry with the three default generators.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .collections import ArticleCollection
from .content import Article
from .html_utils import clean_content
from .templates import TemplateEngine

SEARCH_INDEX_FILENAME = "search_index.json"
RSS_FILENAME = "rss.xml"


def search_record(article: Article) -> dict[str, Any]:
    """Build the search index entry for an article.

    Args:
        article: Resolved article.

    Returns:
        Mapping with title, content, description, tags, url and
        html_content keys.
    """
    return {
        "title": article.title,
        "content": clean_content(article.text_content),
        "description": article.description,
        "tags": list(article.tags),
        "url": article.link_to_self,
        "html_content": article.body_html,
    }


class ArtifactGenerator(ABC):
    """Abstract base class for site-wide artifacts.

    New artifacts can be added by creating new subclasses and registering
    them; the build does not need to change.
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this artifact."""
        ...

    @abstractmethod
    def generate(self, articles: ArticleCollection) -> str:
        """Generate the artifact content.

        Args:
            articles: All articles in display order.

        Returns:
            File content.
        """
        ...

    def write(self, output_dir: Path, articles: ArticleCollection) -> Path:
        """Generate and write the artifact to the output directory.

        Args:
            output_dir: Directory to write the file to.
            articles: All articles in display order.

        Returns:
            Path of the written file.
        """
        output_path = output_dir / self.filename
        output_path.write_text(self.generate(articles), encoding="utf-8")
        return output_path


class SearchIndexGenerator(ArtifactGenerator):
    """Writes the JSON search index consumed by search.js."""

    def __init__(self, records: list[dict[str, Any]] | None = None):
        """Initialize the generator.

        Args:
            records: Precomputed records collected during the build. When
                omitted, records are derived from the articles.
        """
        self.records = records

    @property
    def filename(self) -> str:
        return SEARCH_INDEX_FILENAME

    def generate(self, articles: ArticleCollection) -> str:
        records = self.records
        if records is None:
            records = [search_record(article) for article in articles]
        return json.dumps(records, ensure_ascii=False)


class IndexPageGenerator(ArtifactGenerator):
    """Renders the home page listing every article."""

    def __init__(self, engine: TemplateEngine):
        self.engine = engine

    @property
    def filename(self) -> str:
        return self.engine.settings.index_name

    def generate(self, articles: ArticleCollection) -> str:
        return self.engine.render_index(articles)


class RSSGenerator(ArtifactGenerator):
    """Generates an RSS 2.0 feed, newest article first.

    The feed order is independent of the index sort order; the generator
    sorts its own copy of the articles.
    """

    def __init__(self, engine: TemplateEngine):
        self.engine = engine

    @property
    def filename(self) -> str:
        return RSS_FILENAME

    def generate(self, articles: ArticleCollection) -> str:
        return self.engine.render_rss(articles.newest_first())


class ArtifactRegistry:
    """Registry for managing artifact generators.

    Attributes:
        _generators: List of registered generators.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._generators: list[ArtifactGenerator] = []

    def register(self, generator: ArtifactGenerator) -> None:
        """Register an artifact generator.

        Args:
            generator: Generator to register.
        """
        self._generators.append(generator)

    def generate_all(self, output_dir: Path, articles: ArticleCollection) -> list[str]:
        """Write every registered artifact.

        Args:
            output_dir: Directory to write files to.
            articles: All articles in display order.

        Returns:
            List of filenames that were written.
        """
        return [
            generator.write(output_dir, articles).name for generator in self._generators
        ]


def create_default_registry(
    engine: TemplateEngine, records: list[dict[str, Any]] | None = None
) -> ArtifactRegistry:
    """Create a registry with the search index, index page and RSS generators.

    Args:
        engine: Template engine for the HTML and XML artifacts.
        records: Search records collected during the build, in any order.

    Returns:
        Configured ArtifactRegistry.
    """
    registry = ArtifactRegistry()
    registry.register(SearchIndexGenerator(records))
    registry.register(IndexPageGenerator(engine))
    registry.register(RSSGenerator(engine))
    return registry
