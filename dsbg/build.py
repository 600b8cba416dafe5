"""Site building functionality for dsbg.

This module contains the pipeline that turns the input directory into a
static site: every content file is parsed, resolved and rendered on a
thread pool, then the site-wide artifacts are written from the collected
articles.

Key names:
- build_site: Build the whole site.
- process_file: Parse, resolve, render and write one content file.
- ArticleCollector: Thread-safe accumulator for results.
- BuildResult: Outcome of a build.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .assets import copy_site_assets, write_static_assets
from .collections import ArticleCollection, sort_articles
from .config import Settings
from .content import Article, FileContentLoader, HtmlParser, MarkdownParser, ParserRegistry
from .dates import DatePatterns, default_patterns
from .errors import BuildCancelled, BuildError
from .feeds import create_default_registry, search_record
from .renderers import MarkdownRenderer
from .resources import ResourceResolver
from .templates import TemplateEngine
from .themes import save_theme_css
from .utils import clear_directory, is_empty_dir, worker_count

__all__ = ["BuildError", "BuildResult", "ArticleCollector", "build_site", "process_file"]

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        articles: Articles in index order.
        output_dir: Directory where the site was built.
        search_index: Search records, in the same order as articles.
        skipped: Files that failed and were skipped under ignore_errors.
        settings: Settings used for the build, after asset rewrites.
    """

    articles: list[Article]
    output_dir: Path
    search_index: list[dict[str, Any]]
    skipped: list[Path] = field(default_factory=list)
    settings: Settings | None = None


class ArticleCollector:
    """Collects processed articles and their search records.

    Both lists are appended under one lock so they never disagree, whatever
    order the workers finish in.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[tuple[Article, dict[str, Any]]] = []

    def add(self, article: Article) -> None:
        record = search_record(article)
        with self._lock:
            self._entries.append((article, record))

    @property
    def articles(self) -> list[Article]:
        with self._lock:
            return [article for article, _ in self._entries]

    @property
    def search_index(self) -> list[dict[str, Any]]:
        with self._lock:
            return [record for _, record in self._entries]

    def sorted_entries(self, settings: Settings) -> tuple[list[Article], list[dict[str, Any]]]:
        """Articles in settings.sort order and the matching records."""
        with self._lock:
            entries = list(self._entries)
        records = {id(article): record for article, record in entries}
        articles = sort_articles((article for article, _ in entries), settings.sort)
        return articles, [records[id(article)] for article in articles]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def prepare_output_dir(
    settings: Settings, confirm: Callable[[str], bool] | None = None
) -> None:
    """Empty the output directory, asking first unless force_overwrite is set.

    Only the children of the directory are removed.

    Args:
        settings: Build settings.
        confirm: Called with a question when the directory is not empty;
            returning False cancels the build. Without a callable a
            non-empty directory cancels the build.

    Raises:
        BuildCancelled: If the overwrite was refused.
    """
    output_dir = settings.output_path
    if not settings.force_overwrite and not is_empty_dir(output_dir):
        question = f"Output directory '{output_dir}' is not empty. Overwrite?"
        if confirm is None or not confirm(question):
            raise BuildCancelled(output_dir, "operation cancelled by user")
    try:
        clear_directory(output_dir)
    except OSError as exc:
        logger.warning("Failed to clean output directory: %s. Trying to proceed...", exc)


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateSyntaxError":
        return f"Template syntax error: {error_msg}"
    if isinstance(exc, OSError):
        return f"File error: {error_msg}"

    return f"{error_type}: {error_msg}"


def process_file(
    path: Path,
    parsers: ParserRegistry,
    resolver: ResourceResolver,
    engine: TemplateEngine,
) -> Article:
    """Parse, resolve, render and write a single content file.

    Markdown articles are wrapped in the article template; HTML files are
    written unchanged.

    Args:
        path: Source file.
        parsers: Parser registry.
        resolver: Resource resolver shared by all workers.
        engine: Template engine.

    Returns:
        The finished article.

    Raises:
        BuildError: Any failure, attributed to path.
    """
    try:
        article = resolver.resolve(parsers.parse(path))
        if article.source_type == MarkdownParser.source_type:
            article.html_content = engine.render_article(article)
        article.link_to_save.write_text(article.html_content, encoding="utf-8")
    except BuildError:
        raise
    except Exception as exc:
        raise BuildError(path, _format_error_message(exc), exc) from exc
    return article


def build_site(
    settings: Settings,
    clean: bool = True,
    confirm: Callable[[str], bool] | None = None,
    patterns: DatePatterns | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        settings: Build settings.
        clean: Whether to empty the output directory first.
        confirm: Overwrite prompt, see prepare_output_dir.
        patterns: Date patterns; defaults to the shared instance.

    Returns:
        BuildResult with the sorted articles and their search records.

    Raises:
        BuildCancelled: If the user refused to overwrite the output.
        BuildError: On the first failing file unless ignore_errors is set,
            or when the output directory cannot be created.
        TemplateLoadError: If a template is missing or broken.
        ThemeNotFoundError: If the theme is unknown and ignore_errors is off.
    """
    output_dir = settings.output_path
    if clean:
        prepare_output_dir(settings, confirm)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildError(output_dir, f"error creating output directory: {exc}", exc) from exc

    settings = copy_site_assets(settings)
    patterns = patterns or default_patterns()
    engine = TemplateEngine(settings)
    parsers = ParserRegistry(
        [
            MarkdownParser(patterns, MarkdownRenderer(settings.highlight_style)),
            HtmlParser(patterns),
        ]
    )
    resolver = ResourceResolver(settings, patterns)
    files = FileContentLoader(settings.input_path, exclude=output_dir).iter_files()
    logger.debug("Found %d content files in '%s'", len(files), settings.input_path)

    collector = ArticleCollector()
    skipped: list[Path] = []

    def _work(path: Path) -> None:
        collector.add(process_file(path, parsers, resolver, engine))

    executor = ThreadPoolExecutor(max_workers=worker_count())
    try:
        futures = {executor.submit(_work, path): path for path in files}
        for future in as_completed(futures):
            path = futures[future]
            try:
                future.result()
            except BuildError as exc:
                if not settings.ignore_errors:
                    raise
                logger.warning("Error processing file %s: %s", path, exc.message)
                skipped.append(path)
    except BaseException:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    articles, search_index = collector.sorted_entries(settings)
    collection = ArticleCollection(articles)
    create_default_registry(engine, search_index).generate_all(output_dir, collection)
    save_theme_css(
        output_dir,
        settings.theme,
        settings.highlight_style,
        settings.custom_css_path,
        settings.ignore_errors,
    )
    write_static_assets(settings)

    logger.info("Website generated successfully in: %s", output_dir)
    return BuildResult(
        articles=articles,
        output_dir=output_dir,
        search_index=search_index,
        skipped=skipped,
        settings=settings,
    )
