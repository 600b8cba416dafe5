"""Content processing for dsbg.

This module turns source files (Markdown and HTML) into Article objects.
Each file type has its own parser; a registry picks the parser from the
file extension.

Key classes:
- Article: Dataclass representing one article or page.
- MarkdownParser: Parses Markdown with YAML frontmatter.
- HtmlParser: Parses standalone HTML documents.
- ParserRegistry: Chooses the parser for a path.
- FileContentLoader: Discovers content files below the input directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from .dates import DateParseError, DatePatterns, default_patterns
from .errors import ContentError
from .extractors import (
    ArticleMetadata,
    FrontmatterError,
    FrontmatterExtractor,
    MetadataDecoder,
    MetaTagExtractor,
)
from .html_utils import body_html, extract_resources, html_to_text, parse_html
from .renderers import MarkdownRenderer
from .utils import dedupe, is_content_file, is_html, is_markdown, is_within

logger = logging.getLogger(__name__)

PAGE_TAG = "PAGE"


@dataclass
class Article:
    """Represents a single article or page with all its metadata.

    Attributes:
        title: Human-readable title, never empty.
        description: Short description.
        tags: Tags without duplicates, in source order.
        created: Creation time (UTC).
        updated: Last update time (UTC).
        text_content: Plain source text used for search.
        html_content: Final HTML written to disk.
        body_html: Renderable HTML fragment used for feeds and search.
        original_path: Path to the source file.
        source_type: "markdown" or "html".
        link_to_self: Site-relative URL of the written page, no leading slash.
        link_to_save: Absolute path of the output file.
        cover_image: Cover image path or URL.
        share_url: URL share buttons point at, overriding link_to_self.
        canonical_url: Value for rel=canonical.
    """

    title: str
    description: str
    tags: list[str]
    created: datetime
    updated: datetime
    text_content: str
    html_content: str
    body_html: str
    original_path: Path
    source_type: str
    link_to_self: str = ""
    link_to_save: Path | None = None
    cover_image: str = ""
    share_url: str = ""
    canonical_url: str = ""

    @property
    def is_page(self) -> bool:
        """Whether the article is a standalone page rather than a post."""
        return PAGE_TAG in self.tags


@dataclass
class ParsedContent:
    """A freshly parsed article and the resources it references.

    Attributes:
        article: The article, not yet resolved to an output path.
        resources: Raw resource references in document order.
    """

    article: Article
    resources: list[str] = field(default_factory=list)


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ContentError(path, "file is not valid UTF-8", exc) from exc
    except OSError as exc:
        raise ContentError(path, f"failed to read file: {exc}", exc) from exc


def _file_mtime(path: Path) -> datetime:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except OSError as exc:
        raise ContentError(path, f"failed to get file info: {exc}", exc) from exc


class _BaseParser:
    """Shared fallback logic for the concrete parsers."""

    source_type = ""

    def __init__(self, patterns: DatePatterns | None = None):
        self.patterns = patterns or default_patterns()
        self.decoder = MetadataDecoder(self.patterns)

    def _date_from_path(self, path: Path) -> datetime | None:
        # File name first; the full path may hold unrelated digits.
        for candidate in (path.name, str(path)):
            try:
                return self.patterns.datetime_from_string(candidate)
            except DateParseError:
                continue
        return None

    def _build_article(
        self,
        path: Path,
        metadata: ArticleMetadata,
        text_content: str,
        html_content: str,
        fragment: str,
        now: datetime | None = None,
    ) -> Article:
        mtime = _file_mtime(path)
        created = metadata.created or self._date_from_path(path) or mtime
        updated = metadata.updated or mtime

        now = now or datetime.now(timezone.utc)
        if created > now:
            logger.warning(
                "Creation date %s of '%s' is in the future; using the current time",
                created.isoformat(),
                path,
            )
            created = now

        return Article(
            title=metadata.title or path.stem,
            description=metadata.description,
            tags=dedupe(metadata.tags),
            created=created,
            updated=updated,
            text_content=text_content,
            html_content=html_content,
            body_html=fragment,
            original_path=path,
            source_type=self.source_type,
            cover_image=metadata.cover_image,
            share_url=metadata.share_url,
            canonical_url=metadata.canonical_url,
        )


class MarkdownParser(_BaseParser):
    """Parses Markdown files with optional YAML frontmatter.

    Attributes:
        renderer: MarkdownRenderer used for the body.
    """

    source_type = "markdown"

    def __init__(
        self,
        patterns: DatePatterns | None = None,
        renderer: MarkdownRenderer | None = None,
    ):
        """Initialize the parser.

        Args:
            patterns: Date patterns for string dates and path fallbacks.
            renderer: Markdown renderer; a default one is created if omitted.
        """
        super().__init__(patterns)
        self.renderer = renderer or MarkdownRenderer()
        self.frontmatter = FrontmatterExtractor()

    def can_parse(self, path: Path) -> bool:
        return is_markdown(path)

    def parse(self, path: Path) -> ParsedContent:
        """Parse a Markdown file.

        Args:
            path: Source file.

        Returns:
            ParsedContent with the article and every image/link destination.

        Raises:
            ContentError: If the file cannot be read or its frontmatter is
                invalid.
        """
        source = _read_source(path)
        try:
            raw, body = self.frontmatter.extract(source)
        except FrontmatterError as exc:
            raise ContentError(path, str(exc), exc) from exc
        metadata = self.decoder.decode(raw, path)
        rendered = self.renderer.render(body)
        article = self._build_article(
            path,
            metadata,
            text_content=body,
            html_content=rendered.html,
            fragment=rendered.html,
        )
        return ParsedContent(article, rendered.resources)


class HtmlParser(_BaseParser):
    """Parses standalone HTML documents.

    The page is published unchanged; metadata comes from <title>, <meta>
    tags and <link rel="canonical">.
    """

    source_type = "html"

    def __init__(self, patterns: DatePatterns | None = None):
        super().__init__(patterns)
        self.meta_tags = MetaTagExtractor()

    def can_parse(self, path: Path) -> bool:
        return is_html(path)

    def parse(self, path: Path) -> ParsedContent:
        """Parse an HTML file.

        Args:
            path: Source file.

        Returns:
            ParsedContent with the article and the document's resources.

        Raises:
            ContentError: If the file cannot be read or parsed.
        """
        source = _read_source(path)
        try:
            soup: BeautifulSoup = parse_html(source)
        except ParserRejectedMarkup as exc:
            raise ContentError(path, f"failed to parse HTML: {exc}", exc) from exc
        metadata = self.decoder.decode(self.meta_tags.extract(soup), path)
        article = self._build_article(
            path,
            metadata,
            text_content=html_to_text(source),
            html_content=source,
            fragment=body_html(soup),
        )
        return ParsedContent(article, extract_resources(soup))


class ParserRegistry:
    """Registry for content parsers.

    New file types are supported by registering another parser; the first
    parser whose can_parse accepts a path wins.
    """

    def __init__(self, parsers: list | None = None):
        """Initialize the registry.

        Args:
            parsers: Parsers in priority order. Defaults to Markdown and HTML.
        """
        self._parsers: list = []
        for parser in parsers if parsers is not None else [MarkdownParser(), HtmlParser()]:
            self.register(parser)

    def register(self, parser) -> None:
        """Register a new parser.

        Args:
            parser: A ContentParser implementation.
        """
        self._parsers.append(parser)

    def get_parser(self, path: Path):
        """Get the parser for a file.

        Args:
            path: Path to the source file.

        Returns:
            The first parser that accepts the file, or None.
        """
        for parser in self._parsers:
            if parser.can_parse(path):
                return parser
        return None

    def parse(self, path: Path) -> ParsedContent:
        """Parse path with the matching parser.

        Raises:
            ContentError: If no parser handles the file type.
        """
        parser = self.get_parser(path)
        if parser is None:
            raise ContentError(path, f"unsupported file type: {path.suffix}")
        return parser.parse(path)


class FileContentLoader:
    """Discovers content files in a directory.

    Attributes:
        input_dir: Directory containing content.
        exclude: Directory whose files are never content, usually the
            output directory when it lives inside input_dir.
    """

    def __init__(self, input_dir: Path, exclude: Path | None = None):
        """Initialize the content loader.

        Args:
            input_dir: Path to the content directory.
            exclude: Optional directory to skip.
        """
        self.input_dir = input_dir
        # An exclude that contains input_dir would hide every file.
        if exclude is not None and is_within(input_dir, exclude):
            exclude = None
        self.exclude = exclude

    def iter_files(self) -> list[Path]:
        """Return every .md and .html file below input_dir.

        Extensions are matched case-insensitively and files below exclude
        are skipped. The list is sorted so that repeated builds see files
        in the same order.

        Returns:
            List of paths to content files.
        """
        return sorted(
            path
            for path in self.input_dir.rglob("*")
            if path.is_file()
            and is_content_file(path)
            and not (self.exclude is not None and is_within(path, self.exclude))
        )
