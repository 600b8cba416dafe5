"""Output path resolution and resource copying.

After a file is parsed, the resolver decides where its page goes, derives
tags from its directory, and copies the images, downloads and other files
the article references so relative links keep working in the output.

Key classes:
- ResourceResolver: Resolves one parsed article against the settings.
- OutputPathRegistry: Detects two sources claiming the same output file.
"""

from __future__ import annotations

import logging
import os
import posixpath
import threading
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from .config import Settings
from .content import Article, ParsedContent
from .dates import DatePatterns, default_patterns
from .errors import ResourceError
from .utils import copy_file, copy_tree, dedupe, is_external_url, is_html, is_within, slugify

logger = logging.getLogger(__name__)

NON_RESOURCE_PREFIXES = ("#", "mailto:", "tel:", "sms:", "www.", "javascript:", "data:")
CONTENT_LINK_SUFFIXES = (".md", ".markdown", ".html", ".htm")
FALLBACK_SLUG = "article"


def clean_resource_reference(ref: str) -> str | None:
    """Reduce a raw reference to a relative file path worth copying.

    Args:
        ref: Value of a src/href/data attribute or a Markdown destination.

    Returns:
        Decoded path relative to the article's directory, or None when the
        reference is external, not a file, or a link to other content.

    Examples:
        >>> clean_resource_reference("images/my%20cat.png?v=2#top")
        'images/my cat.png'

        >>> clean_resource_reference("https://example.com/a.png") is None
        True

        >>> clean_resource_reference("../other-post.md") is None
        True
    """
    ref = ref.strip()
    if not ref:
        return None
    lowered = ref.lower()
    if is_external_url(lowered) or lowered.startswith(NON_RESOURCE_PREFIXES):
        return None
    parts = urlsplit(ref)
    if parts.scheme or parts.netloc:
        return None
    path = unquote(parts.path).lstrip("/")
    if not path:
        return None
    suffix = PurePosixPath(path).suffix.lower()
    if not suffix or suffix in CONTENT_LINK_SUFFIXES:
        return None
    return path


class OutputPathRegistry:
    """Thread-safe record of which source produced which output file."""

    def __init__(self):
        self._claims: dict[Path, Path] = {}
        self._lock = threading.Lock()

    def claim(self, output_file: Path, source: Path) -> None:
        """Reserve output_file for source.

        Raises:
            ResourceError: If another source already claimed the same file.
        """
        with self._lock:
            owner = self._claims.setdefault(output_file, source)
        if owner != source:
            raise ResourceError(
                source,
                f"output path '{output_file}' collides with '{owner}'",
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)


class ResourceResolver:
    """Resolves output paths, path tags and resources for parsed articles.

    One resolver is shared by all build workers; the only shared state is
    its OutputPathRegistry.

    Attributes:
        settings: Build settings.
        patterns: Date patterns used to strip dates from titles and paths.
        registry: Output path registry for collision detection.
    """

    def __init__(
        self,
        settings: Settings,
        patterns: DatePatterns | None = None,
        registry: OutputPathRegistry | None = None,
    ):
        self.settings = settings
        self.patterns = patterns or default_patterns()
        self.registry = registry or OutputPathRegistry()

    def resolve(self, parsed: ParsedContent) -> Article:
        """Resolve an article in place and copy its resources.

        Args:
            parsed: Output of a content parser.

        Returns:
            The same article with title, tags, link_to_self, link_to_save and
            cover_image updated.

        Raises:
            ResourceError: On output path collisions, and on missing or
                uncopyable resources unless ignore_errors is set.
        """
        article = parsed.article
        settings = self.settings
        relative = Path(os.path.relpath(article.original_path, settings.input_path))

        if settings.remove_date_from_titles:
            title = self.patterns.remove_dates(article.title)
            if title:
                article.title = title

        if settings.extract_tags_from_paths:
            article.tags = dedupe(article.tags + self.path_tags(relative))

        output_file = self.output_file_for(relative)
        self.registry.claim(output_file, article.original_path)
        output_dir = output_file.parent
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResourceError(
                article.original_path, f"failed to create '{output_dir}': {exc}", exc
            ) from exc

        source_dir = article.original_path.parent
        whole_directory = is_html(article.original_path) and article.is_page
        if whole_directory:
            self._copy_directory(article, source_dir, output_dir)
        else:
            for ref in parsed.resources:
                self._copy_resource(article, ref, source_dir, output_dir)

        article.link_to_self = output_file.relative_to(settings.output_path).as_posix()
        article.link_to_save = output_file.absolute()

        cover = article.cover_image
        if cover and not is_external_url(cover) and not cover.lower().startswith("http"):
            # A leading "/" is relative to the article, not the filesystem.
            local = unquote(urlsplit(cover).path).lstrip("/")
            if local:
                if not whole_directory:
                    self._copy_cover(article, local, source_dir, output_dir)
                article.cover_image = posixpath.normpath(
                    posixpath.join(posixpath.dirname(article.link_to_self), local)
                )
        return article

    def path_tags(self, relative: Path) -> list[str]:
        """Tags from the directory components of a content-relative path.

        Examples:
            For "linux/2024-01-15-setup.md" the tags are ["linux"].
        """
        dateless = self.patterns.remove_dates(relative.as_posix())
        pieces = [piece.strip("-_ ") for piece in posixpath.normpath(dateless).split("/")]
        return [piece for piece in pieces[:-1] if piece and piece != "."]

    def output_file_for(self, relative: Path) -> Path:
        """Output file for a content-relative source path.

        Args:
            relative: Source path relative to the input directory.

        Returns:
            output_path/<slug>/<index_name>.
        """
        stem = relative.with_suffix("").as_posix()
        if self.settings.remove_date_from_paths:
            dateless = self.patterns.remove_dates(stem)
            if "\\" not in dateless and "//" not in dateless:
                stem = dateless
        segments = [
            segment
            for segment in slugify(stem).split("/")
            if segment and segment not in (".", "..")
        ]
        slug = "/".join(segments) or FALLBACK_SLUG
        return self.settings.output_path / slug / self.settings.index_name

    def _fail(self, article: Article, message: str, error: Exception | None = None) -> None:
        if not self.settings.ignore_errors:
            raise ResourceError(article.original_path, message, error)
        logger.warning("%s: %s", article.original_path, message)

    def _copy_directory(self, article: Article, source_dir: Path, output_dir: Path) -> None:
        try:
            copy_tree(source_dir, output_dir, exclude=self.settings.output_path)
        except OSError as exc:
            self._fail(
                article,
                f"failed to copy directory for HTML page '{article.title}': {exc}",
                exc,
            )

    def _copy_resource(
        self, article: Article, ref: str, source_dir: Path, output_dir: Path
    ) -> None:
        path = clean_resource_reference(ref)
        if path is None:
            return
        source = source_dir / path
        dest = output_dir / path
        if not is_within(dest, self.settings.output_path):
            logger.debug("Skipping '%s' in '%s': outside the output directory", ref, article.title)
            return
        if not source.exists():
            self._fail(
                article,
                f"resource file '{source}' not found (referenced in '{article.title}')",
            )
            return
        if source.is_dir():
            return
        try:
            copy_file(source, dest)
        except OSError as exc:
            self._fail(article, f"failed to copy resource '{source}': {exc}", exc)

    def _copy_cover(
        self, article: Article, cover: str, source_dir: Path, output_dir: Path
    ) -> None:
        source = source_dir / cover
        dest = output_dir / cover
        if not is_within(dest, self.settings.output_path):
            logger.warning("Cover image '%s' of '%s' is outside the output directory", cover, article.title)
            return
        try:
            copy_file(source, dest)
        except OSError as exc:
            self._fail(
                article,
                f"failed to read cover image '{source}' for article '{article.title}': {exc}",
                exc,
            )
