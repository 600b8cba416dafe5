"""Metadata extractors for dsbg.

Markdown files carry metadata in YAML frontmatter; HTML files carry it in
<title>, <meta> and <link rel="canonical"> tags. Both sources are first
reduced to a plain key/value mapping and then run through the same
MetadataDecoder, so a key means the same thing whichever format it came
from.

Key classes:
- FrontmatterExtractor: Splits YAML frontmatter from a Markdown body.
- MetaTagExtractor: Collects metadata from a parsed HTML document.
- MetadataDecoder: Validates each field's shape and converts it.
- ArticleMetadata: The decoded result.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from bs4 import BeautifulSoup

from .dates import DateParseError, DatePatterns, default_patterns
from .utils import dedupe, split_tags

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(
    r"\A﻿?---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

# Lower-cased source key -> ArticleMetadata field.
FIELD_ALIASES = {
    "title": "title",
    "description": "description",
    "created": "created",
    "date": "created",
    "updated": "updated",
    "tags": "tags",
    "keywords": "tags",
    "cover_image": "cover_image",
    "coverimage": "cover_image",
    "coverimagepath": "cover_image",
    "share_url": "share_url",
    "url": "share_url",
    "canonical_url": "canonical_url",
    "canonical": "canonical_url",
}


class FrontmatterError(ValueError):
    """Frontmatter exists but is not a valid YAML mapping."""


@dataclass
class ArticleMetadata:
    """Metadata decoded from frontmatter or meta tags.

    Attributes:
        title: Title, empty when absent.
        description: Short summary.
        tags: Tags in source order, without duplicates.
        created: Creation timestamp in UTC, None when absent or unparseable.
        updated: Update timestamp in UTC.
        cover_image: Cover image path or URL.
        share_url: URL that share buttons should point at.
        canonical_url: Value for rel=canonical.
    """

    title: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    cover_image: str = ""
    share_url: str = ""
    canonical_url: str = ""


class FrontmatterExtractor:
    """Extracts YAML frontmatter from Markdown content.

    Parses YAML frontmatter at the beginning of the file
    (between --- markers).
    """

    def extract(self, content: str) -> tuple[dict[str, Any], str]:
        """Split frontmatter from the body.

        Args:
            content: Full Markdown source.

        Returns:
            Tuple of (frontmatter mapping, remaining body). Files without a
            frontmatter block return an empty mapping and the content as-is.

        Raises:
            FrontmatterError: If the block is not valid YAML or not a mapping.
        """
        match = FRONTMATTER_RE.match(content)
        if not match:
            return {}, content
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError as exc:
            raise FrontmatterError(f"invalid frontmatter: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise FrontmatterError(
                f"frontmatter must be a mapping, got {type(data).__name__}"
            )
        return data, content[match.end() :]


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from content. See FrontmatterExtractor."""
    return FrontmatterExtractor().extract(text)


class MetaTagExtractor:
    """Collects metadata from the head of an HTML document."""

    def extract(self, soup: BeautifulSoup) -> dict[str, Any]:
        """Gather title, meta tags and the canonical link.

        Args:
            soup: Parsed HTML document.

        Returns:
            Mapping of lower-cased meta names to their content values.
        """
        data: dict[str, Any] = {}
        if soup.title is not None and soup.title.string:
            data["title"] = soup.title.string.strip()
        for meta in soup.find_all("meta"):
            name = str(meta.get("name") or meta.get("property") or "").strip().lower()
            content = str(meta.get("content") or "").strip()
            if name and content:
                data[name] = content
        canonical = soup.find("link", rel="canonical", href=True)
        if canonical is not None and "canonical_url" not in data:
            data["canonical_url"] = str(canonical["href"]).strip()
        return data


class MetadataDecoder:
    """Decodes a raw metadata mapping into ArticleMetadata.

    Each field has exactly one decoder that accepts a fixed set of value
    shapes. A value of any other shape is reported and skipped rather than
    aborting the whole file.

    Attributes:
        patterns: Date patterns used for string timestamps.
    """

    def __init__(self, patterns: DatePatterns | None = None):
        """Initialize the decoder.

        Args:
            patterns: Date patterns; defaults to the shared instance.
        """
        self.patterns = patterns or default_patterns()
        self._decoders: dict[str, Callable[[ArticleMetadata, str, Any, Path], None]] = {
            "title": self._decode_text,
            "description": self._decode_text,
            "cover_image": self._decode_text,
            "share_url": self._decode_text,
            "canonical_url": self._decode_text,
            "created": self._decode_timestamp,
            "updated": self._decode_timestamp,
            "tags": self._decode_tags,
        }

    def decode(self, raw: Mapping[str, Any], source: Path) -> ArticleMetadata:
        """Decode every recognised key of raw.

        Keys are matched case-insensitively after trimming whitespace;
        unknown keys and null values are ignored.

        Args:
            raw: Frontmatter or meta tag mapping.
            source: File the mapping came from, for warnings.

        Returns:
            Decoded metadata.
        """
        metadata = ArticleMetadata()
        for key, value in raw.items():
            if value is None:
                continue
            name = FIELD_ALIASES.get(str(key).strip().lower())
            if name is None:
                continue
            self._decoders[name](metadata, name, value, source)
        metadata.tags = dedupe(metadata.tags)
        return metadata

    def _decode_text(
        self, metadata: ArticleMetadata, name: str, value: Any, source: Path
    ) -> None:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            self._skip(name, value, source)
            return
        setattr(metadata, name, str(value).strip())

    def _decode_timestamp(
        self, metadata: ArticleMetadata, name: str, value: Any, source: Path
    ) -> None:
        if isinstance(value, datetime):
            parsed = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
            setattr(metadata, name, parsed.astimezone(timezone.utc))
        elif isinstance(value, date):
            setattr(
                metadata,
                name,
                datetime(value.year, value.month, value.day, tzinfo=timezone.utc),
            )
        elif isinstance(value, str):
            try:
                setattr(metadata, name, self.patterns.datetime_from_string(value))
            except DateParseError as exc:
                logger.warning("Failed to parse '%s' date in '%s': %s", name, source, exc)
        else:
            self._skip(name, value, source)

    def _decode_tags(
        self, metadata: ArticleMetadata, name: str, value: Any, source: Path
    ) -> None:
        if isinstance(value, str):
            metadata.tags = split_tags(value)
        elif isinstance(value, list):
            tags = []
            for item in value:
                if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                    self._skip(f"{name} item", item, source)
                    continue
                text = str(item).strip()
                if text:
                    tags.append(text)
            metadata.tags = tags
        else:
            self._skip(name, value, source)

    @staticmethod
    def _skip(name: str, value: Any, source: Path) -> None:
        logger.warning(
            "Ignoring '%s' in '%s': unexpected %s value",
            name,
            source,
            type(value).__name__,
        )
