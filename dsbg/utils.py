"""Utility functions for dsbg.

String processing and filesystem helpers shared by the parsers, the
resource resolver and the build orchestrator.

Key functions:
    slugify: Turn a title or path into a URL-safe slug.
    dedupe: Drop repeated items while keeping order.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    is_image: Check if a name has an image extension.
    is_external_url: Check if a reference points outside the site.
    clear_directory: Remove the children of a directory, keeping it.
    copy_file: Copy one file, creating parent directories.
    copy_tree: Copy a directory tree into another directory.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Iterable
from pathlib import Path

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9/\\ -]+")
_DASH_RUN_RE = re.compile(r"-{2,}")
_SEGMENT_TRIM = "-_ "

MARKDOWN_SUFFIXES = (".md",)
HTML_SUFFIXES = (".html",)
CONTENT_SUFFIXES = MARKDOWN_SUFFIXES + HTML_SUFFIXES

IMAGE_SUFFIXES = (
    ".svg",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".ico",
    ".bmp",
    ".tiff",
)

EXTERNAL_PREFIXES = ("http://", "https://", "ftp://", "//")


def slugify(raw: str) -> str:
    """Convert a title or path into a URL-safe slug.

    "#" and "+" are spelled out first so that "C#", "C++" and "C" stay
    distinct. Everything but ASCII letters, digits, dashes, "/", "\\" and
    spaces is dropped, backslashes become slashes, every path segment is
    trimmed and remaining words are joined with single dashes. Applying
    slugify to its own output returns it unchanged.

    Args:
        raw: Arbitrary string.

    Returns:
        Slug; slashes are preserved so paths keep their structure.

    Examples:
        >>> slugify("Hello World!")
        'Hello-World'

        >>> slugify("C# vs C++")
        'Csharp-vs-Cplusplus'

        >>> slugify("notes\\\\2024 review/draft one")
        'notes/2024-review/draft-one'
    """
    text = raw.replace("#", "sharp").replace("+", "plus")
    text = _UNSAFE_CHARS_RE.sub("", text)
    text = text.replace("\\", "/")
    text = "/".join(piece.strip(_SEGMENT_TRIM) for piece in text.split("/"))
    words = (piece.strip(_SEGMENT_TRIM) for piece in text.split())
    text = _DASH_RUN_RE.sub("-", "-".join(word for word in words if word))
    text = "/".join(piece.strip(_SEGMENT_TRIM) for piece in text.split("/"))
    return text.strip("-")


def dedupe(items: Iterable[str]) -> list[str]:
    """Return items without repeats, keeping first occurrences in order.

    Args:
        items: Iterable of strings.

    Returns:
        List of unique strings.

    Examples:
        >>> dedupe(["a", "b", "a"])
        ['a', 'b']
    """
    return list(dict.fromkeys(items))


def split_tags(value: str) -> list[str]:
    """Split a comma- or semicolon-delimited tag string.

    Args:
        value: Raw tag string such as "go; web, cli".

    Returns:
        Trimmed, non-empty tags in their original order.

    Examples:
        >>> split_tags("a, b ,c")
        ['a', 'b', 'c']
    """
    pieces = value.replace(";", ",").split(",")
    return [piece.strip() for piece in pieces if piece.strip()]


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .html extension (case-insensitive).
    """
    return path.suffix.lower() in HTML_SUFFIXES


def is_content_file(path: Path) -> bool:
    """Check if a path is a file the pipeline turns into an article."""
    return path.suffix.lower() in CONTENT_SUFFIXES


def is_image(name: str) -> bool:
    """Check if a file name has a common image extension.

    Examples:
        >>> is_image("icons/share.SVG")
        True
    """
    return name.lower().endswith(IMAGE_SUFFIXES)


def is_external_url(value: str) -> bool:
    """Check if a reference points to another host.

    Args:
        value: URL or path.

    Returns:
        True for http, https, ftp and protocol-relative references.
    """
    return value.strip().lower().startswith(EXTERNAL_PREFIXES)


def worker_count() -> int:
    """Number of parallel workers: the logical CPU count, at least 1."""
    return max(1, os.cpu_count() or 1)


def clear_directory(path: Path) -> None:
    """Remove everything inside a directory but keep the directory itself.

    Keeping the directory inode lets servers and editors that hold it open
    keep working, and sidesteps platforms that lock the directory.

    Args:
        path: Directory to empty. Missing directories are ignored.
    """
    if not path.exists():
        return
    for item in path.iterdir():
        if item.is_dir() and not item.is_symlink():
            shutil.rmtree(item)
        else:
            item.unlink()


def is_empty_dir(path: Path) -> bool:
    """Check whether path is missing or a directory without children."""
    if not path.exists():
        return True
    return next(path.iterdir(), None) is None


def copy_file(source: Path, dest: Path) -> None:
    """Copy a file, creating the destination's parent directories.

    Args:
        source: File to copy.
        dest: Destination file path.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, dest)


def copy_tree(source: Path, dest: Path, exclude: Path | None = None) -> None:
    """Copy every file and directory below source into dest.

    Args:
        source: Directory to copy.
        dest: Target directory; created and merged into when it exists.
        exclude: Directory that is never descended into, typically the
            output root when it lives inside the source tree.
    """
    excluded = exclude.resolve() if exclude is not None else None

    def _ignore(directory: str, names: list[str]) -> list[str]:
        if excluded is None:
            return []
        return [name for name in names if (Path(directory) / name).resolve() == excluded]

    shutil.copytree(source, dest, dirs_exist_ok=True, ignore=_ignore)


def is_within(path: Path, root: Path) -> bool:
    """Check whether path lies inside root once both are normalised."""
    try:
        Path(os.path.normpath(path.absolute())).relative_to(
            os.path.normpath(root.absolute())
        )
    except ValueError:
        return False
    return True
