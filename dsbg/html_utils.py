"""HTML utility functions for dsbg.

This module gathers every piece of HTML handling the pipeline needs:
finding resource references, wrapping tables, extracting body markup and
plain text, and building URLs for feeds and share buttons.

BeautifulSoup with the stdlib "html.parser" backend is used for all tree
work so that output keeps the author's markup instead of a normalised
document.

Functions:
    parse_html: Parse markup into a BeautifulSoup tree.
    extract_resources: Collect src/href/data values of resource-bearing tags.
    wrap_tables: Wrap every <table> in <div class="table-wrapper">.
    body_html: Return the children of <body>, or the whole document.
    html_to_text: Strip markup to plain text.
    clean_content: Normalise text for the search index.
    extract_first_link: Return the first anchor href.
    join_root_url: Join a base URL with a path.
    to_absolute_url: Make a site-relative URL absolute.
    safe_rss_url: Absolute, properly escaped URL for feeds.
    gen_relative_link: Link from an article back up to a root-level file.
    clean_rss_content: Strip page chrome from article HTML for feed readers.
"""

from __future__ import annotations

import html
import posixpath
import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Doctype

# Tags that can point at a resource and the attributes that hold the pointer.
RESOURCE_ATTRIBUTES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("img", ("src",)),
    ("script", ("src",)),
    ("link", ("href",)),
    ("video", ("src", "poster")),
    ("audio", ("src",)),
    ("source", ("src",)),
    ("track", ("src",)),
    ("object", ("data",)),
    ("iframe", ("src",)),
    ("embed", ("src",)),
    ("a", ("href",)),
)

_RESOURCE_ATTRIBUTE_MAP = dict(RESOURCE_ATTRIBUTES)

_NON_TEXT_TAGS = ("script", "style", "noscript", "template", "head")
_HEAD_ONLY_TAGS = ("head", "title", "meta", "script", "style")

_TAG_RE = re.compile(r"<[^>]+>")
_MARKUP_NOISE_RE = re.compile(r"[#*_`>|~\[\]{}]+|!\[|\]\(")

# Stripped from feed content: active content and form controls.
_RSS_DROP_TAGS = ("script", "style", "iframe", "form", "object", "embed", "input", "button")
_RSS_UI_ICONS = ("copy.svg", "rss.svg")
_RSS_URL_ATTRIBUTES = {
    "img": "src",
    "audio": "src",
    "video": "src",
    "source": "src",
    "track": "src",
    "a": "href",
    "link": "href",
    "object": "data",
}
_RSS_DIRTY_ATTRIBUTES = ("style", "class", "id")
_RSS_SKIP_PREFIXES = ("mailto:", "tel:", "#", "data:", "javascript:")

_PATH_SAFE_CHARS = "!$&'()*+,;=:@~"


def parse_html(markup: str) -> BeautifulSoup:
    """Parse markup into a BeautifulSoup tree using the stdlib parser."""
    return BeautifulSoup(markup, "html.parser")


def extract_resources(soup: BeautifulSoup) -> list[str]:
    """Collect every resource reference in document order.

    Args:
        soup: Parsed document.

    Returns:
        Raw attribute values, unfiltered; external URLs and anchors are
        included and left for the resolver to discard.
    """
    resources: list[str] = []
    for tag in soup.find_all(list(_RESOURCE_ATTRIBUTE_MAP)):
        for attribute in _RESOURCE_ATTRIBUTE_MAP[tag.name]:
            value = tag.get(attribute)
            if isinstance(value, str):
                resources.append(value)
    return resources


def wrap_tables(markup: str) -> str:
    """Wrap every <table> element in <div class="table-wrapper">.

    Tables already sitting in a wrapper are left alone, so the function can
    be applied twice without nesting wrappers.

    Args:
        markup: HTML fragment or document.

    Returns:
        HTML with the tables wrapped and everything else untouched.
    """
    soup = parse_html(markup)
    tables = soup.find_all("table")
    if not tables:
        return markup
    for table in tables:
        parent = table.parent
        if (
            parent is not None
            and parent.name == "div"
            and "table-wrapper" in (parent.get("class") or [])
        ):
            continue
        table.wrap(soup.new_tag("div", attrs={"class": "table-wrapper"}))
    return str(soup)


def body_html(soup: BeautifulSoup) -> str:
    """Return the markup inside <body>, or the whole document without <head>.

    Args:
        soup: Parsed document.

    Returns:
        Renderable HTML fragment.
    """
    body = soup.body
    if body is not None:
        return body.decode_contents()
    fragment = parse_html(str(soup))
    for tag in fragment.find_all(_HEAD_ONLY_TAGS):
        if not tag.decomposed:
            tag.decompose()
    for tag in fragment.find_all("html"):
        tag.unwrap()
    for node in list(fragment.contents):
        if isinstance(node, Doctype):
            node.extract()
    return str(fragment).strip()


def html_to_text(markup: str) -> str:
    """Convert HTML to plain text.

    Args:
        markup: HTML document or fragment.

    Returns:
        Visible text with whitespace collapsed.
    """
    soup = parse_html(markup)
    for tag in soup.find_all(_NON_TEXT_TAGS):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())


def clean_content(text: str) -> str:
    """Normalise article text for full-text search.

    Removes HTML tags and Markdown punctuation and collapses whitespace so
    the client-side index sees plain words.

    Args:
        text: Raw Markdown or plain text.

    Returns:
        Single-spaced plain text.

    Examples:
        >>> clean_content("# Title\\n\\nSome **bold** <em>text</em>")
        'Title Some bold text'
    """
    text = html.unescape(_TAG_RE.sub(" ", text))
    text = _MARKUP_NOISE_RE.sub(" ", text)
    return " ".join(text.split())


def extract_first_link(markup: str) -> str:
    """Return the href of the first anchor in markup, or an empty string."""
    anchor = parse_html(markup).find("a", href=True)
    if anchor is None:
        return ""
    return str(anchor["href"])


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def to_absolute_url(url: str, base_url: str) -> str:
    """Make a site-relative URL absolute; absolute URLs pass through.

    Examples:
        >>> to_absolute_url("posts/hello/index.html", "https://example.com/")
        'https://example.com/posts/hello/index.html'

        >>> to_absolute_url("https://cdn.example.com/x.png", "https://example.com")
        'https://cdn.example.com/x.png'
    """
    if not url:
        return ""
    if url.startswith(("http://", "https://")):
        return url
    return join_root_url(base_url, url)


def encode_component(value: str) -> str:
    """Percent-encode a value for use inside a query string."""
    return quote(value, safe="")


def encode_path_segments(path: str) -> str:
    """Percent-encode each segment of a path, keeping the slashes.

    Examples:
        >>> encode_path_segments("my posts/hello world.png")
        'my%20posts/hello%20world.png'
    """
    return "/".join(quote(segment, safe=_PATH_SAFE_CHARS) for segment in path.split("/"))


def safe_rss_url(url: str, base_url: str) -> str:
    """Resolve a URL against base_url and escape its path for XML feeds.

    Args:
        url: Relative or absolute URL.
        base_url: Site base URL used for relative input.

    Returns:
        Absolute URL with an escaped path, or "" for empty input.
    """
    if not url:
        return ""
    target = url
    if not url.startswith(("http://", "https://", "//")):
        target = f"{base_url.rstrip('/')}/{url.lstrip('/')}"
    parts = urlsplit(target)
    path = encode_path_segments(unquote(parts.path))
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def gen_relative_link(link_to_self: str, name: str) -> str:
    """Build a link from an article page up to a file at the site root.

    Args:
        link_to_self: The article's site-relative path, e.g. "post/index.html".
        name: Root-level file name, e.g. "style.css".

    Returns:
        Relative link such as "../style.css"; absolute URLs pass through.

    Examples:
        >>> gen_relative_link("notes/hello/index.html", "style.css")
        '../../style.css'
    """
    if name.startswith(("http://", "https://")):
        return name
    link = link_to_self.lower().replace("http://", "").replace("https://", "")
    link = link.replace("\\", "/")
    depth = len(link.split("/")) - 1
    return "../" * depth + name


def _resolve_feed_url(value: str, link_to_self: str, base_url: str) -> str:
    if value.startswith(("http://", "https://", "//")):
        return safe_rss_url(value, "")
    base_dir = posixpath.dirname(link_to_self)
    anchored = posixpath.normpath(posixpath.join("/", base_dir, value))
    return safe_rss_url(anchored.lstrip("/"), base_url)


def clean_rss_content(markup: str, link_to_self: str, base_url: str) -> str:
    """Prepare article HTML for inclusion in an RSS item.

    Removes active content, UI icons and presentational attributes, and
    rewrites relative URLs to absolute ones so feed readers can load images
    and follow links.

    Args:
        markup: Article HTML (fragment or full page).
        link_to_self: Site-relative path of the article page.
        base_url: Public base URL of the site.

    Returns:
        Cleaned HTML fragment, safe to place inside CDATA.
    """
    soup = parse_html(markup)
    for tag in soup.find_all(_RSS_DROP_TAGS):
        if not tag.decomposed:
            tag.decompose()
    for image in soup.find_all("img"):
        src = image.get("src") or ""
        if any(icon in src for icon in _RSS_UI_ICONS):
            image.decompose()

    for tag in soup.find_all(True):
        url_attribute = _RSS_URL_ATTRIBUTES.get(tag.name)
        for key in list(tag.attrs):
            lowered = key.lower()
            if lowered in _RSS_DIRTY_ATTRIBUTES or lowered.startswith("on"):
                del tag.attrs[key]
                continue
            if lowered != url_attribute:
                continue
            value = str(tag.attrs[key]).strip()
            if not value or value.startswith(_RSS_SKIP_PREFIXES):
                continue
            tag.attrs[key] = _resolve_feed_url(value, link_to_self, base_url)

    target = soup.body if soup.body is not None else soup
    for tag in target.find_all(["head", "title", "meta"]):
        tag.decompose()
    rendered = target.decode_contents() if soup.body is not None else str(soup)
    # "]]>" would end the CDATA section early.
    return rendered.replace("]]>", "]]]]><![CDATA[>")
