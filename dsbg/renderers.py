"""Markdown rendering for dsbg.

The Markdown body of an article is rendered with mistune. A custom
HTMLRenderer records every image and link destination while rendering so
the resolver can later copy the files an article points at.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML and collects resource references.
- RenderedMarkdown: Result of a render.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import extract_resources, parse_html, wrap_tables
from .utils import dedupe

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url", "task_lists", "math"]

_TAG_RE = re.compile(r"<[^>]+>")


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = html.unescape(_TAG_RE.sub("", text)).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


@dataclass
class RenderedMarkdown:
    """Output of MarkdownRenderer.render.

    Attributes:
        html: Rendered HTML fragment with tables wrapped.
        resources: Raw resource references in document order, deduplicated.
    """

    html: str
    resources: list[str] = field(default_factory=list)


class _ArticleRenderer(mistune.HTMLRenderer):
    """HTML renderer that records resources and highlights code.

    Attributes:
        resources: Image and link destinations seen while rendering.
        highlight_style: Pygments style name used for code blocks.
    """

    def __init__(self, highlight_style: str = "default"):
        super().__init__(escape=False)
        self.resources: list[str] = []
        self.highlight_style = highlight_style
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        self.resources.append(url)
        return super().image(text, url, title)

    def link(self, text: str, url: str, title: str | None = None) -> str:
        self.resources.append(url)
        return super().link(text, url, title)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'go').

        Returns:
            HTML string with highlighted code, or a plain escaped block when
            the language is unknown.
        """
        language = info.split()[0] if info and info.strip() else ""
        if language:
            try:
                lexer = get_lexer_by_name(language, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight", style=self.highlight_style)
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{html.escape(language)}"' if language else ""
        return f"<pre><code{lang_class}>{html.escape(code, quote=False)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Tables, strikethrough, footnotes, autolinks, task lists and math are
    enabled; single newlines become <br> and raw HTML passes through.

    Attributes:
        highlight_style: Pygments style for fenced code blocks.
    """

    def __init__(self, highlight_style: str = "default"):
        """Initialize the renderer.

        Args:
            highlight_style: Pygments style name.
        """
        self.highlight_style = highlight_style

    def render(self, content: str) -> RenderedMarkdown:
        """Render Markdown content to HTML.

        Args:
            content: Markdown body without frontmatter.

        Returns:
            RenderedMarkdown with the HTML fragment and every image/link
            destination, including src/href values of embedded raw HTML.
        """
        renderer = _ArticleRenderer(self.highlight_style)
        markdown = mistune.create_markdown(
            renderer=renderer, hard_wrap=True, plugins=MARKDOWN_PLUGINS
        )
        rendered = markdown(content)
        resources = renderer.resources + extract_resources(parse_html(rendered))
        return RenderedMarkdown(html=wrap_tables(rendered), resources=dedupe(resources))


def render_markdown(content: str) -> str:
    """Render a Markdown snippet, such as the site description, to HTML."""
    return MarkdownRenderer().render(content).html
