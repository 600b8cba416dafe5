"""Template rendering engine for dsbg.

This module uses Jinja2 to render the article page, the index page and
the RSS feed. The bundled templates live in dsbg/assets/templates; a user
templates directory, when configured, is searched first so any of them
can be overridden by a file of the same name.

Key names:
- TemplateEngine: Loads the three templates once and renders them.
- build_share_url: Fill a share button URL template for an article.
- article_schema_type: schema.org type for structured data.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from .collections import ArticleCollection
from .config import Settings, ShareButton
from .content import Article
from .errors import TemplateLoadError
from .html_utils import (
    clean_rss_content,
    encode_component,
    encode_path_segments,
    extract_first_link,
    gen_relative_link,
    join_root_url,
    safe_rss_url,
    to_absolute_url,
)
from .utils import is_image

TEMPLATES_DIR = Path(__file__).parent / "assets" / "templates"

ARTICLE_TEMPLATE = "article.html"
INDEX_TEMPLATE = "index.html"
RSS_TEMPLATE = "rss.xml"

_HASHTAG_CLEANUP_RE = re.compile(r"\W+")
_NEWS_TAGS = ("news", "article")


def article_schema_type(article: Article) -> str:
    """Return the schema.org type used in an article's structured data.

    Examples:
        Articles tagged "news" or "article" are a NewsArticle; everything
        else is a BlogPosting.
    """
    for tag in article.tags:
        if tag.strip().lower() in _NEWS_TAGS:
            return "NewsArticle"
    return "BlogPosting"


def _hashtags(tags: Iterable[str]) -> list[str]:
    cleaned = (_HASHTAG_CLEANUP_RE.sub("", tag) for tag in tags)
    return [tag for tag in cleaned if tag]


def build_share_url(url_template: str, article: Article, settings: Settings) -> str:
    """Fill a share button URL template for an article.

    Placeholders:
        {URL}: public URL of the article, or its share_url.
        {TITLE}, {DESCRIPTION}, {TEXT}: article fields.
        {LINK}, {TARGET_URL}: share_url, else the first link in the body.
        {IMAGE}: absolute cover image URL.
        {TAGS}: space separated hashtags; {TAG}: the first tag without "#".

    Every substituted value is percent-encoded.

    Args:
        url_template: Template string from a ShareButton.
        article: Resolved article.
        settings: Build settings, for the base URL.

    Returns:
        The share URL.
    """
    final_url = article.share_url or to_absolute_url(article.link_to_self, settings.base_url)
    target = article.share_url or extract_first_link(article.body_html)
    hashtags = _hashtags(article.tags)
    values = {
        "{URL}": final_url,
        "{TITLE}": article.title,
        "{DESCRIPTION}": article.description,
        "{TEXT}": article.text_content,
        "{LINK}": target,
        "{TARGET_URL}": target,
        "{IMAGE}": to_absolute_url(article.cover_image, settings.base_url),
        "{TAGS}": " ".join(f"#{tag}" for tag in hashtags),
        "{TAG}": hashtags[0] if hashtags else "",
    }
    result = url_template
    for token, value in values.items():
        result = result.replace(token, encode_component(value))
    return result


def format_pub_date(value: datetime) -> str:
    """Format a timestamp as an RFC 822 date for RSS."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


class TemplateEngine:
    """Template rendering engine using Jinja2.

    The article, index and RSS templates are compiled when the engine is
    created, so a broken or missing template stops the build before any
    file is processed. Rendering is safe to call from worker threads.

    Attributes:
        settings: Build settings, exposed to every template.
        env: Jinja2 environment.
    """

    def __init__(self, settings: Settings):
        """Initialize the template engine.

        Args:
            settings: Build settings. settings.templates_dir, when set, is
                searched before the bundled templates.

        Raises:
            TemplateLoadError: If a template is missing or has a syntax error.
        """
        self.settings = settings
        search_path = [TEMPLATES_DIR]
        if settings.templates_dir is not None:
            search_path.insert(0, settings.templates_dir)
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=False,
        )
        self._install_globals()
        self.article_template = self._load(ARTICLE_TEMPLATE)
        self.index_template = self._load(INDEX_TEMPLATE)
        self.rss_template = self._load(RSS_TEMPLATE)

    def _install_globals(self) -> None:
        """Install global variables and functions in the Jinja environment."""
        self.env.globals["settings"] = self.settings
        self.env.globals["relative_link"] = gen_relative_link
        self.env.globals["abs_url"] = self._abs_url
        self.env.globals["share_url"] = self._share_url
        self.env.globals["schema_type"] = article_schema_type
        self.env.globals["is_image"] = is_image
        self.env.globals["article_url"] = self._article_url
        self.env.globals["rss_url"] = self._rss_url
        self.env.globals["rss_content"] = self._rss_content
        self.env.filters["format_date"] = self._format_date
        self.env.filters["pub_date"] = format_pub_date
        self.env.filters["url_path_escape"] = encode_path_segments

    def _load(self, name: str) -> Template:
        try:
            return self.env.get_template(name)
        except TemplateNotFound as exc:
            raise TemplateLoadError(f"template '{name}' not found") from exc
        except TemplateSyntaxError as exc:
            raise TemplateLoadError(
                f"error parsing template '{name}' on line {exc.lineno}: {exc.message}"
            ) from exc

    def _abs_url(self, url: str) -> str:
        return to_absolute_url(url, self.settings.base_url)

    def _article_url(self, article: Article) -> str:
        return join_root_url(self.settings.base_url, article.link_to_self)

    def _rss_url(self, url: str) -> str:
        return safe_rss_url(url, self.settings.base_url)

    def _rss_content(self, article: Article) -> Markup:
        return Markup(
            clean_rss_content(article.body_html, article.link_to_self, self.settings.base_url)
        )

    def _share_url(self, button: ShareButton, article: Article) -> str:
        return build_share_url(button.url_template, article, self.settings)

    def _format_date(self, value: datetime) -> str:
        return value.strftime(self.settings.date_format)

    def _site_context(self) -> dict[str, Any]:
        return {
            "description_html": Markup(self.settings.description_html),
            "elements_top": Markup(self.settings.elements_top),
            "elements_bottom": Markup(self.settings.elements_bottom),
        }

    def render_article(self, article: Article) -> str:
        """Render an article into a complete page.

        Args:
            article: Resolved article; its body_html becomes the page body.

        Returns:
            Rendered HTML page.
        """
        return self.article_template.render(
            article=article,
            content=Markup(article.body_html),
            **self._site_context(),
        )

    def render_index(self, articles: ArticleCollection) -> str:
        """Render the index page.

        Args:
            articles: All articles in display order.

        Returns:
            Rendered HTML page listing posts and, separately, pages.
        """
        return self.index_template.render(
            articles=articles.posts(),
            pages=articles.pages(),
            all_tags=articles.all_tags(),
            **self._site_context(),
        )

    def render_rss(self, articles: ArticleCollection) -> str:
        """Render the RSS feed.

        Args:
            articles: Articles in feed order.

        Returns:
            RSS 2.0 XML document.
        """
        return self.rss_template.render(
            articles=articles,
            build_date=format_pub_date(datetime.now(timezone.utc)),
            **self._site_context(),
        )
