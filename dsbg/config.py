"""Configuration for dsbg.

Settings are assembled once at startup from three layers: built-in
defaults, an optional dsbg.yaml in the project directory, and command-line
flags. The result is an immutable Settings snapshot shared by every build
worker.

Key names:
- Settings: Frozen snapshot of every build option.
- SortOrder: Supported article orderings.
- ShareButton: One share target parsed from "Name|URL" or "Name|Display|URL".
- load_config: Read dsbg.yaml merged over DEFAULT_CONFIG.
- build_settings: Validate a config mapping and derive the Settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .renderers import render_markdown
from .themes import highlight_style
from .utils import is_image

CONFIG_FILENAME = "dsbg.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Blog",
    "description": "This is my blog",
    "base_url": "",
    "input_path": "content",
    "output_path": "public",
    "date_format": "%Y %m %d",
    "index_name": "index.html",
    "theme": "default",
    "css_path": None,
    "js_path": None,
    "favicon_path": None,
    "templates_dir": None,
    "elements_top": None,
    "elements_bottom": None,
    "share_buttons": [],
    "sort": "date-created",
    "extract_tags_from_paths": True,
    "remove_date_from_paths": True,
    "remove_date_from_titles": True,
    "open_in_new_tab": False,
    "force_overwrite": False,
    "ignore_errors": False,
    "author": "",
    "publisher": "",
    "logo": "",
    "port": 666,
}


class SortOrder(str, Enum):
    """Order of articles on the index page."""

    DATE_CREATED = "date-created"
    REVERSE_DATE_CREATED = "reverse-date-created"
    DATE_UPDATED = "date-updated"
    REVERSE_DATE_UPDATED = "reverse-date-updated"
    TITLE = "title"
    REVERSE_TITLE = "reverse-title"
    PATH = "path"
    REVERSE_PATH = "reverse-path"

    @classmethod
    def parse(cls, value: str | SortOrder) -> SortOrder:
        """Parse a sort order name, ignoring case and surrounding spaces.

        Raises:
            ConfigError: If the value is not a supported order.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(order.value for order in cls)
            raise ConfigError(
                f"unsupported sort order: {value} (choose from {choices})"
            ) from None


@dataclass(frozen=True)
class ShareButton:
    """A share target shown under every article.

    Attributes:
        name: Label used for accessibility and as fallback text.
        display: Text or an image path/URL shown on the button.
        url_template: URL with {URL}, {TITLE}, {DESCRIPTION}, {TEXT},
            {LINK}, {TARGET_URL}, {IMAGE}, {TAGS} and {TAG} placeholders.
    """

    name: str
    display: str
    url_template: str

    @classmethod
    def parse(cls, value: str) -> ShareButton:
        """Parse "Name|URL" or "Name|Display|URL".

        Examples:
            >>> ShareButton.parse("X|https://x.com/intent/tweet?url={URL}").display
            'X'

        Raises:
            ConfigError: If the value has fewer than two fields.
        """
        parts = value.split("|", 2)
        if len(parts) == 2:
            return cls(parts[0], parts[0], parts[1])
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2])
        raise ConfigError(
            f"invalid share format. Expected 'Name|URL' or 'Name|Display|URL', got '{value}'"
        )

    @property
    def has_icon(self) -> bool:
        """Whether display refers to an image rather than plain text."""
        return is_image(self.display)


@dataclass(frozen=True)
class Settings:
    """Immutable build settings.

    Attributes:
        title: Site title.
        description_markdown: Site description as written by the user.
        description_html: The description rendered to HTML.
        input_path: Directory with the content files.
        output_path: Directory the site is written to.
        date_format: strftime format for displayed dates.
        index_name: File name of every generated page.
        theme: Bundled theme name.
        custom_css_path: CSS file that replaces the theme.
        custom_js_path: JavaScript file that replaces the bundled script.
        custom_favicon_path: favicon.ico replacement.
        templates_dir: Directory with template overrides.
        elements_top: HTML injected at the top of <head>.
        elements_bottom: HTML injected at the bottom of <body>.
        extract_tags_from_paths: Add directory names as tags.
        remove_date_from_paths: Strip dates from output paths.
        remove_date_from_titles: Strip dates from titles.
        open_in_new_tab: Open index links in a new tab.
        base_url: Public site URL without trailing slash.
        share_buttons: Share targets.
        sort: Index ordering.
        highlight_style: Pygments style for code blocks.
        port: Preview server port.
        force_overwrite: Clear a non-empty output directory without asking.
        ignore_errors: Skip failing files instead of aborting.
        author_name: Author for meta tags and structured data.
        publisher_name: Publisher for structured data.
        publisher_logo_path: Publisher logo, site-root relative once copied.
    """

    title: str = "Blog"
    description_markdown: str = "This is my blog"
    description_html: str = ""
    input_path: Path = Path("content")
    output_path: Path = Path("public")
    date_format: str = "%Y %m %d"
    index_name: str = "index.html"
    theme: str = "default"
    custom_css_path: Path | None = None
    custom_js_path: Path | None = None
    custom_favicon_path: Path | None = None
    templates_dir: Path | None = None
    elements_top: str = ""
    elements_bottom: str = ""
    extract_tags_from_paths: bool = True
    remove_date_from_paths: bool = True
    remove_date_from_titles: bool = True
    open_in_new_tab: bool = False
    base_url: str = "http://localhost:666"
    share_buttons: tuple[ShareButton, ...] = ()
    sort: SortOrder = SortOrder.DATE_CREATED
    highlight_style: str = "default"
    port: int = 666
    force_overwrite: bool = False
    ignore_errors: bool = False
    author_name: str = ""
    publisher_name: str = ""
    publisher_logo_path: str = ""


def load_config(project_root: Path) -> dict[str, Any]:
    """Load configuration from dsbg.yaml.

    Args:
        project_root: Directory that may contain dsbg.yaml.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return config
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path}: invalid YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")
    config.update(loaded)
    return config


def _optional_path(value: Any, name: str, must_be_dir: bool = False) -> Path | None:
    if not value:
        return None
    path = Path(value)
    if must_be_dir and not path.is_dir():
        raise ConfigError(f"{name} '{path}' is not a directory")
    if not must_be_dir and not path.is_file():
        raise ConfigError(f"{name} '{path}' does not exist")
    return path


def _read_snippet(value: Any, name: str) -> str:
    if not value:
        return ""
    try:
        return Path(value).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"error reading {name} file '{value}': {exc}") from exc


def _share_buttons(values: Any) -> tuple[ShareButton, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    buttons = []
    for value in values:
        buttons.append(value if isinstance(value, ShareButton) else ShareButton.parse(str(value)))
    return tuple(buttons)


def build_settings(config: Mapping[str, Any]) -> Settings:
    """Validate a configuration mapping and build the Settings snapshot.

    Args:
        config: Mapping with the DEFAULT_CONFIG keys.

    Returns:
        Settings with derived values filled in.

    Raises:
        ConfigError: For a missing input directory, an invalid sort order or
            port, unreadable snippet files or missing custom asset files.
    """
    merged = {**DEFAULT_CONFIG, **config}

    input_path = Path(merged["input_path"])
    if not input_path.is_dir():
        raise ConfigError(f"input directory '{input_path}' does not exist")

    try:
        port = int(merged["port"])
    except (TypeError, ValueError):
        raise ConfigError(f"invalid port: {merged['port']}") from None

    title = str(merged["title"])
    base_url = str(merged["base_url"] or "").rstrip("/") or f"http://localhost:{port}"
    theme = str(merged["theme"] or "default")
    description = str(merged["description"] or "")

    return Settings(
        title=title,
        description_markdown=description,
        description_html=render_markdown(description),
        input_path=input_path,
        output_path=Path(merged["output_path"]),
        date_format=str(merged["date_format"]),
        index_name=str(merged["index_name"]),
        theme=theme,
        custom_css_path=_optional_path(merged["css_path"], "CSS file"),
        custom_js_path=_optional_path(merged["js_path"], "JavaScript file"),
        custom_favicon_path=_optional_path(merged["favicon_path"], "favicon file"),
        templates_dir=_optional_path(merged["templates_dir"], "templates directory", True),
        elements_top=_read_snippet(merged["elements_top"], "additional top elements"),
        elements_bottom=_read_snippet(merged["elements_bottom"], "additional bottom elements"),
        extract_tags_from_paths=bool(merged["extract_tags_from_paths"]),
        remove_date_from_paths=bool(merged["remove_date_from_paths"]),
        remove_date_from_titles=bool(merged["remove_date_from_titles"]),
        open_in_new_tab=bool(merged["open_in_new_tab"]),
        base_url=base_url,
        share_buttons=_share_buttons(merged["share_buttons"]),
        sort=SortOrder.parse(merged["sort"]),
        highlight_style=highlight_style(theme),
        port=port,
        force_overwrite=bool(merged["force_overwrite"]),
        ignore_errors=bool(merged["ignore_errors"]),
        author_name=str(merged["author"] or title),
        publisher_name=str(merged["publisher"] or title),
        publisher_logo_path=str(merged["logo"] or ""),
    )
