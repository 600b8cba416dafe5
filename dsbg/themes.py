"""Bundled CSS themes.

Each theme is a single CSS file under dsbg/assets/themes. The theme's
`color-scheme` declaration decides whether it is light or dark, which in
turn picks the Pygments style used for code blocks.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from .errors import ThemeNotFoundError

logger = logging.getLogger(__name__)

THEMES_DIR = Path(__file__).parent / "assets" / "themes"
DEFAULT_THEME = "default"

_COLOR_SCHEME_RE = re.compile(r"color-scheme\s*:\s*([^;]+);", re.IGNORECASE)

HIGHLIGHT_STYLES = {"light": "default", "dark": "monokai"}


def available_themes() -> list[str]:
    """Return the sorted names of the bundled themes."""
    return sorted(path.stem for path in THEMES_DIR.glob("*.css"))


def theme_path(name: str) -> Path:
    """Path of the CSS file for a theme; empty names mean the default."""
    return THEMES_DIR / f"{name or DEFAULT_THEME}.css"


def theme_type(name: str) -> str:
    """Classify a theme as "light" or "dark".

    Unknown themes and themes without a color-scheme declaration count as
    dark.

    Args:
        name: Theme name.

    Returns:
        "light" or "dark".
    """
    path = theme_path(name)
    if not path.is_file():
        return "dark"
    match = _COLOR_SCHEME_RE.search(path.read_text(encoding="utf-8"))
    if match is None:
        return "dark"
    return "dark" if "dark" in match.group(1).strip().lower() else "light"


def highlight_style(name: str) -> str:
    """Pygments style matching the theme's color scheme."""
    return HIGHLIGHT_STYLES[theme_type(name)]


def highlight_css(style: str) -> str:
    """CSS rules for Pygments output in the given style."""
    try:
        formatter = HtmlFormatter(style=style, cssclass="highlight")
    except ClassNotFound:
        logger.warning("Unknown highlight style '%s'; using 'default'", style)
        formatter = HtmlFormatter(style="default", cssclass="highlight")
    return formatter.get_style_defs(".highlight")


def save_theme_css(
    output_dir: Path,
    theme: str,
    style: str,
    custom_css: Path | None = None,
    ignore_errors: bool = False,
) -> Path:
    """Write style.css into the output directory.

    A custom CSS file replaces the bundled theme entirely. Otherwise the
    theme CSS is written followed by the code highlighting rules.

    Args:
        output_dir: Site output directory.
        theme: Bundled theme name.
        style: Pygments style for code blocks.
        custom_css: Optional user CSS file.
        ignore_errors: Fall back to the default theme when theme is unknown.

    Returns:
        Path of the written style.css.

    Raises:
        ThemeNotFoundError: If the theme does not exist and ignore_errors is
            false.
    """
    dest = output_dir / "style.css"
    if custom_css is not None:
        dest.write_bytes(custom_css.read_bytes())
        return dest

    source = theme_path(theme)
    if not source.is_file():
        available = available_themes()
        if not ignore_errors:
            raise ThemeNotFoundError(theme, available)
        logger.warning(
            "Theme '%s' not found (available: %s); falling back to default theme",
            theme,
            ", ".join(available),
        )
        source = theme_path(DEFAULT_THEME)
    else:
        logger.debug("Using theme: %s", theme or DEFAULT_THEME)

    css = source.read_text(encoding="utf-8")
    dest.write_text(f"{css.rstrip()}\n\n{highlight_css(style)}\n", encoding="utf-8")
    return dest
