"""Whole-site static assets for dsbg.

Two kinds of files land in the output root besides the generated pages:
user-supplied images referenced by the settings (share button icons and
the publisher logo), and the bundled front-end files (script, search,
favicon and icons), each of which can be replaced by a user file.

Key names:
- StaticAsset: A bundled file with an optional user override.
- copy_site_assets: Copy share icons and the logo, returning new Settings.
- write_static_assets: Write the bundled files.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Settings
from .utils import copy_file, is_image

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "assets" / "static"

_REMOTE_PREFIXES = ("http://", "https://")


@dataclass(frozen=True)
class StaticAsset:
    """A bundled front-end file.

    Attributes:
        name: File name, both in the bundle and in the output root.
        override: User file written instead of the bundled one.
    """

    name: str
    override: Path | None = None

    @property
    def source(self) -> Path:
        return self.override or STATIC_DIR / self.name

    def write(self, output_dir: Path) -> Path:
        """Copy the asset into output_dir and return the written path."""
        dest = output_dir / self.name
        copy_file(self.source, dest)
        return dest


def static_assets(settings: Settings) -> list[StaticAsset]:
    """The front-end files every site receives, with user overrides applied."""
    return [
        StaticAsset("script.js", settings.custom_js_path),
        StaticAsset("favicon.ico", settings.custom_favicon_path),
        StaticAsset("search.js"),
        StaticAsset("rss.svg"),
        StaticAsset("copy.svg"),
    ]


def write_static_assets(settings: Settings) -> list[str]:
    """Write script.js, favicon.ico, search.js, rss.svg and copy.svg.

    Args:
        settings: Build settings.

    Returns:
        Names of the written files.
    """
    return [asset.write(settings.output_path).name for asset in static_assets(settings)]


def _copy_to_root(source: str, output_dir: Path, label: str) -> bool:
    try:
        copy_file(Path(source), output_dir / Path(source).name)
    except OSError as exc:
        logger.warning("Failed to copy %s '%s': %s", label, source, exc)
        return False
    return True


def copy_site_assets(settings: Settings) -> Settings:
    """Copy share icons and the publisher logo into the output root.

    Icons that are local image files are copied next to the index page and
    the returned settings refer to them by file name. Remote images and
    text labels are left alone. Copy failures are logged, not raised.

    Args:
        settings: Build settings.

    Returns:
        Settings pointing at the copied files.
    """
    output_dir = settings.output_path
    buttons = []
    for button in settings.share_buttons:
        display = button.display
        if is_image(display) and not display.startswith(_REMOTE_PREFIXES):
            _copy_to_root(display, output_dir, "share icon")
            button = dataclasses.replace(button, display=Path(display).name)
        buttons.append(button)

    logo = settings.publisher_logo_path
    if logo and not logo.startswith(_REMOTE_PREFIXES):
        if _copy_to_root(logo, output_dir, "publisher logo"):
            logo = Path(logo).name

    return dataclasses.replace(
        settings, share_buttons=tuple(buttons), publisher_logo_path=logo
    )
