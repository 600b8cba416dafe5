"""Command-line interface for dsbg.

This module defines the CLI commands using Click framework.
It provides commands for building the blog, previewing it with live reload
and starting a new post.

Commands:
- build: Build the site into the output directory.
- serve: Build, serve and rebuild on change.
- new-post: Create a new Markdown post interactively.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import click
import questionary
import yaml

from . import __version__
from .config import SortOrder, build_settings, load_config
from .errors import BuildCancelled, BuildError, DsbgError
from .utils import slugify, split_tags

_LOG_FORMAT = "%(levelname)s: %(message)s"

# CLI option name -> config key
_OPTION_KEYS: dict[str, str] = {
    "title": "title",
    "base_url": "base_url",
    "input_dir": "input_path",
    "output_dir": "output_path",
    "description": "description",
    "author": "author",
    "publisher": "publisher",
    "logo": "logo",
    "date_format": "date_format",
    "index_name": "index_name",
    "theme": "theme",
    "css_path": "css_path",
    "js_path": "js_path",
    "favicon_path": "favicon_path",
    "templates_dir": "templates_dir",
    "elements_top": "elements_top",
    "elements_bottom": "elements_bottom",
    "sort": "sort",
    "port": "port",
}

# Flags that only ever switch a setting away from its default.
_FLAG_KEYS: dict[str, tuple[str, bool]] = {
    "overwrite": ("force_overwrite", True),
    "ignore_tags_from_paths": ("extract_tags_from_paths", False),
    "keep_date_in_paths": ("remove_date_from_paths", False),
    "keep_date_in_titles": ("remove_date_from_titles", False),
    "open_in_new_tab": ("open_in_new_tab", True),
    "ignore_errors": ("ignore_errors", True),
}


def _site_options(func):
    """Attach every option that maps onto a build setting."""
    options = [
        click.option("--title", help="Title of the blog"),
        click.option("--base-url", help="Public base URL of the blog"),
        click.option("--input", "input_dir", help="Directory with the content files"),
        click.option("--output", "output_dir", help="Directory to write the site to"),
        click.option("--overwrite", is_flag=True, help="Clear the output directory without asking"),
        click.option("--description", help="Site description (Markdown)"),
        click.option("--author", help="Author name for meta tags"),
        click.option("--publisher", help="Publisher name for structured data"),
        click.option("--logo", help="Publisher logo image"),
        click.option("--date-format", help="strftime format for displayed dates"),
        click.option("--index-name", help="File name of generated pages"),
        click.option("--theme", help="Bundled theme name"),
        click.option("--css-path", help="Custom CSS file replacing the theme"),
        click.option("--js-path", help="Custom JavaScript file"),
        click.option("--favicon-path", help="Custom favicon.ico"),
        click.option("--templates-dir", help="Directory with template overrides"),
        click.option(
            "--share",
            "share",
            multiple=True,
            help="Share button as 'Name|URL' or 'Name|Display|URL' (repeatable)",
        ),
        click.option("--elements-top", help="File with HTML to add at the top of <head>"),
        click.option("--elements-bottom", help="File with HTML to add at the end of <body>"),
        click.option(
            "--sort",
            type=click.Choice([order.value for order in SortOrder], case_sensitive=False),
            help="Order of articles on the index page",
        ),
        click.option("--ignore-tags-from-paths", is_flag=True, help="Do not derive tags from directories"),
        click.option("--keep-date-in-paths", is_flag=True, help="Keep dates in output paths"),
        click.option("--keep-date-in-titles", is_flag=True, help="Keep dates in titles"),
        click.option("--open-in-new-tab", is_flag=True, help="Open article links in a new tab"),
        click.option("--ignore-errors", is_flag=True, help="Skip files that fail instead of aborting"),
        click.option("--port", type=int, help="Port for the preview server (overrides dsbg.yaml)"),
        click.option("--verbose", "-v", is_flag=True, help="Enable debug logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("dsbg")
    # Rebind to the current stderr on every invocation.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _config_from_options(options: dict[str, Any]) -> dict[str, Any]:
    """Merge command-line values over dsbg.yaml and the defaults."""
    config = load_config(Path.cwd())
    for name, key in _OPTION_KEYS.items():
        if options.get(name) is not None:
            config[key] = options[name]
    for name, (key, value) in _FLAG_KEYS.items():
        if options.get(name):
            config[key] = value
    if options.get("share"):
        config["share_buttons"] = list(options["share"])
    return config


def _report_build_error(exc: BuildError) -> None:
    path = exc.source_path
    try:
        path = path.resolve().relative_to(Path.cwd().resolve())
    except ValueError:
        pass
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _handle_errors(func):
    """Turn dsbg errors into the CLI's exit behaviour."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BuildCancelled:
            click.echo("Operation cancelled.", err=True)
            raise SystemExit(1) from None
        except BuildError as exc:
            _report_build_error(exc)
            raise SystemExit(1) from None
        except DsbgError as exc:
            raise click.ClickException(str(exc)) from None

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="dsbg")
def cli():
    """dsbg: a small static blog generator."""


@cli.command()
@_site_options
@_handle_errors
def build(verbose: bool, **options: Any):
    """Build the site into the output directory."""
    _configure_logging(verbose)
    from .build import build_site

    settings = build_settings(_config_from_options(options))
    result = build_site(settings, clean=True, confirm=click.confirm)
    message = f"Built {len(result.articles)} articles into {result.output_dir}"
    if result.skipped:
        message += f" ({len(result.skipped)} skipped)"
    click.echo(message)


@cli.command()
@_site_options
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (defaults to port + 1)",
)
@_handle_errors
def serve(verbose: bool, ws_port: int | None, **options: Any):
    """Build the site, serve it and rebuild on change."""
    _configure_logging(verbose)
    from .server import DevServer

    settings = build_settings(_config_from_options(options))
    server = DevServer(settings, ws_port=ws_port)
    server.start(confirm=click.confirm)


@cli.command("new-post")
@click.option("--input", "input_dir", help="Directory with the content files")
@click.option("--no-date", is_flag=True, help="Do not prefix the file name with today's date")
@_handle_errors
def new_post(input_dir: str | None, no_date: bool):
    """Create a new Markdown post interactively."""
    config = load_config(Path.cwd())
    target_dir = Path(input_dir or config["input_path"])

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    description = questionary.text("Description:", style=_questionary_style()).ask()
    if description is None:
        raise click.Abort()

    tags = questionary.text("Tags (comma separated):", style=_questionary_style()).ask()
    if tags is None:
        raise click.Abort()

    cover = questionary.text("Cover image (optional):", style=_questionary_style()).ask()
    if cover is None:
        raise click.Abort()

    now = datetime.now().astimezone()
    slug = slugify(title) or "post"
    filename = f"{slug}.md" if no_date else f"{now:%Y-%m-%d}-{slug}.md"
    target_path = target_dir / filename
    if target_path.exists():
        raise click.ClickException(f"File already exists: {target_path}")

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        _post_skeleton(title, description.strip(), split_tags(tags), cover.strip(), now),
        encoding="utf-8",
    )
    click.echo(f"Created {target_path}")


def _post_skeleton(
    title: str, description: str, tags: list[str], cover: str, now: datetime
) -> str:
    """Return a Markdown document with a frontmatter block."""
    frontmatter: dict[str, Any] = {
        "title": title,
        "description": description,
        "created": now.strftime("%Y-%m-%d %H:%M:%S"),
        "updated": now.strftime("%Y-%m-%d %H:%M:%S"),
        "tags": tags,
    }
    if cover:
        frontmatter["cover_image"] = cover
    block = yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
    return f"---\n{block}---\n\n# {title}\n\n"


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
