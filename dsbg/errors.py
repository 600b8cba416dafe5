"""Error types for dsbg.

Errors raised while building carry the path of the file that caused them,
so a failed build can point at the offending content directly.

Hierarchy:
- DsbgError: Base class for everything raised on purpose by dsbg.
- ConfigError: Invalid settings detected at startup (always fatal).
- TemplateLoadError: Bundled or user templates could not be loaded.
- ThemeNotFoundError: The requested CSS theme does not exist.
- BuildError: Error tied to a specific source file or output path.
- ContentError: A content file could not be read or parsed.
- ResourceError: A resource referenced by an article could not be copied.
- BuildCancelled: The user declined to overwrite the output directory.
"""

from __future__ import annotations

from pathlib import Path


class DsbgError(Exception):
    """Base class for dsbg errors."""


class ConfigError(DsbgError):
    """Invalid configuration value."""


class TemplateLoadError(DsbgError):
    """A template could not be found or compiled."""


class ThemeNotFoundError(DsbgError):
    """Requested theme CSS does not exist.

    Attributes:
        theme: Name of the requested theme.
        available: Names of the bundled themes.
    """

    def __init__(self, theme: str, available: list[str]):
        self.theme = theme
        self.available = available
        super().__init__(
            f"theme '{theme}' not found (available: {', '.join(available)})"
        )


class BuildError(DsbgError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = Path(source_path)
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ContentError(BuildError):
    """A content file could not be read, decoded or parsed."""


class ResourceError(BuildError):
    """A referenced resource could not be resolved or copied."""


class BuildCancelled(BuildError):
    """The user refused to overwrite a non-empty output directory."""
