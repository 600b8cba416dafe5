"""dsbg static blog generator.

This package turns a directory of Markdown and HTML files into a static
blog: one page per article, an index page, an RSS feed and a search index
for client-side search.

The main entry point is the CLI module, which provides commands for
building the site, previewing it with live reload and starting new posts.

Extension points:
- Content parsers are looked up in a ParserRegistry (see content.py).
- Site-wide artifacts are written by an ArtifactRegistry (see feeds.py).
- Both follow the protocols in protocols.py.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
