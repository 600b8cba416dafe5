import logging
from pathlib import Path

import pytest

from dsbg.config import Settings
from dsbg.content import HtmlParser, MarkdownParser
from dsbg.errors import ResourceError
from dsbg.resources import (
    OutputPathRegistry,
    ResourceResolver,
    clean_resource_reference,
)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    content = tmp_path / "content"
    content.mkdir(exist_ok=True)
    values = {
        "input_path": content,
        "output_path": tmp_path / "public",
        "force_overwrite": True,
    }
    values.update(overrides)
    return Settings(**values)


def write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "ref, expected",
    [
        ("images/cat.png", "images/cat.png"),
        ("/images/cat.png", "images/cat.png"),
        ("images/my%20cat.png?v=2#top", "images/my cat.png"),
        ("files/report.PDF", "files/report.PDF"),
        ("https://example.com/a.png", None),
        ("//cdn.example.com/a.js", None),
        ("mailto:me@example.com", None),
        ("tel:+123", None),
        ("#section", None),
        ("data:image/png;base64,AAAA", None),
        ("www.example.com", None),
        ("../other-post.md", None),
        ("page.html", None),
        ("folder/", None),
        ("README", None),
        ("   ", None),
    ],
)
def test_clean_resource_reference(ref, expected):
    assert clean_resource_reference(ref) == expected


def test_resolve_markdown_article(tmp_path):
    settings = make_settings(tmp_path)
    content = settings.input_path
    source = write(
        content / "linux" / "2024-01-15-setup notes.md",
        "---\ntitle: 2024-01-15 Setup notes\ncover_image: img/cover.png\n---\n"
        "![shot](img/shot.png) [external](https://example.com/x.png) [post](../other.md)\n",
    )
    write(content / "linux" / "img" / "shot.png", "png")
    write(content / "linux" / "img" / "cover.png", "cover")

    resolver = ResourceResolver(settings)
    article = resolver.resolve(MarkdownParser().parse(source))

    assert article.title == "Setup notes"
    assert "linux" in article.tags
    assert article.link_to_self == "linux/setup-notes/index.html"
    assert article.link_to_save == (settings.output_path / "linux" / "setup-notes" / "index.html").absolute()
    out_dir = settings.output_path / "linux" / "setup-notes"
    assert (out_dir / "img" / "shot.png").read_text(encoding="utf-8") == "png"
    assert (out_dir / "img" / "cover.png").read_text(encoding="utf-8") == "cover"
    assert article.cover_image == "linux/setup-notes/img/cover.png"


def test_resolve_respects_disabled_options(tmp_path):
    settings = make_settings(
        tmp_path,
        remove_date_from_paths=False,
        remove_date_from_titles=False,
        extract_tags_from_paths=False,
    )
    source = write(settings.input_path / "blog" / "2024-01-15-hello.md", "Body\n")
    article = ResourceResolver(settings).resolve(MarkdownParser().parse(source))

    assert article.title == "2024-01-15-hello"
    assert article.tags == []
    assert article.link_to_self == "blog/2024-01-15-hello/index.html"


def test_output_file_uses_index_name_and_fallback(tmp_path):
    settings = make_settings(tmp_path, index_name="default.htm")
    resolver = ResourceResolver(settings)
    assert resolver.output_file_for(Path("a b/Post!.md")) == (
        settings.output_path / "a-b" / "Post" / "default.htm"
    )
    assert resolver.output_file_for(Path("2024-01-15.md")) == (
        settings.output_path / "article" / "default.htm"
    )


def test_missing_resource_fails_without_ignore_errors(tmp_path):
    settings = make_settings(tmp_path)
    source = write(settings.input_path / "post.md", "![gone](missing.png)\n")
    with pytest.raises(ResourceError) as excinfo:
        ResourceResolver(settings).resolve(MarkdownParser().parse(source))
    assert "missing.png" in excinfo.value.message
    assert "not found" in excinfo.value.message
    assert excinfo.value.source_path == source


def test_missing_resource_warns_with_ignore_errors(tmp_path, caplog):
    settings = make_settings(tmp_path, ignore_errors=True)
    source = write(settings.input_path / "post.md", "![gone](missing.png)\n")
    with caplog.at_level(logging.WARNING, logger="dsbg"):
        article = ResourceResolver(settings).resolve(MarkdownParser().parse(source))
    assert article.link_to_self == "post/index.html"
    assert "missing.png" in caplog.text


def test_resources_outside_output_are_skipped(tmp_path):
    settings = make_settings(tmp_path)
    write(tmp_path / "secret.png", "s")
    source = write(settings.input_path / "post.md", "![up](../../secret.png)\n")
    article = ResourceResolver(settings).resolve(MarkdownParser().parse(source))
    assert article.link_to_self == "post/index.html"
    assert not list(settings.output_path.rglob("secret.png"))


def test_html_page_copies_whole_directory(tmp_path):
    settings = make_settings(tmp_path)
    page_dir = settings.input_path / "about"
    source = write(
        page_dir / "index.html",
        '<html><head><title>About</title><meta name="keywords" content="PAGE"></head>'
        "<body><p>About</p></body></html>",
    )
    write(page_dir / "photo.jpg", "jpg")
    write(page_dir / "css" / "extra.css", "css")
    write(page_dir / "notes.txt", "unreferenced")

    article = ResourceResolver(settings).resolve(HtmlParser().parse(source))

    out_dir = settings.output_path / "about" / "index"
    assert article.link_to_self == "about/index/index.html"
    assert (out_dir / "photo.jpg").exists()
    assert (out_dir / "css" / "extra.css").exists()
    assert (out_dir / "notes.txt").exists()


def test_html_post_copies_only_references(tmp_path):
    settings = make_settings(tmp_path)
    source = write(
        settings.input_path / "post.html",
        '<html><body><img src="photo.jpg"></body></html>',
    )
    write(settings.input_path / "photo.jpg", "jpg")
    write(settings.input_path / "unused.jpg", "jpg")

    ResourceResolver(settings).resolve(HtmlParser().parse(source))

    out_dir = settings.output_path / "post"
    assert (out_dir / "photo.jpg").exists()
    assert not (out_dir / "unused.jpg").exists()


def test_slug_collision_is_reported(tmp_path):
    settings = make_settings(tmp_path)
    first = write(settings.input_path / "2024-01-01-hello.md", "one\n")
    second = write(settings.input_path / "hello.md", "two\n")
    resolver = ResourceResolver(settings)

    resolver.resolve(MarkdownParser().parse(first))
    with pytest.raises(ResourceError, match="collides"):
        resolver.resolve(MarkdownParser().parse(second))


def test_output_path_registry_allows_same_source(tmp_path):
    registry = OutputPathRegistry()
    registry.claim(tmp_path / "a" / "index.html", tmp_path / "a.md")
    registry.claim(tmp_path / "a" / "index.html", tmp_path / "a.md")
    assert len(registry) == 1


def test_path_tags(tmp_path):
    resolver = ResourceResolver(make_settings(tmp_path))
    assert resolver.path_tags(Path("linux/2024-01-15-setup.md")) == ["linux"]
    assert resolver.path_tags(Path("2024/notes/post.md")) == ["2024", "notes"]
    assert resolver.path_tags(Path("post.md")) == []


def test_root_relative_cover_is_copied_next_to_article(tmp_path):
    settings = make_settings(tmp_path)
    source = write(
        settings.input_path / "posts" / "hello.md",
        "---\ntitle: Hello\ncover_image: /img/my%20cover.png?v=1\n---\nBody\n",
    )
    write(settings.input_path / "posts" / "img" / "my cover.png", "cover")

    article = ResourceResolver(settings).resolve(MarkdownParser().parse(source))

    copied = settings.output_path / "posts" / "hello" / "img" / "my cover.png"
    assert copied.read_text(encoding="utf-8") == "cover"
    assert article.cover_image == "posts/hello/img/my cover.png"
