import logging

import pytest
import yaml
from click.testing import CliRunner

from dsbg import __version__
from dsbg.cli import _config_from_options, cli


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("dsbg")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def write_post(root, name="hello.md", text="---\ntitle: Hello\n---\nHi there\n"):
    content = root / "content"
    content.mkdir(exist_ok=True)
    (content / name).write_text(text, encoding="utf-8")


def test_cli_build(monkeypatch, tmp_path):
    write_post(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build", "--base-url", "https://example.com"])

    assert result.exit_code == 0, result.output
    assert "Built 1 articles into public" in result.output
    assert (tmp_path / "public" / "hello" / "index.html").exists()
    assert (tmp_path / "public" / "rss.xml").exists()


def test_cli_build_reads_config_file(monkeypatch, tmp_path):
    write_post(tmp_path)
    (tmp_path / "dsbg.yaml").write_text("title: From Config\noutput_path: site\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build", "--title", "From Flag"])

    assert result.exit_code == 0, result.output
    index = (tmp_path / "site" / "index.html").read_text(encoding="utf-8")
    assert "From Flag" in index


def test_cli_build_missing_input(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build", "--input", "nowhere"])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_cli_build_reports_failing_file(monkeypatch, tmp_path):
    write_post(tmp_path, "bad.md", "---\n- not a mapping\n---\nBody\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: content/bad.md" in result.output
    assert "frontmatter" in result.output


def test_cli_build_ignore_errors(monkeypatch, tmp_path):
    write_post(tmp_path)
    write_post(tmp_path, "bad.md", "---\n- not a mapping\n---\nBody\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build", "--ignore-errors"])

    assert result.exit_code == 0, result.output
    assert "Built 1 articles into public (1 skipped)" in result.output


def test_cli_build_asks_before_overwrite(monkeypatch, tmp_path):
    write_post(tmp_path)
    stale = tmp_path / "public" / "stale.txt"
    stale.parent.mkdir()
    stale.write_text("old", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["build"], input="n\n")
    assert result.exit_code == 1
    assert "Operation cancelled." in result.output
    assert stale.exists()

    result = runner.invoke(cli, ["build"], input="y\n")
    assert result.exit_code == 0, result.output
    assert not stale.exists()

    stale.write_text("old", encoding="utf-8")
    result = runner.invoke(cli, ["build", "--overwrite"])
    assert result.exit_code == 0, result.output
    assert not stale.exists()


def test_cli_serve(monkeypatch, tmp_path):
    write_post(tmp_path)
    monkeypatch.chdir(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, settings, http_port=None, ws_port=None):
            called["port"] = settings.port
            called["ws_port"] = ws_port

        def start(self, confirm=None):
            called["confirm"] = confirm

    monkeypatch.setattr("dsbg.server.DevServer", DummyServer)

    result = CliRunner().invoke(
        cli, ["serve", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    assert called["port"] == 5050
    assert called["ws_port"] == 5051
    assert callable(called["confirm"])


def test_cli_new_post(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    answers = iter(["Hello World", "A first post", "intro, meta", "cover.png"])

    class FakePrompt:
        def __init__(self, answer):
            self.answer = answer

        def ask(self):
            return self.answer

    monkeypatch.setattr("dsbg.cli.questionary.text", lambda *a, **k: FakePrompt(next(answers)))

    result = CliRunner().invoke(cli, ["new-post", "--no-date"])

    assert result.exit_code == 0, result.output
    created = tmp_path / "content" / "Hello-World.md"
    assert created.exists()
    text = created.read_text(encoding="utf-8")
    frontmatter = yaml.safe_load(text.split("---\n")[1])
    assert frontmatter["title"] == "Hello World"
    assert frontmatter["description"] == "A first post"
    assert frontmatter["tags"] == ["intro", "meta"]
    assert frontmatter["cover_image"] == "cover.png"
    assert "# Hello World" in text

    answers = iter(["Hello World", "", "", ""])
    result = CliRunner().invoke(cli, ["new-post", "--no-date"])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_cli_new_post_dated_and_aborted(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    answers = iter(["Dated", "", "", ""])

    class FakePrompt:
        def __init__(self, answer):
            self.answer = answer

        def ask(self):
            return self.answer

    monkeypatch.setattr("dsbg.cli.questionary.text", lambda *a, **k: FakePrompt(next(answers)))

    result = CliRunner().invoke(cli, ["new-post", "--input", "posts"])
    assert result.exit_code == 0, result.output
    created = list((tmp_path / "posts").glob("*-Dated.md"))
    assert len(created) == 1
    assert "cover_image" not in created[0].read_text(encoding="utf-8")

    answers = iter([None])
    result = CliRunner().invoke(cli, ["new-post"])
    assert result.exit_code == 1
    assert not (tmp_path / "content").exists()


def test_config_from_options(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config = _config_from_options(
        {
            "input_dir": "posts",
            "sort": "title",
            "share": ("X|https://x.com/?u={URL}",),
            "keep_date_in_paths": True,
            "ignore_tags_from_paths": True,
            "open_in_new_tab": False,
            "theme": None,
        }
    )
    assert config["input_path"] == "posts"
    assert config["sort"] == "title"
    assert config["share_buttons"] == ["X|https://x.com/?u={URL}"]
    assert config["remove_date_from_paths"] is False
    assert config["extract_tags_from_paths"] is False
    assert config["open_in_new_tab"] is False
    assert config["theme"] == "default"


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_module_main_entrypoint():
    from dsbg.__main__ import main

    assert callable(main)
