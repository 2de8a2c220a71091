from datetime import date
from pathlib import Path

from click.testing import CliRunner

from quire.build import BuildResult
from quire.cli import cli
from quire.extractors import extract_frontmatter
from quire.registry import PostRegistry

SKIP_GIT = {"QUIRE_SKIP_GIT_INIT": "1"}


def scaffold(tmp_path: Path) -> Path:
    runner = CliRunner()
    target = tmp_path / "myblog"
    result = runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code == 0, result.output
    return target


def test_cli_new_scaffolds_project(tmp_path):
    target = scaffold(tmp_path)
    assert (target / "quire.yaml").exists()
    assert (target / "_layouts" / "post.html.jinja").exists()
    assert (target / "_layouts" / "index.html.jinja").exists()
    assert (target / "assets" / "images").is_dir()
    welcome = target / "_posts" / f"{date.today().isoformat()}-welcome.md"
    frontmatter, body = extract_frontmatter(welcome.read_text(encoding="utf-8"))
    assert frontmatter["title"] == "Welcome"
    assert "<!--more-->" in body

    # fails on non-empty directory
    result = CliRunner().invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code != 0


def test_cli_build_scaffolded_project(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    monkeypatch.chdir(target)
    result = CliRunner().invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    assert "Built 1 posts" in result.output
    assert (target / "_site" / "index.html").exists()


def test_cli_build_reports_warnings_and_keeps_exit_zero(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    (target / "_posts" / "notes.md").write_text("scratch", encoding="utf-8")
    monkeypatch.chdir(target)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 0
    assert "MalformedPost" in result.output
    assert "notes.md" in result.output


def test_cli_build_exits_non_zero_on_fatal_errors(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    (target / "_posts" / "2020-01-01-open.md").write_text("---\ntitle: x\n", encoding="utf-8")
    monkeypatch.chdir(target)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "UnterminatedFrontMatter" in result.output
    assert (target / "_site" / "index.html").exists()


def test_cli_build_duplicate_slug(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    posts = target / "_posts"
    (posts / "2020-01-01-same.md").write_text("a", encoding="utf-8")
    (posts / "2020-01-01-same.markdown").write_text("b", encoding="utf-8")
    monkeypatch.chdir(target)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "Duplicate slug '2020-01-01-same'" in result.output
    assert not (target / "_site").exists()


def test_cli_check(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    monkeypatch.chdir(target)
    result = CliRunner().invoke(cli, ["check"])
    assert result.exit_code == 0
    assert "Found 1 posts, 0 problems" in result.output
    assert not (target / "_site").exists()

    (target / "_posts" / "2020-01-01-open.md").write_text("---\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["check"])
    assert result.exit_code == 1


def test_cli_build_and_serve_delegate(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    called = {}

    def fake_build_site(root, include_drafts=False):
        called["drafts"] = include_drafts
        return BuildResult(registry=PostRegistry(), output_dir=root / "_site")

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self, include_drafts=False):
            called["serve_drafts"] = include_drafts

    monkeypatch.setattr("quire.cli.build_site", fake_build_site)
    monkeypatch.setattr("quire.server.DevServer", DummyServer)

    result = CliRunner().invoke(cli, ["build", "--drafts"], catch_exceptions=False)
    assert result.exit_code == 0
    assert called["drafts"] is True

    result = CliRunner().invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called["port"] == 5050
    assert called["ws_port"] == 5051
    assert called["serve_drafts"] is True


class FakeQuestion:
    def __init__(self, answer):
        self.answer = answer

    def ask(self):
        return self.answer


def test_cli_post_creates_dated_file(tmp_path, monkeypatch):
    target = scaffold(tmp_path)
    monkeypatch.chdir(target)
    answers = iter(["Pooling Connections in Node.js", "6 min read"])
    monkeypatch.setattr(
        "quire.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(next(answers))
    )
    result = CliRunner().invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0, result.output

    path = target / "_posts" / f"{date.today().isoformat()}-pooling-connections-in-node-js.md"
    frontmatter, _ = extract_frontmatter(path.read_text(encoding="utf-8"))
    assert frontmatter["title"] == "Pooling Connections in Node.js"
    assert frontmatter["read_time"] == "6 min read"
    assert frontmatter["layout"] == "post"
    assert frontmatter["date"] == date.today()

    # same title again on the same day is refused
    answers = iter(["Pooling Connections in Node.js", ""])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_cli_post_abort_and_outside_project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No quire.yaml found" in result.output

    target = scaffold(tmp_path)
    monkeypatch.chdir(target)
    monkeypatch.setattr("quire.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(None))
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 1
