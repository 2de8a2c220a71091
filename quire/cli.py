"""Command-line interface for Quire.

Commands:
- new: Scaffold a new blog project.
- build: Build the site into the output directory.
- check: Scan posts and report problems without writing anything.
- serve: Run the development server with live reload.
- post: Create a new dated post interactively.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import date
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .build import CONFIG_FILENAME, build_site, load_config, load_registry
from .errors import DuplicateSlug, QuireError
from .extractors import dump_frontmatter
from .templates import BUILTIN_LAYOUTS_DIR
from .utils import slugify

WELCOME_BODY = """Welcome to your new blog. This paragraph is the excerpt shown on the index page.

<!--more-->

Everything after the marker only appears on the post page.
"""


@click.group()
@click.version_option(version=__version__, prog_name="quire")
def cli():
    """Quire static blog engine."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Quire project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quire blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include unpublished posts")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    try:
        result = build_site(project_root, include_drafts=drafts)
    except QuireError as exc:
        _report_fatal(exc, project_root)
        raise SystemExit(1) from None
    _report_errors(result.errors, project_root)
    click.echo(f"Built {len(result.registry)} posts into {result.output_dir}")
    if result.has_fatal_errors:
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include unpublished posts")
def check(drafts: bool):
    """Scan posts and report problems without writing output."""
    project_root = Path.cwd()
    try:
        registry = load_registry(project_root, load_config(project_root), drafts)
    except QuireError as exc:
        _report_fatal(exc, project_root)
        raise SystemExit(1) from None
    _report_errors(registry.errors, project_root)
    click.echo(f"Found {len(registry)} posts, {len(registry.errors)} problems")
    if registry.has_fatal_errors:
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include unpublished posts")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides quire.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket (overrides quire.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    if not (project_root / CONFIG_FILENAME).exists():
        raise click.ClickException(
            f"No {CONFIG_FILENAME} found. Run this command from a Quire project root."
        )
    config = load_config(project_root)
    posts_dir = project_root / config["posts_dir"]

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    read_time = questionary.text(
        "Read time (e.g. 5 min read, blank to skip):",
        style=_questionary_style(),
    ).ask()
    if read_time is None:
        raise click.Abort()

    today = date.today()
    target_path = posts_dir / f"{today.isoformat()}-{slugify(title)}.md"
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    frontmatter = {"layout": "post", "title": title, "date": today}
    if read_time.strip():
        frontmatter["read_time"] = read_time.strip()
    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        dump_frontmatter(frontmatter, "\n<!--more-->\n"), encoding="utf-8"
    )
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _display_path(path: Path | None, project_root: Path) -> str:
    if path is None:
        return "-"
    try:
        return str(path.relative_to(project_root))
    except ValueError:
        return str(path)


def _report_errors(errors, project_root: Path) -> None:
    """Print each collected error, warnings in yellow and errors in red."""
    for err in errors:
        color = "red" if err.fatal else "yellow"
        label = type(err).__name__
        location = _display_path(err.source_path, project_root)
        click.echo(
            click.style(f"{label}: ", fg=color, bold=True) + f"{location}: {err.message}",
            err=True,
        )


def _report_fatal(exc: QuireError, project_root: Path) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if isinstance(exc, DuplicateSlug):
        for path in exc.paths:
            click.echo(click.style(f"  File: {_display_path(path, project_root)}", fg="yellow"), err=True)
    else:
        click.echo(
            click.style(f"  File: {_display_path(exc.source_path, project_root)}", fg="yellow"),
            err=True,
        )
    click.echo(f"  Error: {exc.message}", err=True)


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


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Quire project.

    Args:
        root: Root directory for the new project.
    """
    layouts = root / "_layouts"
    layouts.mkdir(parents=True, exist_ok=True)
    for src_path in BUILTIN_LAYOUTS_DIR.glob("*.jinja"):
        shutil.copy2(src_path, layouts / src_path.name)

    (root / "assets" / "images").mkdir(parents=True, exist_ok=True)
    config = {"title": root.name, "description": "", "url": "", "port": 4000}
    (root / CONFIG_FILENAME).write_text(
        yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
    )

    posts = root / "_posts"
    posts.mkdir(parents=True, exist_ok=True)
    today = date.today()
    (posts / f"{today.isoformat()}-welcome.md").write_text(
        dump_frontmatter(
            {"layout": "post", "title": "Welcome", "date": today, "read_time": "1 min read"},
            WELCOME_BODY,
        ),
        encoding="utf-8",
    )
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        click.echo("Skipping git init; run it manually if you want version control.")
