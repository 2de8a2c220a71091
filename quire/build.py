"""Site building for Quire.

Loads configuration, scans the post registry, renders every post and the
index page, copies assets and writes feeds.

Key functions:
- load_config: Loads site configuration from quire.yaml.
- load_registry: Scans the configured posts directory.
- build_site: Builds the entire site.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .content import Post
from .errors import BuildError, QuireError, UnknownLayout
from .feeds import default_feed_generators
from .registry import INDEX_URL, PostRegistry, scan_posts
from .templates import TemplateEngine
from .utils import ensure_clean_dir, first_paragraph

CONFIG_FILENAME = "quire.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Quire",
    "description": "",
    "url": "",
    "posts_dir": "_posts",
    "layouts_dir": "_layouts",
    "assets_dir": "assets",
    "output_dir": "_site",
    "port": 4000,
    "excerpt_separator": "<!--more-->",
    "excerpt_length": 200,
    "hero_image_dir": "assets/images",
    "hero_image_filename": "hero.png",
    "hero_image_fallback": None,
    "workers": None,
}


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        registry: The post registry the site was built from.
        output_dir: Directory where the site was written.
        errors: Per-file parse errors followed by per-post render errors.
        written: Every HTML file written.
    """

    registry: PostRegistry
    output_dir: Path
    errors: list[QuireError] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def has_fatal_errors(self) -> bool:
        return any(err.fatal for err in self.errors)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from quire.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Configuration values with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise QuireError(f"{CONFIG_FILENAME} must contain a mapping", config_path)
        config.update(loaded)
    return config


def load_registry(
    project_root: Path, config: dict[str, Any], include_drafts: bool = False
) -> PostRegistry:
    """Scan the configured posts directory into a registry.

    Raises:
        DuplicateSlug: Two posts share a slug or a URL.
    """
    return scan_posts(
        project_root / config["posts_dir"],
        excerpt_separator=config["excerpt_separator"],
        include_drafts=include_drafts,
        workers=config.get("workers"),
    )


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    config: dict[str, Any] | None = None,
) -> BuildResult:
    """Build the entire static site.

    Malformed posts and posts with an unknown layout are reported in the
    result and skipped; every other post is still written.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include posts with ``published: false``.
        root_url: Base URL for links; defaults to the configured ``url``.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the configured output_dir.
        config: Preloaded configuration; read from quire.yaml when None.

    Returns:
        BuildResult with the registry, output directory and errors.

    Raises:
        DuplicateSlug: Two posts share a slug or a URL; nothing is written.
        BuildError: A layout failed to render for a reason other than
            being unknown.
    """
    config = config if config is not None else load_config(project_root)
    registry = load_registry(project_root, config, include_drafts)

    output_dir = output_dir_override or (project_root / config["output_dir"])
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    result = BuildResult(registry=registry, output_dir=output_dir, errors=list(registry.errors))
    engine = TemplateEngine(project_root, config, root_url=root_url)

    for post in registry:
        try:
            rendered = _render(engine.render_post, post, post.path)
        except UnknownLayout as exc:
            result.errors.append(exc)
            continue
        result.written.append(_write_html(output_dir, post.url, rendered))

    try:
        index_html = _render(engine.render_index, list(registry), project_root / config["layouts_dir"])
    except UnknownLayout as exc:
        result.errors.append(exc)
    else:
        result.written.append(_write_html(output_dir, INDEX_URL, index_html))

    _copy_assets(project_root / config["assets_dir"], output_dir / config["assets_dir"])
    limit = int(config.get("excerpt_length", 200))
    for generator in default_feed_generators(lambda p: describe(p, limit)):
        generator.write(output_dir, list(registry), config)
    return result


def _render(render, subject, source_path: Path) -> str:
    """Call a render function, wrapping unexpected failures in BuildError."""
    try:
        return render(subject)
    except QuireError:
        raise
    except Exception as exc:
        raise BuildError(source_path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    if error_type == "TemplateSyntaxError":
        return f"Template syntax error on line {getattr(exc, 'lineno', '?')}: {exc}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    return f"{error_type}: {exc}"


def _write_html(output_dir: Path, url: str, rendered: str) -> Path:
    """Write rendered HTML to ``<output>/<url>/index.html``."""
    target_dir = output_dir / url.strip("/")
    if not target_dir.resolve().is_relative_to(output_dir.resolve()):
        raise BuildError(target_dir, f"URL '{url}' resolves outside {output_dir}")
    target_dir.mkdir(parents=True, exist_ok=True)
    html_path = target_dir / "index.html"
    html_path.write_text(rendered, encoding="utf-8")
    return html_path


def _copy_assets(source: Path, dest: Path) -> None:
    if source.is_dir():
        shutil.copytree(source, dest, dirs_exist_ok=True)


def describe(post: Post, limit: int = 200) -> str:
    """Plain-text summary of a post for feeds and listings."""
    return first_paragraph(post.excerpt or post.body, limit)
