"""Template rendering engine for Quire.

Uses Jinja2 to render posts into named layouts. Layouts are looked up in the
project's ``_layouts`` directory first and then in the layouts shipped with
the package, so a project only needs to override what it changes.

Key class:
- TemplateEngine: Renders posts and the index page into layouts.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup

from .asset_resolver import HeroImageResolver
from .content import Post
from .errors import UnknownLayout
from .renderers import MarkdownRenderer, pygments_css
from .utils import first_paragraph, join_root_url

# Layouts shipped with the package, also copied by ``quire new``
BUILTIN_LAYOUTS_DIR = Path(__file__).parent / "layouts"
LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")
INDEX_LAYOUT = "index"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Rendering is a pure function of the post, the layout and the site
    configuration given at construction; nothing is cached between calls.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        root_url: Base URL prefixed to site paths by ``url_for``.
        env: Jinja2 environment.
        markdown: Markdown renderer for post bodies.
        hero_resolver: Existence-checking hero image lookup.
    """

    def __init__(
        self,
        project_root: Path,
        config: dict[str, Any],
        root_url: str | None = None,
        hero_resolver: HeroImageResolver | None = None,
    ):
        self.project_root = project_root
        self.config = config
        self.root_url = (root_url if root_url is not None else config.get("url")) or ""
        layouts_dir = project_root / config.get("layouts_dir", "_layouts")
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader(str(layouts_dir)),
                    FileSystemLoader(str(BUILTIN_LAYOUTS_DIR)),
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "html.jinja"]),
        )
        image_prefix = config.get("hero_image_dir", "assets/images")
        self.markdown = MarkdownRenderer(image_prefix)
        self.hero_resolver = hero_resolver or HeroImageResolver(
            project_root,
            prefix=image_prefix,
            filename=config.get("hero_image_filename", "hero.png"),
            fallback=config.get("hero_image_fallback"),
        )
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.config
        self.env.globals["url_for"] = self.url_for
        self.env.globals["excerpt_for"] = self.presentation_excerpt
        self.env.globals["hero_image_for"] = self.hero_image_for
        self.env.globals["pygments_css"] = lambda: Markup(pygments_css())

    def url_for(self, path: str) -> str:
        """Generate a URL for a site path, applying root_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return join_root_url(self.root_url, path)

    def hero_image_for(self, post: Post) -> str | None:
        """Return the hero image URL for ``post``, or None when absent."""
        path = self.hero_resolver.resolve(post.slug)
        return self.url_for(path) if path else None

    def presentation_excerpt(self, post: Post) -> Markup | str:
        """Return the excerpt shown in listings.

        Uses the text before the excerpt marker when the post has one,
        rendered to HTML. Otherwise falls back to the plain-text first
        paragraph of the body, cut to ``excerpt_length`` characters.
        """
        if post.excerpt.strip():
            html, _ = self.markdown.render(post.excerpt, post.slug)
            return Markup(html)
        limit = int(self.config.get("excerpt_length", 200))
        return first_paragraph(post.body, limit)

    def resolve_layout(self, layout: str, source_path: Path | None = None) -> Template:
        """Find the template for a layout name.

        Args:
            layout: Layout name such as ``post``.
            source_path: File being rendered, for error context.

        Returns:
            Jinja2 Template object.

        Raises:
            UnknownLayout: No template matches the name.
        """
        for suffix in LAYOUT_SUFFIXES:
            try:
                return self.env.get_template(f"{layout}{suffix}")
            except TemplateNotFound:
                continue
        raise UnknownLayout(layout, source_path)

    def render_post(self, post: Post, layout: str | None = None) -> str:
        """Render a post with its layout.

        Args:
            post: Post to render.
            layout: Layout name; defaults to ``post.layout``.

        Returns:
            Rendered HTML string.

        Raises:
            UnknownLayout: The layout does not exist.
        """
        template = self.resolve_layout(layout or post.layout, post.path)
        html, toc = self.markdown.render(post.body, post.slug)
        return template.render(
            post=post,
            content=Markup(html),
            excerpt=self.presentation_excerpt(post),
            hero_image=self.hero_image_for(post),
            toc=toc,
            page_title=post.title,
        )

    def render_index(self, posts: Sequence[Post]) -> str:
        """Render the post listing page.

        Args:
            posts: Posts in display order.

        Returns:
            Rendered HTML string.
        """
        template = self.resolve_layout(INDEX_LAYOUT)
        return template.render(posts=posts, page_title=self.config.get("title", ""))
