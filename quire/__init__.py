"""Quire static blog engine.

Quire discovers dated Markdown posts (``YYYY-MM-DD-slug.md``), parses their
YAML front matter and excerpts, and renders them through Jinja2 layouts into
a static site. A development server rebuilds on change with live reload.

The main entry point is the CLI module, which provides commands for
scaffolding a blog, creating posts, building, checking and serving.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
