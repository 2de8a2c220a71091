"""Error types for Quire.

Every error raised while discovering, parsing or rendering posts derives from
QuireError and carries the file it concerns, so callers can report it with
context and keep going.

Error kinds:
- UnterminatedFrontMatter: a front-matter block is opened but never closed.
- MalformedPost: filename, date or front matter violates the post convention.
- DuplicateSlug: two files resolve to the same slug; the whole build fails.
- DuplicateUrl: two posts, or a post and the index, share a URL; the build fails.
- UnknownLayout: a render call names a layout that does not exist.
- BuildError: an unexpected failure while rendering a post.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base error with file context.

    Attributes:
        source_path: Path to the file the error concerns, if any.
        message: Human-readable error message.
        fatal: Whether this error makes a build command exit non-zero.
    """

    fatal = True

    def __init__(self, message: str, source_path: Path | None = None):
        self.message = message
        self.source_path = source_path
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class UnterminatedFrontMatter(QuireError):
    """Opening ``---`` found with no closing marker before end of file."""


class MalformedPost(QuireError):
    """A post whose filename, date or header violates the convention.

    Malformed posts are dropped from the registry and reported as warnings.
    """

    fatal = False


class DuplicateSlug(QuireError):
    """Two post files resolve to the same slug.

    Attributes:
        slug: The conflicting slug.
        paths: Every file that resolved to it.
    """

    def __init__(self, slug: str, paths: list[Path]):
        self.slug = slug
        self.paths = paths
        names = ", ".join(str(p) for p in paths)
        super().__init__(f"Duplicate slug '{slug}' in: {names}", paths[0] if paths else None)


class DuplicateUrl(DuplicateSlug):
    """Two posts, or a post and the index page, render to the same URL.

    Attributes:
        url: The conflicting site path.
    """

    def __init__(self, url: str, paths: list[Path]):
        self.url = url
        self.slug = url
        self.paths = paths
        names = ", ".join(str(p) for p in paths)
        QuireError.__init__(
            self, f"Duplicate URL '{url}' in: {names}", paths[0] if paths else None
        )


class UnknownLayout(QuireError):
    """A render call named a layout with no matching template.

    Attributes:
        layout: The layout name that was requested.
    """

    def __init__(self, layout: str, source_path: Path | None = None):
        self.layout = layout
        super().__init__(f"Unknown layout '{layout}'", source_path)


class BuildError(QuireError):
    """Error during site build with file context.

    Attributes:
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.original_error = original_error
        super().__init__(message, source_path)
