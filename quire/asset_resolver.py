"""Hero image path resolution for Quire.

Every post's hero image lives at a conventional location derived from its
slug: ``assets/images/<slug>/hero.png``.

Key functions:
- hero_image_path: Derive the conventional path. Pure, no I/O.

Key classes:
- HeroImageResolver: Existence-checking lookup with a fallback, for templates.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

DEFAULT_IMAGE_DIR = "assets/images"
DEFAULT_HERO_FILENAME = "hero.png"


def hero_image_path(
    slug: str,
    prefix: str = DEFAULT_IMAGE_DIR,
    filename: str = DEFAULT_HERO_FILENAME,
) -> str:
    """Compute the conventional hero image path for a post.

    Args:
        slug: Post slug, e.g. ``2023-05-31-example``.
        prefix: Directory holding per-post image folders.
        filename: Hero image filename inside the post folder.

    Returns:
        Relative POSIX path such as ``assets/images/2023-05-31-example/hero.png``.

    Raises:
        ValueError: If ``slug`` is empty.
    """
    if not slug:
        raise ValueError("Cannot derive a hero image path from an empty slug")
    return str(PurePosixPath(prefix.strip("/")) / slug / filename)


class HeroImageResolver:
    """Looks up hero images on disk, falling back when none exists.

    The derived path is tried first, then the same stem with each of
    ``ALTERNATE_EXTENSIONS``.

    Attributes:
        project_root: Directory the derived paths are relative to.
        prefix: Directory holding per-post image folders.
        filename: Conventional hero filename.
        fallback: Path returned when no image exists, or None.
    """

    ALTERNATE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")

    def __init__(
        self,
        project_root: Path,
        prefix: str = DEFAULT_IMAGE_DIR,
        filename: str = DEFAULT_HERO_FILENAME,
        fallback: str | None = None,
    ):
        self.project_root = project_root
        self.prefix = prefix
        self.filename = filename
        self.fallback = fallback

    def candidates(self, slug: str) -> list[str]:
        """Return every relative path tried for ``slug``, in order."""
        primary = hero_image_path(slug, self.prefix, self.filename)
        stem = PurePosixPath(primary).with_suffix("")
        paths = [primary]
        for ext in self.ALTERNATE_EXTENSIONS:
            candidate = str(stem.with_suffix(ext))
            if candidate not in paths:
                paths.append(candidate)
        return paths

    def resolve(self, slug: str) -> str | None:
        """Return the site path of the hero image for ``slug``.

        Args:
            slug: Post slug.

        Returns:
            Absolute site path (``/assets/images/<slug>/hero.png``) of the
            first existing candidate, else the fallback.
        """
        for candidate in self.candidates(slug):
            if (self.project_root / candidate).is_file():
                return f"/{candidate}"
        return self.fallback
