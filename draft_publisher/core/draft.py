"""Draft file discovery and lifecycle.

Drafts live under ``<drafts_dir>/cases`` and ``<drafts_dir>/posts``. A draft
is never modified or deleted by the pipeline; after a successful publish it
is renamed in place with a ``pub_<timestamp>_`` prefix so it is skipped by
later listings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
import re

from .types import DraftKind


PUBLISHED_PREFIX = "pub_"
DRAFT_SUFFIXES = (".md", ".mdx", ".txt")


def slugify(text: str) -> str:
    """Convert text to URL-safe slug.

    Args:
        text: The text to slugify

    Returns:
        A lowercase, hyphenated slug limited to 80 characters
    """
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    if not slug:
        slug = "untitled"
    return slug[:80].rstrip("-")


def is_published(path: Path) -> bool:
    return path.name.startswith(PUBLISHED_PREFIX)


@dataclass
class Draft:
    """A pending draft file.

    Attributes:
        path: Location of the draft
        kind: Collection the draft publishes into
    """

    path: Path
    kind: DraftKind

    @property
    def name(self) -> str:
        return self.path.name

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def published_path(self, now: datetime | None = None) -> Path:
        """Return the path the draft is renamed to after publishing."""
        stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
        return self.path.with_name(f"{PUBLISHED_PREFIX}{stamp}_{self.path.name}")

    def mark_published(self, now: datetime | None = None) -> Path:
        """Rename the draft with the published prefix and return the new path."""
        target = self.published_path(now)
        self.path.rename(target)
        return target


def infer_kind(path: Path) -> DraftKind | None:
    """Infer the draft kind from its parent folder name."""
    parent = path.parent.name.lower()
    for kind in DraftKind:
        if parent in (kind.value, kind.folder):
            return kind
    return None


def load_draft(path: Path, kind: DraftKind | None = None) -> Draft:
    """Build a Draft, inferring the kind from the folder when not given.

    Raises:
        ValueError: If the kind cannot be determined
    """
    resolved = kind or infer_kind(path)
    if resolved is None:
        raise ValueError(
            f"Cannot determine draft kind for {path}; place it under cases/ or posts/ or pass --kind"
        )
    return Draft(path=path, kind=resolved)


def list_drafts(drafts_dir: Path, kind: DraftKind | None = None) -> list[Draft]:
    """List unpublished drafts, sorted by kind then file name."""
    kinds = [kind] if kind else list(DraftKind)
    drafts: list[Draft] = []
    for current in kinds:
        folder = drafts_dir / current.folder
        if not folder.is_dir():
            continue
        for path in sorted(folder.iterdir()):
            if not path.is_file() or path.suffix.lower() not in DRAFT_SUFFIXES:
                continue
            if is_published(path) or path.name.startswith("."):
                continue
            drafts.append(Draft(path=path, kind=current))
    return drafts
