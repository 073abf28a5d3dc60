"""
Content file writing.

The published MDX file is composed from validated metadata (rendered as YAML
frontmatter), generated import lines for the components the body uses, and
the generated body. Any frontmatter or component imports the model put in
the body are discarded first.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from ..core.components import component_imports, strip_component_imports
from ..core.types import DraftKind, GeneratedArticle
from ..errors import WriteConflict
from ..registry.frontmatter import dump_frontmatter, split_frontmatter


CASE_FIELD_ORDER = (
    "title",
    "description",
    "case_id",
    "victim_name",
    "incident_date",
    "published",
    "city",
    "county",
    "age",
    "race",
    "gender",
    "agencies",
    "cause_of_death",
    "armed_status",
    "threat_level",
    "force_type",
    "shooting_officers",
    "investigation_status",
    "charges_filed",
    "civil_lawsuit_filed",
    "bodycam_available",
    "tags",
    "featured_image",
    "documents",
    "external_links",
)

POST_FIELD_ORDER = (
    "title",
    "description",
    "published_date",
    "published",
    "tags",
    "featured_image",
    "documents",
    "external_links",
)


def order_frontmatter(metadata: dict[str, Any], kind: DraftKind) -> dict[str, Any]:
    """Return metadata with known fields first, in a stable order."""
    order = CASE_FIELD_ORDER if kind == DraftKind.CASE else POST_FIELD_ORDER
    ordered = {key: metadata[key] for key in order if key in metadata}
    ordered.update({key: value for key, value in metadata.items() if key not in ordered})
    return ordered


def clean_body(body: str) -> str:
    """Drop a leading frontmatter block and component imports from a model body."""
    _, rest = split_frontmatter(body.strip())
    return strip_component_imports(rest).strip()


class ContentWriter:
    """Renders and writes articles into ``<content_dir>/<cases|posts>/``."""

    def __init__(self, content_dir: Path, template_dir: Path | None = None):
        self.content_dir = content_dir
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or Path(__file__).resolve().parent.parent / "templates")),
            autoescape=False,
            trim_blocks=True,
            keep_trailing_newline=True,
        )

    def target_path(self, kind: DraftKind, slug: str) -> Path:
        return self.content_dir / kind.folder / f"{slug}.mdx"

    def render(self, article: GeneratedArticle) -> str:
        body = clean_body(article.content)
        template = self.env.get_template("article.mdx.j2")
        return template.render(
            frontmatter=dump_frontmatter(order_frontmatter(article.metadata, article.kind)),
            imports=component_imports(body),
            body=body,
        )

    def write(self, article: GeneratedArticle, overwrite: bool = False) -> Path:
        """Write the article.

        Raises:
            WriteConflict: If the target exists and ``overwrite`` is False
        """
        path = self.target_path(article.kind, article.slug)
        if path.exists() and not overwrite:
            raise WriteConflict(path)
        rendered = self.render(article)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rendered, encoding="utf-8")
        return path
