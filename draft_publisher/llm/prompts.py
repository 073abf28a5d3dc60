"""Prompt loading and rendering helpers for the AI stages."""

from __future__ import annotations

from datetime import date
from functools import lru_cache
import json
from pathlib import Path
from typing import Any

from ..core.scanner import extract_url_context
from ..core.types import DraftKind, MediaType, ProcessedMedia, ScannedUrl
from ..registry.store import MetadataRegistry


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"

CAN_INFER = (
    'Gender from pronouns (he/him -> "Male", she/her -> "Female")',
    'Age from phrases ("39-year-old" -> 39)',
    'Force types from actions ("slammed to ground" -> "Physical Force")',
    'Armed status from descriptions ("unarmed", "had no weapons")',
    "Threat level from the behavior described",
    "Civil lawsuit from mentions of legal filings",
    "Bodycam availability if footage is mentioned",
)

CANNOT_INFER = (
    "Race/ethnicity (NEVER assume from names or location)",
    'Exact dates ("October 2022" without a day -> null)',
    "Officer names (unless specifically named)",
    "Legal outcomes (unless explicitly stated)",
)

POST_CAN_INFER = (
    "Topic tags from the subject matter (2-5 tags)",
    "Registry tags for topics the draft covers under different wording",
)


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def system_prompt() -> str:
    return _load_template("system")


def _trim(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "\n...(draft truncated)"


def build_inference_rules(kind: DraftKind) -> str:
    can = CAN_INFER if kind == DraftKind.CASE else POST_CAN_INFER
    lines = ["**INFERENCE RULES:**", "", "What you CAN infer:"]
    lines.extend(f"- {rule}" for rule in can)
    lines.extend(["", "What you CANNOT infer (must be explicitly stated or set to null):"])
    lines.extend(f"- {rule}" for rule in CANNOT_INFER)
    return "\n".join(lines)


def build_media_metadata_prompt(
    draft_text: str,
    scanned: list[ScannedUrl],
    context_chars: int,
) -> str:
    """Prompt for per-media descriptive metadata.

    Each item carries only a bounded context window, not the whole draft.
    """
    blocks = []
    for idx, ref in enumerate(scanned, start=1):
        context = extract_url_context(draft_text, ref.source_url, context_chars) or "(no context available)"
        lines = [f"{idx}. {ref.type.value.upper()}: {ref.source_url}"]
        given = {k: v for k, v in ref.explicit_params.items() if isinstance(v, str)}
        if given:
            lines.append("GIVEN: " + json.dumps(given, ensure_ascii=False))
        lines.append(f"CONTEXT: {context}")
        blocks.append("\n".join(lines))
    return _render_template("media_metadata", media_items="\n---\n".join(blocks))


def _image_entries(media: list[ProcessedMedia]) -> list[ProcessedMedia]:
    return [m for m in media if m.item.type == MediaType.IMAGE and m.asset is not None]


def _images_section(images: list[ProcessedMedia]) -> str:
    if not images:
        return ""
    lines = [f"**AVAILABLE IMAGES:** ({len(images)} for the featured_image field)", ""]
    for idx, entry in enumerate(images, start=1):
        params = entry.item.params
        caption = getattr(params, "caption", None)
        lines.append(f'{idx}. imageId: "{entry.asset.provider_id}"')
        lines.append(f'   alt: "{getattr(params, "alt", "")}"')
        lines.append(f'   caption: "{caption}"' if caption else "   caption: (none)")
    return "\n".join(lines)


def _featured_image_hint(images: list[ProcessedMedia], required: bool) -> str:
    if not images:
        return "null"
    ids = ", ".join(f'"{m.asset.provider_id}"' for m in images)
    need = "REQUIRED" if required else "optional, or null"
    return (
        f'{{"imageId": "one of: {ids}", "alt": "copy the selected image alt", '
        f'"caption": "copy the selected image caption or omit"}}  ({need})'
    )


def build_article_metadata_prompt(
    kind: DraftKind,
    draft_text: str,
    registry: MetadataRegistry,
    schema_text: str,
    media: list[ProcessedMedia],
    max_draft_chars: int,
    today: date | None = None,
) -> str:
    """Stage-one prompt for case or post metadata."""
    images = _image_entries(media)
    values = {
        "draft": _trim(draft_text, max_draft_chars),
        "schema": schema_text.strip() or "(not provided)",
        "registry": registry.format_for_prompt(kind),
        "inference_rules": build_inference_rules(kind),
        "images_section": _images_section(images),
        "featured_image_hint": _featured_image_hint(images, required=kind == DraftKind.CASE),
    }
    if kind == DraftKind.CASE:
        values["featured_image_clause"] = " or select a featured_image" if images else ""
        return _render_template("case_metadata", **values)
    values["today"] = (today or date.today()).isoformat()
    return _render_template("post_metadata", **values)


def build_component_reference(media: list[ProcessedMedia]) -> str:
    """List every ready-to-embed snippet with the echo-unchanged instruction."""
    lines = [
        "**Available Components:**",
        "",
        "**CRITICAL**: Copy these component tags EXACTLY as shown. Do NOT modify the "
        "videoId or imageId values or any other attribute.",
        "",
    ]
    embeds = [m for m in media if m.item.type != MediaType.LINK]
    links = [m for m in media if m.item.type == MediaType.LINK]
    if embeds:
        lines.append("MEDIA:")
        lines.extend(f"{idx}. {m.snippet}" for idx, m in enumerate(embeds, start=1))
        lines.append("")
    if links:
        lines.append("EXTERNAL LINKS:")
        lines.extend(f"{idx}. {m.snippet}" for idx, m in enumerate(links, start=1))
        lines.append("")
    if not media:
        lines.append("(no media components available)")
    return "\n".join(lines).rstrip()


def build_article_prompt(
    kind: DraftKind,
    draft_text: str,
    metadata: dict[str, Any],
    media: list[ProcessedMedia],
    max_draft_chars: int,
) -> str:
    """Stage-two prompt: validated metadata verbatim plus the component snippets."""
    name = "case_article" if kind == DraftKind.CASE else "post_article"
    return _render_template(
        name,
        draft=_trim(draft_text, max_draft_chars),
        metadata=json.dumps(metadata, indent=2, ensure_ascii=False),
        component_reference=build_component_reference(media),
    )
