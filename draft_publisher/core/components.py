"""MDX component snippets for embedded media.

Snippets are built once from library records and handed to the article
generation stage, which must embed them unchanged.
"""

from __future__ import annotations

import re

from .types import (
    DocumentParams,
    ImageParams,
    LibraryAsset,
    LinkParams,
    MediaItem,
    VideoParams,
)


COMPONENT_NAMES = ("CloudflareVideo", "CloudflareImage", "DocumentCard", "ExternalLinkCard")
COMPONENT_IMPORT_ROOT = "../../components"

_COMPONENT_TAG_RE = re.compile(r"<(" + "|".join(COMPONENT_NAMES) + r")\b")
_ID_ATTR_RE = re.compile(r'\b(videoId|imageId)="([^"]*)"')


def escape_attr(value: str | None) -> str:
    if not value:
        return ""
    return str(value).replace('"', "&quot;")


def _tag(name: str, props: list[tuple[str, str | None]]) -> str:
    rendered = [f'{key}="{escape_attr(value)}"' for key, value in props if value]
    return f"<{name} {' '.join(rendered)} />"


def build_snippet(item: MediaItem, asset: LibraryAsset | None) -> str:
    """Render the embed component for a media item.

    Args:
        item: Validated media item
        asset: Library record (required for everything except links)

    Returns:
        The MDX component tag
    """
    params = item.params
    if isinstance(params, LinkParams):
        return _tag(
            "ExternalLinkCard",
            [
                ("url", item.source_url),
                ("title", params.title),
                ("description", params.description),
                ("icon", params.icon),
            ],
        )
    if asset is None:
        raise ValueError(f"Missing library asset for {item.source_url}")
    if isinstance(params, VideoParams):
        return _tag("CloudflareVideo", [("videoId", asset.provider_id), ("caption", params.caption)])
    if isinstance(params, ImageParams):
        # alt is mandatory for images and always rendered
        alt = f'alt="{escape_attr(params.alt)}"'
        caption = f' caption="{escape_attr(params.caption)}"' if params.caption else ""
        return f'<CloudflareImage imageId="{escape_attr(asset.provider_id)}" {alt}{caption} />'
    if isinstance(params, DocumentParams):
        return _tag(
            "DocumentCard",
            [
                ("title", params.title),
                ("description", params.description),
                ("url", asset.public_url),
            ],
        )
    raise TypeError(f"Unsupported component params: {type(params).__name__}")


def used_components(body: str) -> list[str]:
    """Return component names referenced in ``body``, in canonical order."""
    found = set(_COMPONENT_TAG_RE.findall(body))
    return [name for name in COMPONENT_NAMES if name in found]


def component_imports(body: str) -> str:
    lines = [
        f"import {name} from '{COMPONENT_IMPORT_ROOT}/{name}.astro';"
        for name in used_components(body)
    ]
    return "\n".join(lines)


def embedded_provider_ids(body: str) -> list[tuple[str, str]]:
    """Return ``(attribute, id)`` pairs for every video/image id in ``body``."""
    return _ID_ATTR_RE.findall(body)


def strip_component_imports(body: str) -> str:
    """Drop import lines for known components; they are regenerated on write."""
    kept = []
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("import ") and any(
            f"import {name} " in stripped for name in COMPONENT_NAMES
        ):
            continue
        kept.append(line)
    return "\n".join(kept).strip()
