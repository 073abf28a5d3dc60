"""Core data types for the publishing pipeline.

This module defines the dataclasses passed between pipeline stages:
- ScannedUrl: A reference found in a draft by the scanner
- ComponentParams variants: Per-type descriptive parameters for embeds
- MediaItem: A scanned reference enriched with validated parameters
- LibraryAsset: A persisted record of an uploaded media file
- ProcessedMedia: A media item with its asset and ready-to-embed snippet
- GeneratedArticle / PublishResult: Pipeline outputs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Union


class MediaType(str, Enum):
    """Kind of reference found in a draft."""

    VIDEO = "video"
    IMAGE = "image"
    DOCUMENT = "document"
    LINK = "link"

    @classmethod
    def parse(cls, value: str) -> "MediaType | None":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None

    @property
    def bucket(self) -> str | None:
        """Media library bucket holding assets of this type."""
        return {
            MediaType.VIDEO: "videos",
            MediaType.IMAGE: "images",
            MediaType.DOCUMENT: "documents",
        }.get(self)


class DraftKind(str, Enum):
    """Content collection a draft is published into."""

    CASE = "case"
    POST = "post"

    @property
    def folder(self) -> str:
        return f"{self.value}s"


class PublishState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    UPLOADING = "uploading"
    EXTRACTING_METADATA = "extracting_metadata"
    VALIDATING = "validating"
    GENERATING_CONTENT = "generating_content"
    WRITING = "writing"
    MARK_PUBLISHED = "mark_published"
    DONE = "done"
    FAILED = "failed"


def _clean(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v not in (None, "")}


@dataclass
class VideoParams:
    caption: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _clean({"caption": self.caption})


@dataclass
class ImageParams:
    alt: str = ""
    caption: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _clean({"alt": self.alt, "caption": self.caption})


@dataclass
class DocumentParams:
    title: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _clean({"title": self.title, "description": self.description})


@dataclass
class LinkParams:
    title: str | None = None
    description: str | None = None
    icon: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _clean({"title": self.title, "description": self.description, "icon": self.icon})


ComponentParams = Union[VideoParams, ImageParams, DocumentParams, LinkParams]

_PARAM_TYPES: dict[MediaType, type] = {
    MediaType.VIDEO: VideoParams,
    MediaType.IMAGE: ImageParams,
    MediaType.DOCUMENT: DocumentParams,
    MediaType.LINK: LinkParams,
}


def params_from_dict(media_type: MediaType, raw: dict[str, Any]) -> ComponentParams:
    """Build the typed parameter variant for ``media_type``.

    Unknown keys are dropped; values are converted to strings.
    """
    cls = _PARAM_TYPES[media_type]
    allowed = cls.__dataclass_fields__.keys()
    values = {k: str(v) for k, v in raw.items() if k in allowed and v is not None}
    return cls(**values)


@dataclass
class ScannedUrl:
    """A reference found in a draft.

    Attributes:
        source_url: URL exactly as written in the draft
        type: Media type from the shortcode or the URL's extension
        explicit_params: Key/values given in a shortcode (empty for bare URLs)
        from_shortcode: Whether the type was given explicitly by a shortcode
    """

    source_url: str
    type: MediaType
    explicit_params: dict[str, Any] = field(default_factory=dict)
    from_shortcode: bool = False


@dataclass
class MediaItem:
    """A scanned reference with validated descriptive parameters."""

    source_url: str
    type: MediaType
    params: ComponentParams
    confidence: float = 1.0


@dataclass
class LibraryAsset:
    """A media file stored by one of the backends.

    Attributes:
        id: Library id, "<type>-<uuid4>"
        type: Media type (never link)
        source_url: Original URL; unique across the whole library
        provider_id: Backend identifier (image id, video uid, or R2 object key)
        file_name: Original or generated file name
        description: Descriptive text
        alt: Alternative text (images)
        caption: Caption (images, videos)
        title: Title (documents, videos)
        tags: Free-form tags
        added_at: ISO-8601 creation timestamp
        urls: Delivery URLs keyed by variant
        component_props: Props for the site's embed component
        provider_data: Raw backend response metadata
    """

    id: str
    type: MediaType
    source_url: str
    provider_id: str
    file_name: str = ""
    description: str = ""
    alt: str = ""
    caption: str = ""
    title: str = ""
    tags: list[str] = field(default_factory=list)
    added_at: str = ""
    urls: dict[str, str] = field(default_factory=dict)
    component_props: dict[str, Any] = field(default_factory=dict)
    provider_data: dict[str, Any] = field(default_factory=dict)

    @property
    def public_url(self) -> str:
        return self.urls.get("public", "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "sourceUrl": self.source_url,
            "providerId": self.provider_id,
            "fileName": self.file_name,
            "description": self.description,
            "alt": self.alt,
            "caption": self.caption,
            "title": self.title,
            "tags": list(self.tags),
            "addedAt": self.added_at,
            "urls": dict(self.urls),
            "componentProps": dict(self.component_props),
            "providerData": dict(self.provider_data),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LibraryAsset":
        return cls(
            id=data["id"],
            type=MediaType(data["type"]),
            source_url=data["sourceUrl"],
            provider_id=data.get("providerId", ""),
            file_name=data.get("fileName", ""),
            description=data.get("description", ""),
            alt=data.get("alt", ""),
            caption=data.get("caption", ""),
            title=data.get("title", ""),
            tags=list(data.get("tags") or []),
            added_at=data.get("addedAt", ""),
            urls=dict(data.get("urls") or {}),
            component_props=dict(data.get("componentProps") or {}),
            provider_data=dict(data.get("providerData") or {}),
        )


@dataclass
class ProcessedMedia:
    """A media item ready to embed. Links carry no asset."""

    item: MediaItem
    asset: LibraryAsset | None
    snippet: str


@dataclass
class Violation:
    """A single schema contract failure."""

    field: str
    message: str
    source_url: str | None = None
    index: int | None = None

    def __str__(self) -> str:
        where = []
        if self.index is not None:
            where.append(f"item {self.index}")
        if self.source_url:
            where.append(self.source_url)
        prefix = f"[{', '.join(where)}] " if where else ""
        return f"{prefix}{self.field}: {self.message}"


@dataclass
class ValidationResult:
    """Outcome of validating model output. ``value`` is only usable when ``ok``."""

    value: Any = None
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


@dataclass
class GeneratedArticle:
    metadata: dict[str, Any]
    content: str
    slug: str
    kind: DraftKind


@dataclass
class PublishResult:
    """Summary of a pipeline run."""

    draft_path: Path
    state: PublishState = PublishState.IDLE
    output_path: Path | None = None
    published_draft_path: Path | None = None
    article: GeneratedArticle | None = None
    media: list[ProcessedMedia] = field(default_factory=list)
    new_uploads: int = 0
    reused_assets: int = 0
    registry_additions: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None
