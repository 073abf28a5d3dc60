"""
Media library: a dedup store keyed by exact source URL.

The library is a single JSON file with three buckets (videos, images,
documents) mapping asset ids to records. A source URL appears at most once
across all buckets; adding a URL that is already present returns the
existing record untouched.

The file is rewritten whole on every change. There is no locking, so two
publish runs must not share a library file at the same time.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any, Iterator
import uuid

from ..core.types import DocumentParams, ImageParams, LibraryAsset, MediaType, VideoParams
from ..storage.base import UploadResult
from ..utils.jsonfile import read_json, write_json_atomic
from ..utils.logging import log_event


BUCKETS: tuple[tuple[str, MediaType], ...] = (
    ("videos", MediaType.VIDEO),
    ("images", MediaType.IMAGE),
    ("documents", MediaType.DOCUMENT),
)


def _empty_store() -> dict[str, dict[str, Any]]:
    return {bucket: {} for bucket, _ in BUCKETS}


class MediaLibrary:
    """JSON-file backed store of uploaded media.

    Attributes:
        path: Location of the library file
    """

    def __init__(self, path: Path, logger: logging.Logger | None = None):
        self.path = path
        self.logger = logger
        self._data = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        raw = read_json(self.path, default=None) or {}
        data = _empty_store()
        for bucket, _ in BUCKETS:
            data[bucket].update(raw.get(bucket) or {})
        return data

    def reload(self) -> None:
        self._data = self._load()

    def save(self) -> None:
        write_json_atomic(self.path, self._data)

    def _iter_assets(self) -> Iterator[LibraryAsset]:
        for bucket, _ in BUCKETS:
            for record in self._data[bucket].values():
                yield LibraryAsset.from_dict(record)

    def find_asset_by_source_url(self, source_url: str) -> LibraryAsset | None:
        """Return the asset whose source URL equals ``source_url`` exactly."""
        for bucket, _ in BUCKETS:
            for record in self._data[bucket].values():
                if record.get("sourceUrl") == source_url:
                    return LibraryAsset.from_dict(record)
        return None

    def get_asset_by_id(self, asset_id: str) -> LibraryAsset | None:
        for bucket, _ in BUCKETS:
            record = self._data[bucket].get(asset_id)
            if record is not None:
                return LibraryAsset.from_dict(record)
        return None

    def list_assets(self, media_type: MediaType | None = None) -> list[LibraryAsset]:
        assets = [a for a in self._iter_assets() if media_type is None or a.type == media_type]
        return sorted(assets, key=lambda a: a.added_at, reverse=True)

    def search(self, query: str) -> list[LibraryAsset]:
        """Case-insensitive substring search over descriptive fields."""
        needle = query.strip().lower()
        if not needle:
            return self.list_assets()
        matches = []
        for asset in self.list_assets():
            haystack = " ".join(
                [
                    asset.id,
                    asset.source_url,
                    asset.file_name,
                    asset.description,
                    asset.alt,
                    asset.caption,
                    asset.title,
                    " ".join(asset.tags),
                ]
            ).lower()
            if needle in haystack:
                matches.append(asset)
        return matches

    def stats(self) -> dict[str, int]:
        return {bucket: len(self._data[bucket]) for bucket, _ in BUCKETS}

    def add_video(
        self,
        source_url: str,
        upload: UploadResult,
        params: VideoParams,
        tags: list[str] | None = None,
    ) -> LibraryAsset:
        props = {
            "videoId": upload.provider_id,
            "caption": params.caption or "",
            "poster": upload.urls.get("thumbnail", ""),
        }
        return self._add(
            MediaType.VIDEO,
            source_url,
            upload,
            props,
            caption=params.caption or "",
            description=params.caption or "",
            tags=tags,
        )

    def add_image(
        self,
        source_url: str,
        upload: UploadResult,
        params: ImageParams,
        tags: list[str] | None = None,
    ) -> LibraryAsset:
        props = {
            "imageId": upload.provider_id,
            "alt": params.alt,
            "caption": params.caption or "",
            "variant": "public",
        }
        return self._add(
            MediaType.IMAGE,
            source_url,
            upload,
            props,
            alt=params.alt,
            caption=params.caption or "",
            description=params.caption or params.alt,
            tags=tags,
        )

    def add_document(
        self,
        source_url: str,
        upload: UploadResult,
        params: DocumentParams,
        tags: list[str] | None = None,
    ) -> LibraryAsset:
        props = {
            "href": upload.urls.get("public", ""),
            "text": params.title,
            "download": True,
            "target": "_blank",
            "rel": "noopener noreferrer",
        }
        return self._add(
            MediaType.DOCUMENT,
            source_url,
            upload,
            props,
            title=params.title,
            description=params.description,
            tags=tags,
        )

    def _add(
        self,
        media_type: MediaType,
        source_url: str,
        upload: UploadResult,
        component_props: dict[str, Any],
        tags: list[str] | None = None,
        **fields: str,
    ) -> LibraryAsset:
        existing = self.find_asset_by_source_url(source_url)
        if existing is not None:
            log_event(
                self.logger,
                "Library already has source URL",
                source_url=source_url,
                asset_id=existing.id,
            )
            return existing

        asset = LibraryAsset(
            id=f"{media_type.value}-{uuid.uuid4()}",
            type=media_type,
            source_url=source_url,
            provider_id=upload.provider_id,
            file_name=upload.file_name,
            tags=list(tags or []),
            added_at=datetime.now(timezone.utc).isoformat(),
            urls=dict(upload.urls),
            component_props=component_props,
            provider_data=dict(upload.raw),
            **fields,
        )
        self._data[media_type.bucket][asset.id] = asset.to_dict()
        self.save()
        log_event(
            self.logger,
            "Library asset added",
            asset_id=asset.id,
            media_type=media_type.value,
            source_url=source_url,
            provider_id=asset.provider_id,
        )
        return asset
