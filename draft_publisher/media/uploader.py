"""
Upload orchestration for scanned media.

Items already present in the media library are reused as-is. New items are
dispatched by type: videos and images are copied remote-to-remote, documents
are downloaded to a scoped temp file and uploaded from disk. Links are never
uploaded.

Batches are sequential and fail-fast. Assets persisted before a failure
stay in the library; the next run reuses them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import shutil

import httpx

from ..core.types import (
    DocumentParams,
    ImageParams,
    LibraryAsset,
    MediaItem,
    MediaType,
    VideoParams,
)
from ..errors import UploadError
from ..storage.factory import StorageBackends
from ..utils.logging import log_event
from .downloader import Downloader, to_direct_download_url, url_file_name
from .library import MediaLibrary


@dataclass
class BatchResult:
    """Outcome of an upload batch.

    Attributes:
        assets: Library records keyed by source URL (links are absent)
        new_uploads: Source URLs uploaded during this batch
        reused: Source URLs found in the library
    """

    assets: dict[str, LibraryAsset] = field(default_factory=dict)
    new_uploads: list[str] = field(default_factory=list)
    reused: list[str] = field(default_factory=list)


class UploadOrchestrator:
    """Dispatches media items to storage backends and records them."""

    def __init__(
        self,
        library: MediaLibrary,
        backends: StorageBackends,
        downloader: Downloader,
        logger: logging.Logger | None = None,
    ):
        self.library = library
        self.backends = backends
        self.downloader = downloader
        self.logger = logger

    @property
    def temp_dir(self) -> Path:
        return self.downloader.temp_dir

    def upload_and_register(self, item: MediaItem) -> tuple[LibraryAsset | None, bool]:
        """Upload one item unless the library already has it.

        Returns:
            ``(asset, created)``; links return ``(None, False)``

        Raises:
            UploadError: If the backend rejects the upload
        """
        if item.type == MediaType.LINK:
            return None, False

        existing = self.library.find_asset_by_source_url(item.source_url)
        if existing is not None:
            log_event(
                self.logger,
                "Reusing library asset",
                source_url=item.source_url,
                asset_id=existing.id,
                provider_id=existing.provider_id,
            )
            return existing, False

        params = item.params
        if item.type == MediaType.VIDEO and isinstance(params, VideoParams):
            upload = self.backends.video.upload_from_url(
                to_direct_download_url(item.source_url),
                {"name": url_file_name(item.source_url), "sourceUrl": item.source_url},
            )
            asset = self.library.add_video(item.source_url, upload, params)
        elif item.type == MediaType.IMAGE and isinstance(params, ImageParams):
            upload = self.backends.image.upload_from_url(
                item.source_url,
                {"sourceUrl": item.source_url, "alt": params.alt},
            )
            asset = self.library.add_image(item.source_url, upload, params)
        elif item.type == MediaType.DOCUMENT and isinstance(params, DocumentParams):
            asset = self._upload_document(item, params)
        else:
            raise TypeError(f"Params {type(params).__name__} do not match media type {item.type.value}")
        return asset, True

    def _upload_document(self, item: MediaItem, params: DocumentParams) -> LibraryAsset:
        # backends wrap their own transport errors, so HTTPError here comes from the download
        try:
            with self.downloader.download_to_temp(item.source_url) as downloaded:
                upload = self.backends.document.upload_file(
                    downloaded.path,
                    {
                        "name": downloaded.file_name,
                        "source_url": item.source_url,
                        "title": params.title,
                    },
                )
        except httpx.HTTPError as exc:
            raise UploadError(item.source_url, "download", f"{type(exc).__name__}: {exc}") from exc
        return self.library.add_document(item.source_url, upload, params)

    def upload_batch(self, items: list[MediaItem]) -> BatchResult:
        """Upload items in order, stopping at the first failure.

        The temp directory is cleared afterwards on both paths.
        """
        result = BatchResult()
        try:
            for index, item in enumerate(items, start=1):
                log_event(
                    self.logger,
                    "Processing media item",
                    index=index,
                    total=len(items),
                    media_type=item.type.value,
                    source_url=item.source_url,
                )
                asset, created = self.upload_and_register(item)
                if asset is None:
                    continue
                result.assets[item.source_url] = asset
                if created:
                    result.new_uploads.append(item.source_url)
                else:
                    result.reused.append(item.source_url)
        finally:
            self.cleanup_temp_dir()
        return result

    def cleanup_temp_dir(self) -> None:
        """Empty the temp directory and remove it. Failures are only logged."""
        temp_dir = self.temp_dir
        if not temp_dir.exists():
            return
        for child in temp_dir.iterdir():
            try:
                if child.is_dir():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            except OSError as exc:
                self._log_cleanup_failure(child, exc)
        try:
            temp_dir.rmdir()
        except OSError as exc:
            self._log_cleanup_failure(temp_dir, exc)

    def _log_cleanup_failure(self, path: Path, exc: OSError) -> None:
        if self.logger is not None:
            self.logger.warning(
                "Temp cleanup failed", extra={"path": str(path), "error": str(exc)}
            )
