"""Backend wiring: one backend per uploadable media type."""

from __future__ import annotations

from dataclasses import dataclass
import logging

import httpx

from ..config import CloudflareConfig
from .base import FileUploadBackend, RemoteUploadBackend
from .cloudflare import ImagesBackend, R2Backend, StreamBackend


@dataclass
class StorageBackends:
    """Backends used by the upload orchestrator.

    Attributes:
        video: Remote-copy backend for videos
        image: Remote-upload backend for images
        document: Local-file backend for documents
    """

    video: RemoteUploadBackend
    image: RemoteUploadBackend
    document: FileUploadBackend


def build_backends(
    cfg: CloudflareConfig,
    transport: httpx.BaseTransport | None = None,
    logger: logging.Logger | None = None,
) -> StorageBackends:
    """Build the Cloudflare backends. Credentials are checked at upload time."""
    return StorageBackends(
        video=StreamBackend(cfg, transport=transport, logger=logger),
        image=ImagesBackend(cfg, transport=transport, logger=logger),
        document=R2Backend(cfg, transport=transport, logger=logger),
    )
