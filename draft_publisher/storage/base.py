"""Abstract interfaces for media storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class UploadResult:
    """Outcome of a successful upload.

    Attributes:
        provider_id: Backend identifier for the stored file
        urls: Delivery URLs keyed by variant (public, thumbnail, embed, ...)
        file_name: File name recorded for the asset
        raw: Backend response metadata kept in the library record
    """

    provider_id: str
    urls: dict[str, str] = field(default_factory=dict)
    file_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


class RemoteUploadBackend(ABC):
    """Backend that copies a file directly from a remote URL."""

    name = "remote"

    @abstractmethod
    def upload_from_url(self, source_url: str, meta: dict[str, Any]) -> UploadResult:
        """Ask the backend to fetch ``source_url`` and store it."""
        raise NotImplementedError


class FileUploadBackend(ABC):
    """Backend that stores a local file."""

    name = "file"

    @abstractmethod
    def upload_file(self, path: Path, meta: dict[str, Any]) -> UploadResult:
        """Upload the bytes at ``path``."""
        raise NotImplementedError
