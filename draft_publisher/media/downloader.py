"""
Source file downloads for backends that need a local file.

Share links from Dropbox and Google Drive are rewritten to direct-download
URLs. Downloads are scoped: ``download_to_temp`` is a context manager that
removes the file when the block exits, whether or not the upload succeeded.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import Path
import re
import time
from typing import Iterator
from urllib.parse import unquote, urlsplit

import httpx

from ..utils.logging import log_event


MIME_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "video/x-msvideo": ".avi",
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
}

_DROPBOX_DL_RE = re.compile(r"[?&]dl=[01]")
_DRIVE_ID_RE = re.compile(r"/d/([^/]+)")


def to_direct_download_url(url: str) -> str:
    """Convert Dropbox and Google Drive share links to direct-download URLs."""
    if "dropbox.com" in url:
        direct = url.replace("www.dropbox.com", "dl.dropboxusercontent.com")
        return _DROPBOX_DL_RE.sub("", direct)
    if "drive.google.com" in url:
        match = _DRIVE_ID_RE.search(url)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"
    return url


def url_file_name(url: str) -> str:
    """Return the last path segment of ``url`` (URL-decoded), or an empty string."""
    return unquote(urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1])


def extension_for(url: str, content_type: str | None) -> str:
    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        if mime in MIME_TO_EXT:
            return MIME_TO_EXT[mime]
    suffix = Path(url_file_name(url)).suffix
    if suffix:
        return suffix.lower()
    if content_type:
        return mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""
    return ""


@dataclass
class DownloadedFile:
    """A source file fetched into the temp directory.

    Attributes:
        path: Local temp file
        file_name: Name from the source URL (or the temp name when the URL has none)
        content_type: Response content type, if any
    """

    path: Path
    file_name: str
    content_type: str | None = None


class Downloader:
    """Fetches remote files with retries.

    Attributes:
        temp_dir: Directory receiving downloaded files
        timeout: Request timeout in seconds
        retries: Retry attempts after the first failure
        trust_env: Whether to respect system proxy settings
    """

    def __init__(
        self,
        temp_dir: Path,
        timeout: float = 60.0,
        retries: int = 2,
        trust_env: bool = True,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self.temp_dir = temp_dir
        self.timeout = timeout
        self.retries = retries
        self.trust_env = trust_env
        self.transport = transport
        self.logger = logger

    def download(self, url: str) -> DownloadedFile:
        """Download ``url`` into the temp directory.

        Raises:
            httpx.HTTPError: When every attempt fails
        """
        direct_url = to_direct_download_url(url)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._download_once(url, direct_url)
            except httpx.HTTPError as exc:
                log_event(
                    self.logger,
                    "Download attempt failed",
                    url=url,
                    attempt=attempt,
                    error=f"{type(exc).__name__}: {exc}",
                )
                if attempt > self.retries:
                    raise
            time.sleep(0.5 * attempt)

    def _download_once(self, url: str, direct_url: str) -> DownloadedFile:
        with httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            trust_env=self.trust_env,
            transport=self.transport,
        ) as client:
            with client.stream("GET", direct_url) as resp:
                resp.raise_for_status()
                content_type = resp.headers.get("content-type")
                ext = extension_for(url, content_type)
                target = self.temp_dir / f"download-{int(time.time() * 1000)}{ext}"
                try:
                    with target.open("wb") as handle:
                        for chunk in resp.iter_bytes():
                            handle.write(chunk)
                except httpx.HTTPError:
                    target.unlink(missing_ok=True)
                    raise

        name = url_file_name(url) or target.name
        if not Path(name).suffix and ext:
            name = f"{name}{ext}"
        return DownloadedFile(path=target, file_name=name, content_type=content_type)

    @contextmanager
    def download_to_temp(self, url: str) -> Iterator[DownloadedFile]:
        """Download ``url`` and remove the temp file when the block exits."""
        downloaded = self.download(url)
        try:
            yield downloaded
        finally:
            try:
                downloaded.path.unlink(missing_ok=True)
            except OSError as exc:
                log_event(
                    self.logger,
                    "Temp file cleanup failed",
                    path=str(downloaded.path),
                    error=str(exc),
                )
