"""
Cloudflare storage backends over the REST API.

- StreamBackend: remote copy of a video URL into Cloudflare Stream
- ImagesBackend: remote URL upload into Cloudflare Images
- R2Backend: object PUT of a local file into an R2 bucket

Every failure (transport error, non-2xx status, ``success: false`` envelope,
missing credentials) surfaces as ``UploadError``.
"""

from __future__ import annotations

from datetime import datetime
import json
import logging
from pathlib import Path
import re
from typing import Any
from urllib.parse import quote

import httpx

from ..config import CloudflareConfig, get_secret
from ..errors import UploadError
from ..utils.logging import log_event
from ..utils.tracing import record_span_error, set_span_output, start_span
from .base import FileUploadBackend, RemoteUploadBackend, UploadResult


IMAGE_VARIANTS = ("thumbnail", "medium", "large", "public")

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
}


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def unique_object_name(original_name: str, now: datetime | None = None) -> str:
    """Build ``<sanitized-base>-<YYYYmmddHHMMSS><ext>`` for an object key.

    Examples:
        >>> unique_object_name("Court Ruling (final).PDF", datetime(2024, 1, 2, 3, 4, 5))
        'court-ruling-final-20240102030405.pdf'
    """
    path = Path(original_name)
    ext = path.suffix.lower()
    base = path.stem.lower()
    base = re.sub(r"[^a-z0-9\s-]", "", base)
    base = re.sub(r"[\s-]+", "-", base).strip("-")[:50].rstrip("-") or "document"
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return f"{base}-{stamp}{ext}"


class _CloudflareClient:
    """Shared credential handling and request plumbing."""

    provider = "cloudflare"

    def __init__(
        self,
        cfg: CloudflareConfig,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg
        self.transport = transport
        self.logger = logger

    def _credentials(self, source_url: str) -> tuple[str, str]:
        account_id = get_secret(self.cfg.account_id, self.cfg.account_id_env)
        api_token = get_secret(self.cfg.api_token, self.cfg.api_token_env)
        if not account_id or not api_token:
            raise UploadError(
                source_url,
                self.provider,
                f"Missing Cloudflare credentials ({self.cfg.account_id_env} / {self.cfg.api_token_env})",
            )
        return account_id, api_token

    def _request(
        self,
        method: str,
        path: str,
        source_url: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        account_id, api_token = self._credentials(source_url)
        url = f"{self.cfg.api_base}/accounts/{account_id}/{path}"
        headers = {"Authorization": f"Bearer {api_token}"}
        headers.update(kwargs.pop("headers", {}) or {})
        try:
            with httpx.Client(
                timeout=self.cfg.timeout_seconds,
                trust_env=self.cfg.trust_env,
                transport=self.transport,
            ) as client:
                resp = client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise UploadError(source_url, self.provider, f"{type(exc).__name__}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400 or not data.get("success", False):
            raise UploadError(source_url, self.provider, _error_message(resp, data))
        return data


def _error_message(resp: httpx.Response, data: dict[str, Any]) -> str:
    errors = data.get("errors") or []
    messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]
    if messages:
        return f"HTTP {resp.status_code}: {'; '.join(messages)}"
    return f"HTTP {resp.status_code}: {resp.text[:300]}"


class StreamBackend(_CloudflareClient, RemoteUploadBackend):
    """Cloudflare Stream "copy from URL" uploads."""

    name = "stream"
    provider = "cloudflare-stream"

    def upload_from_url(self, source_url: str, meta: dict[str, Any]) -> UploadResult:
        payload = {"url": source_url, "meta": _string_meta(meta)}
        with start_span(
            "cloudflare.stream.copy",
            kind="tool",
            input_value=payload,
            attributes={"media.source_url": source_url},
        ) as span:
            try:
                data = self._request("POST", "stream/copy", source_url, json=payload)
            except UploadError as exc:
                record_span_error(span, exc)
                raise
            result = data.get("result") or {}
            uid = result.get("uid")
            if not uid:
                raise UploadError(source_url, self.provider, "Response did not include a video uid")
            urls = self._urls(uid, result)
            set_span_output(span, {"uid": uid, "urls": urls})

        log_event(self.logger, "Stream copy accepted", source_url=source_url, video_id=uid)
        return UploadResult(
            provider_id=uid,
            urls=urls,
            file_name=str(meta.get("name") or ""),
            raw={
                "uid": uid,
                "status": result.get("status"),
                "duration": result.get("duration"),
                "readyToStream": result.get("readyToStream"),
            },
        )

    def _urls(self, uid: str, result: dict[str, Any]) -> dict[str, str]:
        code = get_secret(self.cfg.stream_customer_code, self.cfg.stream_customer_code_env)
        if code:
            base = f"https://customer-{code}.cloudflarestream.com/{uid}"
            return {
                "stream": f"{base}/manifest/video.m3u8",
                "embed": f"{base}/iframe",
                "thumbnail": f"{base}/thumbnails/thumbnail.jpg",
            }
        playback = result.get("playback") or {}
        return {
            "stream": str(playback.get("hls") or ""),
            "embed": str(result.get("preview") or ""),
            "thumbnail": str(result.get("thumbnail") or ""),
        }


class ImagesBackend(_CloudflareClient, RemoteUploadBackend):
    """Cloudflare Images uploads from a remote URL."""

    name = "images"
    provider = "cloudflare-images"

    def upload_from_url(self, source_url: str, meta: dict[str, Any]) -> UploadResult:
        files = {
            "url": (None, source_url),
            "metadata": (None, json.dumps(_string_meta(meta))),
        }
        with start_span(
            "cloudflare.images.upload",
            kind="tool",
            input_value={"url": source_url, "metadata": meta},
            attributes={"media.source_url": source_url},
        ) as span:
            try:
                data = self._request("POST", "images/v1", source_url, files=files)
            except UploadError as exc:
                record_span_error(span, exc)
                raise
            result = data.get("result") or {}
            image_id = result.get("id")
            if not image_id:
                raise UploadError(source_url, self.provider, "Response did not include an image id")
            urls = self._urls(image_id, result)
            set_span_output(span, {"id": image_id, "urls": urls})

        log_event(self.logger, "Image uploaded", source_url=source_url, image_id=image_id)
        return UploadResult(
            provider_id=image_id,
            urls=urls,
            file_name=str(result.get("filename") or meta.get("name") or ""),
            raw={"id": image_id, "uploaded": result.get("uploaded"), "variants": result.get("variants")},
        )

    def _urls(self, image_id: str, result: dict[str, Any]) -> dict[str, str]:
        account_hash = get_secret(self.cfg.images_account_hash, self.cfg.images_account_hash_env)
        if account_hash:
            return {
                variant: f"https://imagedelivery.net/{account_hash}/{image_id}/{variant}"
                for variant in IMAGE_VARIANTS
            }
        by_name = {str(v).rstrip("/").rsplit("/", 1)[-1]: str(v) for v in result.get("variants") or []}
        return {variant: by_name[variant] for variant in IMAGE_VARIANTS if variant in by_name}


class R2Backend(_CloudflareClient, FileUploadBackend):
    """Cloudflare R2 object uploads for documents."""

    name = "r2"
    provider = "cloudflare-r2"

    def upload_file(self, path: Path, meta: dict[str, Any]) -> UploadResult:
        source_url = str(meta.get("source_url") or path)
        public_base = get_secret(self.cfg.r2_public_url, self.cfg.r2_public_url_env)
        if not public_base:
            raise UploadError(
                source_url,
                self.provider,
                f"Missing R2 public URL ({self.cfg.r2_public_url_env})",
            )

        original_name = str(meta.get("name") or path.name)
        object_name = unique_object_name(original_name)
        key = f"{self.cfg.r2_prefix.strip('/')}/{object_name}" if self.cfg.r2_prefix else object_name
        content_type = content_type_for(Path(original_name))
        object_path = f"r2/buckets/{self.cfg.r2_bucket}/objects/{quote(key)}"

        with start_span(
            "cloudflare.r2.put",
            kind="tool",
            input_value={"key": key, "bucket": self.cfg.r2_bucket},
            attributes={"media.source_url": source_url},
        ) as span:
            try:
                self._request(
                    "PUT",
                    object_path,
                    source_url,
                    content=path.read_bytes(),
                    headers={"Content-Type": content_type},
                )
            except UploadError as exc:
                record_span_error(span, exc)
                raise
            public_url = f"{public_base.rstrip('/')}/{key}"
            set_span_output(span, {"key": key, "public_url": public_url})

        log_event(self.logger, "Document stored", source_url=source_url, key=key)
        return UploadResult(
            provider_id=key,
            urls={"public": public_url},
            file_name=object_name,
            raw={
                "bucket": self.cfg.r2_bucket,
                "key": key,
                "contentType": content_type,
                "originalFileName": original_name,
                "size": path.stat().st_size,
            },
        )


def _string_meta(meta: dict[str, Any]) -> dict[str, str]:
    return {str(k): str(v) for k, v in meta.items() if v not in (None, "")}
