"""Media and link reference scanning for draft text.

Two kinds of references are recognized:
- Shortcodes: ``{{type: url | key: value | ...}}`` with an explicit media type
- Bare URLs: markdown links ``[text](url)`` and plain ``http(s)://`` tokens,
  classified by file extension

Results are deduplicated by exact URL string and keep first-occurrence order.
"""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any
from urllib.parse import urlsplit

from .types import MediaType, ScannedUrl


_SHORTCODE_RE = re.compile(
    r"\{\{\s*(?P<type>[A-Za-z]+)\s*:\s*(?P<url>[^\s|}]+)\s*(?P<params>(?:\|[^}]*)?)\}\}"
)
_MARKDOWN_LINK_RE = re.compile(r"\[[^\]]*\]\((?P<url>https?://[^)\s]+)(?:\s+\"[^\"]*\")?\)")
_PLAIN_URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")

_TRAILING_PUNCTUATION = ".,;:!?'"

EXTENSIONS: dict[MediaType, frozenset[str]] = {
    MediaType.IMAGE: frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "ico"}),
    MediaType.VIDEO: frozenset({"mp4", "mov", "avi", "wmv", "flv", "mkv", "webm", "m4v"}),
    MediaType.DOCUMENT: frozenset({"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt"}),
}


def classify_url(url: str) -> MediaType:
    """Classify a bare URL by the extension of its path.

    Args:
        url: Absolute URL

    Returns:
        The media type for known extensions, otherwise ``MediaType.LINK``
    """
    path = urlsplit(url).path.lower()
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return MediaType.LINK
    ext = name.rsplit(".", 1)[-1]
    for media_type, extensions in EXTENSIONS.items():
        if ext in extensions:
            return media_type
    return MediaType.LINK


def coerce_value(value: str) -> Any:
    """Convert "true"/"false" strings to booleans; trim everything else."""
    stripped = value.strip()
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return stripped


def parse_shortcode_params(raw: str) -> dict[str, Any]:
    """Parse the ``| key: value | ...`` tail of a shortcode."""
    params: dict[str, Any] = {}
    for part in raw.split("|"):
        if ":" not in part:
            continue
        key, value = part.split(":", 1)
        key = key.strip()
        if not key:
            continue
        params[key] = coerce_value(value)
    return params


def _strip_trailing(url: str) -> str:
    while url:
        last = url[-1]
        if last in _TRAILING_PUNCTUATION:
            url = url[:-1]
            continue
        if last == ")" and url.count(")") > url.count("("):
            url = url[:-1]
            continue
        break
    return url


def _overlaps(start: int, spans: list[tuple[int, int]]) -> bool:
    return any(s <= start < e for s, e in spans)


def _find_references(text: str) -> list[tuple[int, ScannedUrl]]:
    found: list[tuple[int, ScannedUrl]] = []
    claimed: list[tuple[int, int]] = []

    for match in _SHORTCODE_RE.finditer(text):
        media_type = MediaType.parse(match.group("type"))
        if media_type is None:
            continue
        params = parse_shortcode_params(match.group("params"))
        found.append((match.start(), ScannedUrl(match.group("url"), media_type, params, True)))
        claimed.append(match.span())

    for match in _MARKDOWN_LINK_RE.finditer(text):
        if _overlaps(match.start(), claimed):
            continue
        url = match.group("url")
        found.append((match.start(), ScannedUrl(url, classify_url(url))))
        claimed.append(match.span())

    for match in _PLAIN_URL_RE.finditer(text):
        if _overlaps(match.start(), claimed):
            continue
        url = _strip_trailing(match.group(0))
        if not url:
            continue
        found.append((match.start(), ScannedUrl(url, classify_url(url))))

    found.sort(key=lambda pair: pair[0])
    return found


def scan_text(text: str) -> list[ScannedUrl]:
    """Extract media and link references from draft text.

    Dedup is exact string equality: the first occurrence fixes the position.
    A later shortcode for an already-seen URL still contributes its explicit
    type and params.

    Args:
        text: Draft text

    Returns:
        Ordered list of unique references
    """
    results: dict[str, ScannedUrl] = {}
    for _, ref in _find_references(text):
        existing = results.get(ref.source_url)
        if existing is None:
            results[ref.source_url] = ref
            continue
        if ref.from_shortcode and not existing.from_shortcode:
            existing.type = ref.type
            existing.explicit_params = dict(ref.explicit_params)
            existing.from_shortcode = True
    return list(results.values())


def scan_draft(path: Path) -> list[ScannedUrl]:
    return scan_text(path.read_text(encoding="utf-8"))


def extract_url_context(text: str, url: str, context_chars: int = 500) -> str:
    """Return the text window surrounding the first occurrence of ``url``.

    Args:
        text: Draft text
        url: URL to locate
        context_chars: Characters kept on each side of the URL

    Returns:
        The bounded window, or an empty string when the URL is absent
    """
    index = text.find(url)
    if index == -1:
        return ""
    start = max(0, index - context_chars)
    end = min(len(text), index + len(url) + context_chars)
    return text[start:end].strip()
