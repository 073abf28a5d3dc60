"""
Strict validation of model output.

Each validator returns a ``ValidationResult``: the typed value when there are
no violations, otherwise every violation found. Validators never stop at the
first problem, and a failed result carries no accepted items.

Media contract:

| Type     | Required           | Word ceilings                 | Enum                         |
|----------|--------------------|-------------------------------|------------------------------|
| image    | alt                | alt <= 15, caption <= 25      |                              |
| video    |                    | caption <= 25                 |                              |
| document | title, description | title <= 8, description <= 30 |                              |
| link     |                    | title <= 8, description <= 30 | icon in {video, news, generic} |
"""

from __future__ import annotations

from datetime import date
import re
from typing import Any

from ..core.components import embedded_provider_ids
from ..core.types import (
    DraftKind,
    MediaItem,
    MediaType,
    ScannedUrl,
    ValidationResult,
    Violation,
    params_from_dict,
)
from ..errors import SentinelModelError


REQUIRED_PARAMS: dict[MediaType, tuple[str, ...]] = {
    MediaType.IMAGE: ("alt",),
    MediaType.VIDEO: (),
    MediaType.DOCUMENT: ("title", "description"),
    MediaType.LINK: (),
}

WORD_LIMITS: dict[MediaType, dict[str, int]] = {
    MediaType.IMAGE: {"alt": 15, "caption": 25},
    MediaType.VIDEO: {"caption": 25},
    MediaType.DOCUMENT: {"title": 8, "description": 30},
    MediaType.LINK: {"title": 8, "description": 30},
}

LINK_ICONS = ("video", "news", "generic")

CASE_DESCRIPTION_MAX_WORDS = 100

ENUM_VALUES: dict[str, tuple[str, ...]] = {
    "gender": ("Male", "Female", "Non-binary"),
    "armed_status": ("Armed", "Unarmed", "Unknown"),
    "geography": ("Urban", "Suburban", "Rural"),
    "flee_status": ("Not Fleeing", "Car", "Foot", "Other"),
}

CASE_OPTIONAL_STRINGS = (
    "city",
    "county",
    "race",
    "cause_of_death",
    "threat_level",
    "investigation_status",
)
CASE_OPTIONAL_BOOLS = ("published", "charges_filed", "civil_lawsuit_filed", "bodycam_available")
CASE_OPTIONAL_STRING_LISTS = ("force_type", "shooting_officers", "tags")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def word_count(text: str) -> int:
    return len(str(text).split())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _param_overrides(explicit: dict[str, Any]) -> dict[str, Any]:
    # shortcode flags such as "download: true" are not component params
    return {k: v for k, v in explicit.items() if isinstance(v, str)}


def validate_media_params(
    media_type: MediaType,
    params: dict[str, Any],
    index: int | None = None,
    source_url: str | None = None,
) -> list[Violation]:
    """Check one item's params against the media contract table."""
    violations: list[Violation] = []

    def add(field: str, message: str) -> None:
        violations.append(Violation(field, message, source_url=source_url, index=index))

    for field in REQUIRED_PARAMS[media_type]:
        value = params.get(field)
        if not isinstance(value, str) or not value.strip():
            add(f"componentParams.{field}", f"required for {media_type.value}")

    for field, limit in WORD_LIMITS[media_type].items():
        value = params.get(field)
        if value is None:
            continue
        if not isinstance(value, str):
            add(f"componentParams.{field}", "must be a string")
            continue
        words = word_count(value)
        if words > limit:
            add(f"componentParams.{field}", f"{words} words exceeds limit of {limit}")

    if media_type == MediaType.LINK and params.get("icon") is not None:
        if params["icon"] not in LINK_ICONS:
            add("componentParams.icon", f"must be one of {', '.join(LINK_ICONS)}")
    return violations


def validate_media_metadata(raw: Any, scanned: list[ScannedUrl]) -> ValidationResult:
    """Validate the per-media metadata array against the scanned references.

    Explicit shortcode params override the model's values before checking.
    Every scanned URL must be answered exactly once with a matching type.

    Returns:
        Result whose value is the list of MediaItem in scan order
    """
    if not isinstance(raw, list):
        return ValidationResult(violations=[Violation("response", "expected a JSON array of media items")])

    by_url = {ref.source_url: ref for ref in scanned}
    violations: list[Violation] = []
    accepted: dict[str, MediaItem] = {}
    seen: set[str] = set()

    for index, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            violations.append(Violation("item", "must be an object", index=index))
            continue

        source_url = entry.get("sourceUrl")
        if not isinstance(source_url, str) or not source_url:
            violations.append(Violation("sourceUrl", "missing or not a string", index=index))
            continue
        item_violations: list[Violation] = []

        def add(field: str, message: str) -> None:
            item_violations.append(Violation(field, message, source_url=source_url, index=index))

        ref = by_url.get(source_url)
        if ref is None:
            add("sourceUrl", "not one of the scanned URLs")
        elif source_url in seen:
            add("duplicate", "URL answered more than once")
        seen.add(source_url)

        media_type = MediaType.parse(entry.get("type", ""))
        if media_type is None:
            add("type", "must be one of video, image, document, link")
        elif ref is not None and media_type != ref.type:
            add("type", f"expected '{ref.type.value}', got '{media_type.value}'")

        confidence = entry.get("confidence")
        if not _is_number(confidence) or not 0 <= confidence <= 1:
            add("confidence", "must be a number between 0 and 1")

        params = entry.get("componentParams")
        if not isinstance(params, dict):
            add("componentParams", "must be an object")
            params = None

        if params is not None and media_type is not None:
            if ref is not None:
                params = {**params, **_param_overrides(ref.explicit_params)}
            item_violations.extend(validate_media_params(media_type, params, index, source_url))

        if item_violations:
            violations.extend(item_violations)
            continue
        accepted[source_url] = MediaItem(
            source_url=source_url,
            type=media_type,
            params=params_from_dict(media_type, params),
            confidence=float(confidence),
        )

    answered = {e.get("sourceUrl") for e in raw if isinstance(e, dict)}
    for ref in scanned:
        if ref.source_url not in answered:
            violations.append(Violation("sourceUrl", "no metadata returned for scanned URL", source_url=ref.source_url))

    if violations:
        return ValidationResult(violations=violations)
    return ValidationResult(value=[accepted[ref.source_url] for ref in scanned])


def check_sentinel(payload: Any) -> None:
    """Raise SentinelModelError when the model returned its error sentinel."""
    if isinstance(payload, dict) and payload.get("error") is True:
        message = payload.get("message") or "Model could not extract required metadata"
        raise SentinelModelError(str(message))


def _check_optional_string(metadata: dict[str, Any], field: str, add) -> None:
    value = metadata.get(field)
    if value is not None and not isinstance(value, str):
        add(field, "must be a string or null")


def _check_string_list(metadata: dict[str, Any], field: str, add, required: bool = False) -> None:
    value = metadata.get(field)
    if value is None:
        if required:
            add(field, "must be a list of strings")
        return
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        add(field, "must be a list of strings" + ("" if required else " or null"))


def _check_date(metadata: dict[str, Any], field: str, add) -> None:
    value = metadata.get(field)
    if value is None:
        return
    if not isinstance(value, str) or not _DATE_RE.match(value):
        add(field, "must be YYYY-MM-DD or null")
        return
    try:
        date.fromisoformat(value)
    except ValueError:
        add(field, "is not a valid calendar date")


def _check_featured_image(
    metadata: dict[str, Any],
    image_ids: list[str],
    required: bool,
    add,
) -> None:
    featured = metadata.get("featured_image")
    if featured is None:
        if required and image_ids:
            add("featured_image", "required when images are available")
        return
    if not isinstance(featured, dict):
        add("featured_image", "must be an object or null")
        return
    image_id = featured.get("imageId")
    if image_id not in image_ids:
        add("featured_image.imageId", "must be the id of an uploaded image")
    alt = featured.get("alt")
    if not isinstance(alt, str) or not alt.strip():
        add("featured_image.alt", "required")
    caption = featured.get("caption")
    if caption is not None and not isinstance(caption, str):
        add("featured_image.caption", "must be a string")


def validate_article_metadata(
    payload: Any,
    kind: DraftKind,
    image_ids: list[str],
) -> ValidationResult:
    """Validate stage-one case or post metadata.

    Raises:
        SentinelModelError: If the payload is the model's error sentinel
    """
    check_sentinel(payload)
    if not isinstance(payload, dict):
        return ValidationResult(violations=[Violation("response", "expected a JSON object")])

    violations: list[Violation] = []

    def add(field: str, message: str) -> None:
        violations.append(Violation(field, message))

    for field in ("title", "description"):
        value = payload.get(field)
        if not isinstance(value, str) or not value.strip():
            add(field, "required non-empty string")

    if kind == DraftKind.CASE:
        description = payload.get("description")
        if isinstance(description, str) and word_count(description) > CASE_DESCRIPTION_MAX_WORDS:
            add("description", f"{word_count(description)} words exceeds limit of {CASE_DESCRIPTION_MAX_WORDS}")
        _check_date(payload, "incident_date", add)
        age = payload.get("age")
        if age is not None and (not isinstance(age, int) or isinstance(age, bool) or not 0 <= age <= 130):
            add("age", "must be an integer between 0 and 130 or null")
        for field in CASE_OPTIONAL_STRINGS:
            _check_optional_string(payload, field, add)
        for field in CASE_OPTIONAL_BOOLS:
            value = payload.get(field)
            if value is not None and not isinstance(value, bool):
                add(field, "must be true, false or null")
        _check_string_list(payload, "agencies", add, required=True)
        for field in CASE_OPTIONAL_STRING_LISTS:
            _check_string_list(payload, field, add)
        for field, allowed in ENUM_VALUES.items():
            value = payload.get(field)
            if value is not None and value not in allowed:
                add(field, f"must be one of {', '.join(allowed)} or null")
        _check_featured_image(payload, image_ids, required=True, add=add)
    else:
        _check_date(payload, "published_date", add)
        _check_string_list(payload, "tags", add, required=True)
        published = payload.get("published")
        if published is not None and not isinstance(published, bool):
            add("published", "must be true or false")
        _check_featured_image(payload, image_ids, required=False, add=add)

    if violations:
        return ValidationResult(violations=violations)
    return ValidationResult(value=dict(payload))


def validate_article_body(body: str, known_ids: dict[str, set[str]]) -> ValidationResult:
    """Check that every embedded video/image id belongs to an uploaded asset.

    Args:
        body: Generated article body
        known_ids: Provider ids keyed by attribute name (``videoId``/``imageId``)
    """
    violations = [
        Violation(attr, f"'{value}' is not an uploaded asset id")
        for attr, value in embedded_provider_ids(body)
        if value not in known_ids.get(attr, set())
    ]
    if violations:
        return ValidationResult(violations=violations)
    return ValidationResult(value=body)
