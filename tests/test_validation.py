"""Tests for strict validation of model output."""

import pytest

from draft_publisher.core.types import DraftKind, ImageParams, MediaType, ScannedUrl
from draft_publisher.errors import SentinelModelError
from draft_publisher.llm.validation import (
    check_sentinel,
    validate_article_body,
    validate_article_metadata,
    validate_media_metadata,
)


def _words(n):
    return " ".join(["word"] * n)


SCANNED = [
    ScannedUrl("https://ex.com/1.jpg", MediaType.IMAGE),
    ScannedUrl("https://ex.com/2.jpg", MediaType.IMAGE),
    ScannedUrl("https://ex.com/3.pdf", MediaType.DOCUMENT),
    ScannedUrl("https://ex.com/4.mp4", MediaType.VIDEO),
    ScannedUrl("https://news.example.org/5", MediaType.LINK),
]


def _entry(url, media_type, **params):
    return {"sourceUrl": url, "type": media_type, "componentParams": params, "confidence": 0.9}


def test_reports_every_violation_and_accepts_nothing():
    raw = [
        _entry("https://ex.com/1.jpg", "image", alt="Officers outside the station"),
        _entry("https://ex.com/2.jpg", "image", alt="Crowd", caption=_words(30)),
        _entry("https://ex.com/3.pdf", "document", title="Autopsy report"),
        _entry("https://ex.com/4.mp4", "video", caption="Bodycam footage"),
        _entry("https://news.example.org/5", "link", title="Coverage", description=_words(40), icon="news"),
    ]

    result = validate_media_metadata(raw, SCANNED)

    assert not result.ok
    assert result.value is None
    assert [(v.index, v.field) for v in result.violations] == [
        (2, "componentParams.caption"),
        (3, "componentParams.description"),
        (5, "componentParams.description"),
    ]


def test_valid_batch_returns_items_in_scan_order():
    raw = [
        _entry("https://news.example.org/5", "link", icon="generic"),
        _entry("https://ex.com/4.mp4", "video"),
        _entry("https://ex.com/3.pdf", "document", title="Autopsy report", description="Coroner findings"),
        _entry("https://ex.com/2.jpg", "image", alt="Crowd"),
        _entry("https://ex.com/1.jpg", "image", alt="Station"),
    ]

    result = validate_media_metadata(raw, SCANNED)

    assert result.ok
    assert [item.source_url for item in result.value] == [ref.source_url for ref in SCANNED]
    assert result.value[0].params == ImageParams(alt="Station")


def test_structural_problems_are_violations():
    scanned = SCANNED[:2]
    raw = [
        _entry("https://ex.com/1.jpg", "video"),
        _entry("https://ex.com/unknown.jpg", "image", alt="x"),
        {"sourceUrl": "https://ex.com/1.jpg", "type": "image", "componentParams": [], "confidence": 2},
    ]

    result = validate_media_metadata(raw, scanned)
    fields = [v.field for v in result.violations]

    assert "type" in fields
    assert fields.count("sourceUrl") == 2  # unknown URL + unanswered 2.jpg
    assert "duplicate" in fields
    assert "confidence" in fields
    assert "componentParams" in fields
    assert validate_media_metadata({"not": "a list"}, scanned).violations[0].field == "response"


def test_shortcode_params_override_model_values():
    scanned = [ScannedUrl("https://ex.com/a.jpg", MediaType.IMAGE, {"alt": "test", "caption": "photo"}, True)]
    raw = [_entry("https://ex.com/a.jpg", "image", alt="", caption=_words(40))]

    result = validate_media_metadata(raw, scanned)

    assert result.ok
    assert result.value[0].params == ImageParams(alt="test", caption="photo")


def test_sentinel_raises_with_model_message():
    with pytest.raises(SentinelModelError) as excinfo:
        check_sentinel({"error": True, "message": "Victim name is missing"})

    assert excinfo.value.model_message == "Victim name is missing"
    check_sentinel({"error": False, "title": "x"})


def _case(**overrides):
    payload = {
        "title": "John Doe",
        "description": "Killed during a traffic stop.",
        "incident_date": "2023-10-04",
        "agencies": ["Los Angeles Police Department"],
        "age": 39,
        "gender": "Male",
        "race": None,
        "featured_image": {"imageId": "img-1", "alt": "Portrait"},
    }
    payload.update(overrides)
    return payload


def test_case_metadata_valid():
    result = validate_article_metadata(_case(), DraftKind.CASE, ["img-1"])

    assert result.ok
    assert result.value["title"] == "John Doe"


def test_case_metadata_collects_all_violations():
    payload = _case(
        description=_words(101),
        incident_date="October 2023",
        age=200,
        gender="male",
        agencies=None,
        featured_image={"imageId": "img-404", "alt": ""},
    )

    result = validate_article_metadata(payload, DraftKind.CASE, ["img-1"])

    assert {v.field for v in result.violations} == {
        "description",
        "incident_date",
        "age",
        "gender",
        "agencies",
        "featured_image.imageId",
        "featured_image.alt",
    }


def test_case_featured_image_required_only_when_images_exist():
    assert not validate_article_metadata(_case(featured_image=None), DraftKind.CASE, ["img-1"]).ok
    assert validate_article_metadata(_case(featured_image=None), DraftKind.CASE, []).ok


def test_article_metadata_sentinel_raises():
    with pytest.raises(SentinelModelError):
        validate_article_metadata({"error": True, "message": "X"}, DraftKind.CASE, [])


def test_post_metadata_rules():
    ok = validate_article_metadata(
        {"title": "Update", "description": "News", "tags": ["Policy"], "published_date": "2024-02-30"},
        DraftKind.POST,
        [],
    )

    assert [v.field for v in ok.violations] == ["published_date"]
    missing_tags = validate_article_metadata({"title": "Update", "description": "News"}, DraftKind.POST, [])
    assert [v.field for v in missing_tags.violations] == ["tags"]


def test_article_body_rejects_unknown_ids():
    body = '<CloudflareImage imageId="img-1" alt="a" />\n<CloudflareVideo videoId="made-up" />'

    result = validate_article_body(body, {"imageId": {"img-1"}, "videoId": {"uid-1"}})

    assert [(v.field, v.message) for v in result.violations] == [("videoId", "'made-up' is not an uploaded asset id")]
    assert validate_article_body('<CloudflareImage imageId="img-1" alt="a" />', {"imageId": {"img-1"}}).ok
