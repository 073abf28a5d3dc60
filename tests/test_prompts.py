"""Tests for prompt construction."""

from datetime import date
import json

from draft_publisher.core.types import (
    DraftKind,
    ImageParams,
    LibraryAsset,
    MediaItem,
    MediaType,
    ProcessedMedia,
    ScannedUrl,
)
from draft_publisher.llm.prompts import (
    build_article_metadata_prompt,
    build_article_prompt,
    build_media_metadata_prompt,
)
from draft_publisher.registry.store import MetadataRegistry


def _image_media():
    item = MediaItem("https://ex.com/a.jpg", MediaType.IMAGE, ImageParams(alt="Officers at scene"))
    asset = LibraryAsset(id="image-1", type=MediaType.IMAGE, source_url=item.source_url, provider_id="img-1")
    return [ProcessedMedia(item, asset, '<CloudflareImage imageId="img-1" alt="Officers at scene" />')]


def test_media_prompt_uses_bounded_context_and_given_params():
    draft = "A" * 2000 + " https://ex.com/a.jpg " + "B" * 2000
    scanned = [
        ScannedUrl("https://ex.com/a.jpg", MediaType.IMAGE, {"alt": "test", "download": True}, True),
        ScannedUrl("https://missing.example/x", MediaType.LINK),
    ]

    prompt = build_media_metadata_prompt(draft, scanned, context_chars=100)

    assert "1. IMAGE: https://ex.com/a.jpg" in prompt
    assert 'GIVEN: {"alt": "test"}' in prompt
    assert "A" * 101 not in prompt
    assert "2. LINK: https://missing.example/x" in prompt
    assert "CONTEXT: (no context available)" in prompt
    assert '"sourceUrl": "exact URL from the list above"' in prompt


def test_case_metadata_prompt_embeds_registry_rules_and_images(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({"agencies": ["Los Angeles Police Department"]}), encoding="utf-8")
    registry = MetadataRegistry(path)

    prompt = build_article_metadata_prompt(
        DraftKind.CASE, "Draft body", registry, "title: string", _image_media(), max_draft_chars=1000
    )

    assert "- Los Angeles Police Department" in prompt
    assert "Race/ethnicity (NEVER assume from names or location)" in prompt
    assert 'imageId: "img-1"' in prompt
    assert "or select a featured_image" in prompt
    assert '"imageId": "one of: "img-1""' in prompt
    assert "title: string" in prompt


def test_post_metadata_prompt_has_today_and_optional_image(tmp_path):
    registry = MetadataRegistry(tmp_path / "registry.json")

    prompt = build_article_metadata_prompt(
        DraftKind.POST, "x" * 50, registry, "", [], max_draft_chars=10, today=date(2024, 3, 1)
    )

    assert '"published_date": "2024-03-01"' in prompt
    assert '"featured_image": null' in prompt
    assert "(draft truncated)" in prompt
    assert "(not provided)" in prompt


def test_post_metadata_prompt_lists_post_tags_only(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text(
        json.dumps({"agencies": ["Los Angeles Police Department"], "post_tags": ["Civil Rights"]}),
        encoding="utf-8",
    )
    registry = MetadataRegistry(path)

    prompt = build_article_metadata_prompt(DraftKind.POST, "Draft", registry, "", [], max_draft_chars=1000)

    assert "- Civil Rights" in prompt
    assert "agenc" not in prompt.lower()


def test_article_prompt_carries_metadata_and_snippets():
    metadata = {"title": "John Doe", "agencies": ["LAPD"]}

    prompt = build_article_prompt(DraftKind.CASE, "Draft", metadata, _image_media(), max_draft_chars=1000)

    assert json.dumps(metadata, indent=2) in prompt
    assert '1. <CloudflareImage imageId="img-1" alt="Officers at scene" />' in prompt
    assert "Copy these component tags EXACTLY" in prompt
    assert "```mdx" in prompt
