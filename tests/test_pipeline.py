"""End-to-end tests for the publish pipeline with scripted model responses."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from draft_publisher.config import AppConfig, ExtractionConfig, ProviderConfig
from draft_publisher.core.draft import load_draft
from draft_publisher.core.types import PublishState
from draft_publisher.errors import (
    ConfigError,
    ParseError,
    SchemaValidationError,
    SentinelModelError,
    WriteConflict,
)
from draft_publisher.llm.extractor import MetadataExtractor
from draft_publisher.llm.providers.base import CompletionProvider
from draft_publisher.media.downloader import Downloader
from draft_publisher.media.library import MediaLibrary
from draft_publisher.media.uploader import UploadOrchestrator
from draft_publisher.output.writer import ContentWriter
from draft_publisher.registry.frontmatter import parse_frontmatter
from draft_publisher.registry.store import MetadataRegistry
from draft_publisher.runner import PublishPipeline, build_pipeline
from draft_publisher.storage.base import FileUploadBackend, RemoteUploadBackend, UploadResult
from draft_publisher.storage.factory import StorageBackends


DRAFT_TEXT = "See {{image: https://ex.com/a.jpg | alt: test | caption: photo}} and https://ex.com/b.pdf"

IMAGE_SNIPPET = '<CloudflareImage imageId="img-1" alt="test" caption="photo" />'
DOCUMENT_SNIPPET = (
    '<DocumentCard title="Incident report" description="Official report on the incident" '
    'url="https://files.example.com/documents/b.pdf" />'
)

MEDIA_RESPONSE = "```json\n" + json.dumps(
    [
        {
            "sourceUrl": "https://ex.com/a.jpg",
            "type": "image",
            "componentParams": {"alt": "test", "caption": "photo"},
            "confidence": 1.0,
        },
        {
            "sourceUrl": "https://ex.com/b.pdf",
            "type": "document",
            "componentParams": {"title": "Incident report", "description": "Official report on the incident"},
            "confidence": 0.8,
        },
    ]
) + "\n```"

CASE_RESPONSE = "```json\n" + json.dumps(
    {
        "title": "John Doe",
        "description": "John Doe was shot by LAPD officers during a traffic stop.",
        "incident_date": "2023-10-04",
        "agencies": ["lapd"],
        "gender": "Male",
        "race": None,
        "featured_image": {"imageId": "img-1", "alt": "test", "caption": "photo"},
    }
) + "\n```"

ARTICLE_RESPONSE = f"```mdx\n## Background\n\n{IMAGE_SNIPPET}\n\n## Records\n\n{DOCUMENT_SNIPPET}\n```"


class ScriptedProvider(CompletionProvider):
    name = "scripted"

    def __init__(self, responses: list[str]):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_prompt, user_prompt, max_tokens=None, purpose="completion"):
        self.calls.append((purpose, user_prompt))
        return self.responses.pop(0)


class DummyRemote(RemoteUploadBackend):
    def __init__(self, prefix: str):
        self.prefix = prefix
        self.calls: list[str] = []

    def upload_from_url(self, source_url, meta):
        self.calls.append(source_url)
        return UploadResult(provider_id=f"{self.prefix}-{len(self.calls)}")


class DummyFile(FileUploadBackend):
    def __init__(self):
        self.calls: list[str] = []

    def upload_file(self, path, meta):
        self.calls.append(meta["source_url"])
        name = meta["name"]
        return UploadResult(
            provider_id=f"documents/{name}",
            urls={"public": f"https://files.example.com/documents/{name}"},
            file_name=name,
        )


def _pdf_transport() -> httpx.MockTransport:
    return httpx.MockTransport(
        lambda request: httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})
    )


def _pipeline(tmp_path: Path, provider: CompletionProvider, confirm_overwrite=None, on_exchange=None):
    library = MediaLibrary(tmp_path / "data" / "media-library.json")
    registry = MetadataRegistry(tmp_path / "data" / "metadata-registry.json")
    registry.add("agencies", "LAPD")
    backends = StorageBackends(video=DummyRemote("uid"), image=DummyRemote("img"), document=DummyFile())
    downloader = Downloader(tmp_path / ".temp-uploads", retries=0, transport=_pdf_transport())
    pipeline = PublishPipeline(
        extractor=MetadataExtractor(provider, ProviderConfig(), ExtractionConfig(), on_exchange=on_exchange),
        library=library,
        registry=registry,
        uploader=UploadOrchestrator(library, backends, downloader),
        writer=ContentWriter(tmp_path / "content"),
        confirm_overwrite=confirm_overwrite,
    )
    return pipeline, backends


def _draft(tmp_path: Path, text: str = DRAFT_TEXT, folder: str = "cases", name: str = "john-doe.md"):
    path = tmp_path / "drafts" / folder / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return load_draft(path)


def test_end_to_end_publish(tmp_path):
    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, ARTICLE_RESPONSE])
    exchanges = []
    pipeline, backends = _pipeline(tmp_path, provider, on_exchange=lambda purpose, p, r: exchanges.append(purpose))
    draft = _draft(tmp_path)

    result = pipeline.run(draft)

    assert result.state == PublishState.DONE
    assert pipeline.library.stats() == {"videos": 0, "images": 1, "documents": 1}
    assert result.new_uploads == 2 and result.reused_assets == 0
    assert [m.snippet for m in result.media] == [IMAGE_SNIPPET, DOCUMENT_SNIPPET]
    assert IMAGE_SNIPPET in provider.calls[2][1]
    assert DOCUMENT_SNIPPET in provider.calls[2][1]
    assert exchanges == ["media_metadata", "case_metadata", "case_article"]

    output = tmp_path / "content" / "cases" / "john-doe.mdx"
    assert result.output_path == output
    text = output.read_text(encoding="utf-8")
    metadata, body = parse_frontmatter(text)
    assert IMAGE_SNIPPET in body and DOCUMENT_SNIPPET in body
    assert "import CloudflareImage from '../../components/CloudflareImage.astro';" in body
    assert "import DocumentCard from '../../components/DocumentCard.astro';" in body
    assert metadata["case_id"] == "john-doe"
    assert metadata["victim_name"] == "John Doe"
    assert metadata["agencies"] == ["LAPD"]
    assert metadata["documents"] == [
        {
            "title": "Incident report",
            "description": "Official report on the incident",
            "url": "https://files.example.com/documents/b.pdf",
        }
    ]
    assert metadata["external_links"] is None

    assert not draft.path.exists()
    assert result.published_draft_path.name.startswith("pub_")
    assert result.published_draft_path.name.endswith("_john-doe.md")
    assert result.published_draft_path.read_text(encoding="utf-8") == DRAFT_TEXT
    assert not (tmp_path / ".temp-uploads").exists()


def test_sentinel_aborts_without_writing_or_renaming(tmp_path):
    sentinel = '```json\n{"error": true, "message": "Victim name is not stated"}\n```'
    provider = ScriptedProvider([MEDIA_RESPONSE, sentinel])
    pipeline, _ = _pipeline(tmp_path, provider)
    draft = _draft(tmp_path)

    with pytest.raises(SentinelModelError, match="Victim name is not stated"):
        pipeline.run(draft)

    assert pipeline.state == PublishState.FAILED
    assert not (tmp_path / "content").exists()
    assert draft.path.exists()
    assert len(provider.calls) == 2


def test_invalid_media_metadata_blocks_uploads(tmp_path):
    bad = '```json\n[{"sourceUrl": "https://ex.com/a.jpg", "type": "image", "componentParams": {}, "confidence": 1}]\n```'
    provider = ScriptedProvider([bad])
    pipeline, backends = _pipeline(tmp_path, provider)
    draft = _draft(tmp_path, text="Photo: https://ex.com/a.jpg and https://ex.com/b.pdf")

    with pytest.raises(SchemaValidationError) as excinfo:
        pipeline.run(draft)

    assert {v.field for v in excinfo.value.violations} == {"componentParams.alt", "sourceUrl"}
    assert backends.image.calls == [] and backends.document.calls == []
    assert pipeline.library.stats() == {"videos": 0, "images": 0, "documents": 0}
    assert draft.path.exists()


def test_unknown_provider_id_in_article_fails(tmp_path):
    article = "```mdx\n<CloudflareImage imageId=\"invented\" alt=\"x\" />\n```"
    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, article])
    pipeline, _ = _pipeline(tmp_path, provider)
    draft = _draft(tmp_path)

    with pytest.raises(SchemaValidationError, match="invented"):
        pipeline.run(draft)

    assert not (tmp_path / "content" / "cases" / "john-doe.mdx").exists()
    assert draft.path.exists()


def test_article_without_fenced_block_fails(tmp_path):
    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, "no fence here"])
    pipeline, _ = _pipeline(tmp_path, provider)
    draft = _draft(tmp_path)

    with pytest.raises(ParseError):
        pipeline.run(draft)

    assert pipeline.state == PublishState.FAILED
    assert not (tmp_path / "content").exists()
    assert draft.path.exists()


def test_text_after_article_block_is_not_published(tmp_path):
    article = ARTICLE_RESPONSE + "\n\nNotes for the editor:\n```\nignore me\n```"
    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, article])
    pipeline, _ = _pipeline(tmp_path, provider)

    result = pipeline.run(_draft(tmp_path))

    body = result.output_path.read_text(encoding="utf-8")
    assert DOCUMENT_SNIPPET in body
    assert "Notes for the editor" not in body
    assert "ignore me" not in body


def test_dry_run_writes_nothing(tmp_path):
    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, ARTICLE_RESPONSE])
    pipeline, _ = _pipeline(tmp_path, provider)
    draft = _draft(tmp_path)

    result = pipeline.run(draft, dry_run=True)

    assert result.state == PublishState.DONE
    assert result.article is not None and result.article.slug == "john-doe"
    assert result.output_path is None
    assert not (tmp_path / "content").exists()
    assert draft.path.exists()


@pytest.mark.parametrize("confirm", [False, True])
def test_existing_content_requires_confirmation(tmp_path, confirm):
    existing = tmp_path / "content" / "cases" / "john-doe.mdx"
    existing.parent.mkdir(parents=True)
    existing.write_text("old", encoding="utf-8")
    asked = []

    def confirm_overwrite(path):
        asked.append(path)
        return confirm

    provider = ScriptedProvider([MEDIA_RESPONSE, CASE_RESPONSE, ARTICLE_RESPONSE])
    pipeline, _ = _pipeline(tmp_path, provider, confirm_overwrite=confirm_overwrite)
    draft = _draft(tmp_path)

    if confirm:
        result = pipeline.run(draft)
        assert result.state == PublishState.DONE
        assert IMAGE_SNIPPET in existing.read_text(encoding="utf-8")
        assert not draft.path.exists()
    else:
        with pytest.raises(WriteConflict):
            pipeline.run(draft)
        assert existing.read_text(encoding="utf-8") == "old"
        assert draft.path.exists()
    assert asked == [existing]


def test_second_run_reuses_library_assets(tmp_path):
    post_media = "```json\n" + json.dumps(
        [{"sourceUrl": "https://ex.com/a.jpg", "type": "image", "componentParams": {"alt": "Council"}, "confidence": 1}]
    ) + "\n```"

    def post_metadata(title):
        return "```json\n" + json.dumps(
            {"title": title, "description": "Update", "tags": ["Policy"], "published_date": "2024-03-01"}
        ) + "\n```"

    article = '```mdx\n<CloudflareImage imageId="img-1" alt="Council" />\n```'
    provider = ScriptedProvider(
        [post_media, post_metadata("First Update"), article, post_media, post_metadata("Second Update"), article]
    )
    pipeline, backends = _pipeline(tmp_path, provider)

    first = pipeline.run(_draft(tmp_path, "Photo https://ex.com/a.jpg", "posts", "one.md"))
    second = pipeline.run(_draft(tmp_path, "Same https://ex.com/a.jpg", "posts", "two.md"))

    assert backends.image.calls == ["https://ex.com/a.jpg"]
    assert (first.new_uploads, second.new_uploads, second.reused_assets) == (1, 0, 1)
    assert first.media[0].asset.provider_id == second.media[0].asset.provider_id == "img-1"
    assert MetadataRegistry(tmp_path / "data" / "metadata-registry.json").values("post_tags") == ["Policy"]
    assert (tmp_path / "content" / "posts" / "second-update.mdx").exists()


def test_build_pipeline_maps_missing_api_key_to_config_error(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    cfg = AppConfig()
    cfg.paths.library_path = str(tmp_path / "lib.json")
    cfg.paths.registry_path = str(tmp_path / "registry.json")

    with pytest.raises(ConfigError, match="Missing API key"):
        build_pipeline(cfg)
