"""Tests for MDX component snippets."""

import pytest

from draft_publisher.core.components import (
    build_snippet,
    component_imports,
    embedded_provider_ids,
    strip_component_imports,
)
from draft_publisher.core.types import (
    DocumentParams,
    ImageParams,
    LibraryAsset,
    LinkParams,
    MediaItem,
    MediaType,
    VideoParams,
)


def _asset(media_type, provider_id, urls=None):
    return LibraryAsset(
        id=f"{media_type.value}-1",
        type=media_type,
        source_url="https://ex.com/source",
        provider_id=provider_id,
        urls=urls or {},
    )


def test_image_snippet_always_renders_alt():
    item = MediaItem("https://ex.com/a.jpg", MediaType.IMAGE, ImageParams(alt='Officer "A"', caption=None))

    snippet = build_snippet(item, _asset(MediaType.IMAGE, "img-123"))

    assert snippet == '<CloudflareImage imageId="img-123" alt="Officer &quot;A&quot;" />'


def test_image_snippet_with_caption():
    item = MediaItem("https://ex.com/a.jpg", MediaType.IMAGE, ImageParams(alt="test", caption="photo"))

    snippet = build_snippet(item, _asset(MediaType.IMAGE, "img-1"))

    assert snippet == '<CloudflareImage imageId="img-1" alt="test" caption="photo" />'


def test_video_document_and_link_snippets():
    video = MediaItem("https://ex.com/v.mp4", MediaType.VIDEO, VideoParams(caption="Bodycam"))
    document = MediaItem("https://ex.com/b.pdf", MediaType.DOCUMENT, DocumentParams("Ruling", "Court ruling text"))
    link = MediaItem("https://news.example.org/a", MediaType.LINK, LinkParams(title="Coverage", icon="news"))

    assert build_snippet(video, _asset(MediaType.VIDEO, "uid-9")) == '<CloudflareVideo videoId="uid-9" caption="Bodycam" />'
    assert build_snippet(
        document, _asset(MediaType.DOCUMENT, "documents/b.pdf", {"public": "https://files.example.com/documents/b.pdf"})
    ) == (
        '<DocumentCard title="Ruling" description="Court ruling text" '
        'url="https://files.example.com/documents/b.pdf" />'
    )
    assert build_snippet(link, None) == (
        '<ExternalLinkCard url="https://news.example.org/a" title="Coverage" icon="news" />'
    )


def test_snippet_requires_asset_for_uploaded_media():
    item = MediaItem("https://ex.com/v.mp4", MediaType.VIDEO, VideoParams())

    with pytest.raises(ValueError):
        build_snippet(item, None)


def test_component_imports_follow_usage():
    body = 'Intro\n<CloudflareImage imageId="x" alt="y" />\n<ExternalLinkCard url="https://a" />'

    assert component_imports(body) == (
        "import CloudflareImage from '../../components/CloudflareImage.astro';\n"
        "import ExternalLinkCard from '../../components/ExternalLinkCard.astro';"
    )
    assert component_imports("plain text") == ""


def test_embedded_ids_and_import_stripping():
    body = (
        "import CloudflareVideo from '../../components/CloudflareVideo.astro';\n"
        "import something from 'elsewhere';\n"
        '<CloudflareVideo videoId="v1" />\n<CloudflareImage imageId="i1" alt="a" />'
    )

    assert embedded_provider_ids(body) == [("videoId", "v1"), ("imageId", "i1")]
    stripped = strip_component_imports(body)
    assert "CloudflareVideo.astro" not in stripped
    assert "import something from 'elsewhere';" in stripped
