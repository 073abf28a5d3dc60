"""
Publish pipeline orchestration.

This module drives a single draft through the publishing state machine:

    IDLE -> SCANNING -> UPLOADING -> EXTRACTING_METADATA -> VALIDATING
         -> GENERATING_CONTENT -> WRITING -> MARK_PUBLISHED -> DONE

Any ``PublishError`` moves the run to FAILED and is re-raised for the CLI to
map to an exit code. Nothing is written to the content directory and the
draft is not renamed unless both AI stages succeed and validate.
"""

from __future__ import annotations

from datetime import date
import logging
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlsplit

from .config import AppConfig
from .core.components import build_snippet
from .core.draft import Draft, slugify
from .core.scanner import scan_text
from .core.types import (
    DocumentParams,
    DraftKind,
    GeneratedArticle,
    LinkParams,
    MediaType,
    ProcessedMedia,
    PublishResult,
    PublishState,
)
from .errors import ConfigError, PublishError, SchemaValidationError, WriteConflict
from .llm.extractor import ExchangeHook, MetadataExtractor
from .llm.providers.base import CompletionProvider
from .llm.providers.factory import create_provider
from .llm.validation import validate_article_body
from .media.downloader import Downloader
from .media.library import MediaLibrary
from .media.uploader import UploadOrchestrator
from .output.writer import ContentWriter
from .registry.store import MetadataRegistry
from .storage.factory import StorageBackends, build_backends
from .utils.logging import log_event
from .utils.tracing import record_span_error, set_span_output, start_span


OverwriteHook = Callable[[Path], bool]


class PublishPipeline:
    """Runs drafts through scanning, uploads, both AI stages and the final write.

    Attributes:
        state: Current state of the most recent run
    """

    def __init__(
        self,
        extractor: MetadataExtractor,
        library: MediaLibrary,
        registry: MetadataRegistry,
        uploader: UploadOrchestrator,
        writer: ContentWriter,
        schema_text: str = "",
        logger: logging.Logger | None = None,
        confirm_overwrite: OverwriteHook | None = None,
    ):
        self.extractor = extractor
        self.library = library
        self.registry = registry
        self.uploader = uploader
        self.writer = writer
        self.schema_text = schema_text
        self.logger = logger
        self.confirm_overwrite = confirm_overwrite
        self.state = PublishState.IDLE

    def _transition(self, result: PublishResult, state: PublishState) -> None:
        log_event(
            self.logger,
            "State transition",
            draft=str(result.draft_path),
            from_state=self.state.value,
            to_state=state.value,
        )
        self.state = state
        result.state = state

    def run(self, draft: Draft, dry_run: bool = False) -> PublishResult:
        """Publish one draft.

        Args:
            draft: Draft to publish
            dry_run: Stop after content generation; nothing is written or renamed

        Returns:
            PublishResult describing the run

        Raises:
            PublishError: Any fatal pipeline failure (the run ends in FAILED)
        """
        self.state = PublishState.IDLE
        result = PublishResult(draft_path=draft.path)
        with start_span(
            "publish.run",
            kind="chain",
            input_value={"draft": str(draft.path), "kind": draft.kind.value},
            attributes={"draft.kind": draft.kind.value, "dry_run": dry_run},
        ) as span:
            try:
                self._run(draft, result, dry_run)
            except PublishError as exc:
                record_span_error(span, exc)
                result.error = str(exc)
                self._transition(result, PublishState.FAILED)
                raise
            set_span_output(
                span,
                {
                    "state": result.state.value,
                    "output_path": str(result.output_path) if result.output_path else None,
                    "new_uploads": result.new_uploads,
                    "reused_assets": result.reused_assets,
                },
            )
        return result

    def _run(self, draft: Draft, result: PublishResult, dry_run: bool) -> None:
        self._transition(result, PublishState.SCANNING)
        text = draft.read_text()
        scanned = scan_text(text)
        log_event(
            self.logger,
            "Draft scanned",
            draft=str(draft.path),
            references=len(scanned),
            types=[ref.type.value for ref in scanned],
        )

        self._transition(result, PublishState.UPLOADING)
        with start_span("publish.uploading", kind="chain", input_value=[r.source_url for r in scanned]):
            items = self.extractor.extract_media_metadata(text, scanned)
            batch = self.uploader.upload_batch(items)
        result.new_uploads = len(batch.new_uploads)
        result.reused_assets = len(batch.reused)
        media = [
            ProcessedMedia(item=item, asset=batch.assets.get(item.source_url), snippet="")
            for item in items
        ]
        for entry in media:
            entry.snippet = build_snippet(entry.item, entry.asset)
        result.media = media

        self._transition(result, PublishState.EXTRACTING_METADATA)
        with start_span("publish.stage_one", kind="chain"):
            metadata = self.extractor.extract_article_metadata(
                draft.kind, text, self.registry, self.schema_text, media
            )

        self._transition(result, PublishState.VALIDATING)
        metadata = self.registry.normalize_metadata(metadata, draft.kind)
        metadata = finalize_metadata(metadata, draft.kind, media)
        slug = slugify(str(metadata["title"]))
        if draft.kind == DraftKind.CASE:
            metadata["case_id"] = slug

        self._transition(result, PublishState.GENERATING_CONTENT)
        with start_span("publish.stage_two", kind="chain"):
            body = self.extractor.generate_article(draft.kind, text, metadata, media)
        check = validate_article_body(body, known_provider_ids(media))
        if not check.ok:
            raise SchemaValidationError(check.violations, stage="article content")
        self._warn_missing_snippets(body, media)
        article = GeneratedArticle(metadata=metadata, content=body, slug=slug, kind=draft.kind)
        result.article = article

        if dry_run:
            log_event(self.logger, "Dry run complete", draft=str(draft.path), slug=slug)
            self._transition(result, PublishState.DONE)
            return

        self._transition(result, PublishState.WRITING)
        result.output_path = self._write(article)
        result.registry_additions = self.registry.update_from_metadata(metadata, draft.kind)

        self._transition(result, PublishState.MARK_PUBLISHED)
        result.published_draft_path = draft.mark_published()
        log_event(
            self.logger,
            "Draft published",
            draft=str(draft.path),
            renamed_to=str(result.published_draft_path),
            output=str(result.output_path),
        )
        self._transition(result, PublishState.DONE)

    def _write(self, article: GeneratedArticle) -> Path:
        try:
            return self.writer.write(article)
        except WriteConflict as conflict:
            if self.confirm_overwrite is None or not self.confirm_overwrite(conflict.path):
                raise
            log_event(self.logger, "Overwriting existing content", path=str(conflict.path))
            return self.writer.write(article, overwrite=True)

    def _warn_missing_snippets(self, body: str, media: list[ProcessedMedia]) -> None:
        if self.logger is None:
            return
        for entry in media:
            if entry.snippet not in body:
                self.logger.warning(
                    "Component snippet not embedded verbatim",
                    extra={"source_url": entry.item.source_url, "snippet": entry.snippet},
                )


def known_provider_ids(media: list[ProcessedMedia]) -> dict[str, set[str]]:
    ids: dict[str, set[str]] = {"videoId": set(), "imageId": set()}
    for entry in media:
        if entry.asset is None:
            continue
        if entry.item.type == MediaType.VIDEO:
            ids["videoId"].add(entry.asset.provider_id)
        elif entry.item.type == MediaType.IMAGE:
            ids["imageId"].add(entry.asset.provider_id)
    return ids


def finalize_metadata(
    metadata: dict[str, Any],
    kind: DraftKind,
    media: list[ProcessedMedia],
    today: date | None = None,
) -> dict[str, Any]:
    """Attach documents and external links from processed media.

    These lists are always derived from uploads, never from model output.
    """
    result = dict(metadata)
    documents = []
    links = []
    for entry in media:
        params = entry.item.params
        if isinstance(params, DocumentParams) and entry.asset is not None:
            documents.append(
                {"title": params.title, "description": params.description, "url": entry.asset.public_url}
            )
        elif isinstance(params, LinkParams):
            links.append(
                {
                    "title": params.title or urlsplit(entry.item.source_url).hostname or entry.item.source_url,
                    "description": params.description or "",
                    "url": entry.item.source_url,
                    "icon": params.icon or "generic",
                }
            )
    result["documents"] = documents or None
    result["external_links"] = links or None
    result.setdefault("published", True)
    if kind == DraftKind.CASE:
        result["victim_name"] = result["title"]
    else:
        result.setdefault("published_date", (today or date.today()).isoformat())
    return result


def load_schema_text(cfg: AppConfig) -> str:
    if not cfg.paths.schema_path:
        return ""
    path = Path(cfg.paths.schema_path)
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def build_pipeline(
    cfg: AppConfig,
    logger: logging.Logger | None = None,
    llm_logger: logging.Logger | None = None,
    provider: CompletionProvider | None = None,
    backends: StorageBackends | None = None,
    confirm_overwrite: OverwriteHook | None = None,
    on_exchange: ExchangeHook | None = None,
) -> PublishPipeline:
    """Wire a pipeline from configuration.

    ``provider`` and ``backends`` may be injected; otherwise they are built
    from the provider and Cloudflare config sections.
    """
    if provider is None:
        try:
            provider = create_provider(cfg.provider, cfg.logging, llm_logger)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
    library = MediaLibrary(Path(cfg.paths.library_path), logger=logger)
    registry = MetadataRegistry(Path(cfg.paths.registry_path), logger=logger)
    return PublishPipeline(
        extractor=MetadataExtractor(provider, cfg.provider, cfg.extraction, logger=logger, on_exchange=on_exchange),
        library=library,
        registry=registry,
        uploader=build_uploader(cfg, library, logger=logger, backends=backends),
        writer=ContentWriter(Path(cfg.paths.content_dir)),
        schema_text=load_schema_text(cfg),
        logger=logger,
        confirm_overwrite=confirm_overwrite,
    )


def build_uploader(
    cfg: AppConfig,
    library: MediaLibrary,
    logger: logging.Logger | None = None,
    backends: StorageBackends | None = None,
) -> UploadOrchestrator:
    """Wire the upload orchestrator used by publish runs and single uploads."""
    downloader = Downloader(
        Path(cfg.paths.temp_dir),
        timeout=cfg.cloudflare.timeout_seconds,
        retries=cfg.cloudflare.retries,
        trust_env=cfg.cloudflare.trust_env,
        logger=logger,
    )
    return UploadOrchestrator(
        library,
        backends or build_backends(cfg.cloudflare, logger=logger),
        downloader,
        logger=logger,
    )
