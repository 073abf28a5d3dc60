"""AI-backed extraction stages.

``MetadataExtractor`` runs the three model calls of a publish run:
per-media descriptive metadata, case/post metadata (stage one) and article
generation (stage two). Every response crosses a strict parse and validate
boundary before anything downstream sees it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..config import ExtractionConfig, ProviderConfig
from ..core.types import DraftKind, MediaItem, MediaType, ProcessedMedia, ScannedUrl
from ..errors import ParseError, SchemaValidationError
from ..registry.store import MetadataRegistry
from ..utils.logging import log_event
from .json_parser import extract_fenced_block, parse_json_response
from .prompts import (
    build_article_metadata_prompt,
    build_article_prompt,
    build_media_metadata_prompt,
    system_prompt,
)
from .providers.base import CompletionProvider
from .validation import check_sentinel, validate_article_metadata, validate_media_metadata


ExchangeHook = Callable[[str, str, str], None]

ARTICLE_FENCES = ("mdx", "markdown", "md")


class MetadataExtractor:
    """Builds prompts, calls the provider and validates the responses."""

    def __init__(
        self,
        provider: CompletionProvider,
        provider_cfg: ProviderConfig,
        extraction_cfg: ExtractionConfig,
        logger: logging.Logger | None = None,
        on_exchange: ExchangeHook | None = None,
    ):
        self.provider = provider
        self.provider_cfg = provider_cfg
        self.extraction_cfg = extraction_cfg
        self.logger = logger
        self.on_exchange = on_exchange

    def _complete(self, purpose: str, prompt: str, max_tokens: int) -> str:
        log_event(self.logger, "Calling model", purpose=purpose, prompt_chars=len(prompt))
        response = self.provider.complete(system_prompt(), prompt, max_tokens=max_tokens, purpose=purpose)
        log_event(self.logger, "Model responded", purpose=purpose, response_chars=len(response))
        if self.on_exchange is not None:
            self.on_exchange(purpose, prompt, response)
        return response

    def extract_media_metadata(self, draft_text: str, scanned: list[ScannedUrl]) -> list[MediaItem]:
        """Describe every scanned reference.

        Raises:
            ParseError: If the response has no JSON array
            SchemaValidationError: With every violation across all items
        """
        if not scanned:
            return []
        prompt = build_media_metadata_prompt(draft_text, scanned, self.extraction_cfg.context_chars)
        response = self._complete("media_metadata", prompt, self.provider_cfg.max_tokens_metadata)
        raw = parse_json_response(response, list)
        check_sentinel(raw)
        result = validate_media_metadata(raw, scanned)
        if not result.ok:
            raise SchemaValidationError(result.violations, stage="media metadata")
        return result.value

    def extract_article_metadata(
        self,
        kind: DraftKind,
        draft_text: str,
        registry: MetadataRegistry,
        schema_text: str,
        media: list[ProcessedMedia],
    ) -> dict[str, Any]:
        """Stage one: structured case or post metadata.

        Raises:
            SentinelModelError: If the model returns its error sentinel
            ParseError: If the response has no JSON object
            SchemaValidationError: With every violated field
        """
        prompt = build_article_metadata_prompt(
            kind,
            draft_text,
            registry,
            schema_text,
            media,
            self.extraction_cfg.max_draft_chars,
        )
        response = self._complete(f"{kind.value}_metadata", prompt, self.provider_cfg.max_tokens_metadata)
        payload = parse_json_response(response, dict)
        image_ids = [m.asset.provider_id for m in media if m.asset is not None and m.item.type == MediaType.IMAGE]
        result = validate_article_metadata(payload, kind, image_ids)
        if not result.ok:
            raise SchemaValidationError(result.violations, stage=f"{kind.value} metadata")
        return result.value

    def generate_article(
        self,
        kind: DraftKind,
        draft_text: str,
        metadata: dict[str, Any],
        media: list[ProcessedMedia],
    ) -> str:
        """Stage two: article body.

        Raises:
            ParseError: If the response has no fenced content block
        """
        prompt = build_article_prompt(kind, draft_text, metadata, media, self.extraction_cfg.max_draft_chars)
        response = self._complete(f"{kind.value}_article", prompt, self.provider_cfg.max_tokens_article)
        body = extract_fenced_block(response, ARTICLE_FENCES, nested=True)
        if body is None:
            raise ParseError("Model response did not contain a fenced mdx block", response)
        return body
