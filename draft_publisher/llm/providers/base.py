"""Abstract interfaces for AI completion providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...errors import CompletionError
from ...utils.logging import log_event, redact_text, truncate_text
from ...utils.tracing import record_span_error, set_span_output, start_span


class CompletionProvider(ABC):
    """Provider interface: send a prompt pair, receive the full response text."""

    name = "provider"

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        purpose: str = "completion",
    ) -> str:
        """Return the model's text response.

        Raises:
            CompletionError: If the provider call fails
        """
        raise NotImplementedError


class HttpCompletionProvider(CompletionProvider):
    """Shared request, tracing and LLM-log handling for HTTP providers."""

    default_base_url = ""

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig,
        llm_logger: logging.Logger | None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key for provider '{cfg.name}' (set {cfg.api_key_env})")
        self.cfg = cfg
        self.api_key = api_key
        self.log_cfg = log_cfg
        self.llm_logger = llm_logger
        self.transport = transport

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        purpose: str = "completion",
    ) -> str:
        limit = max_tokens or self.cfg.max_tokens_article
        with start_span(
            f"{self.name}.{purpose}",
            kind="llm",
            input_value=user_prompt,
            attributes={
                "llm.model": self.cfg.model,
                "llm.provider": self.name,
                "llm.max_tokens": limit,
            },
        ) as span:
            try:
                data = self._post(system_prompt, user_prompt, limit)
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            except (httpx.HTTPError, ValueError) as exc:
                record_span_error(span, exc)
                self._log_llm_response(purpose, "provider_error", str(exc), user_prompt)
                raise CompletionError(self.name, f"{type(exc).__name__}: {exc}") from exc
            content = self._extract_text(data)
            set_span_output(span, content)

        self._log_llm_response(purpose, "ok", content, user_prompt, data)
        if not content.strip():
            raise CompletionError(self.name, "Empty response from model")
        return content

    @property
    def base_url(self) -> str:
        return (self.cfg.base_url or self.default_base_url).rstrip("/")

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.cfg.timeout_seconds,
            trust_env=self.cfg.trust_env,
            transport=self.transport,
        )

    @abstractmethod
    def _post(self, system_prompt: str, user_prompt: str, max_tokens: int) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def _extract_text(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    def _stop_reason(self, data: dict[str, Any]) -> str | None:
        return None

    def _log_llm_response(
        self,
        purpose: str,
        status: str,
        content: str,
        prompt: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        if self.llm_logger is None:
            return
        redaction = self.log_cfg.llm_log_redaction
        payload: dict[str, Any] = {
            "event": f"llm_{purpose}",
            "status": status,
            "provider": self.name,
            "model": self.cfg.model,
        }
        if data is not None:
            payload["stop_reason"] = self._stop_reason(data)
        if self.log_cfg.llm_log_detail == "prompt_response":
            payload["raw_prompt"] = truncate_text(redact_text(prompt, redaction))
        payload["raw_response"] = truncate_text(redact_text(content, redaction))
        log_event(self.llm_logger, "LLM response", **payload)
