"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any

from .base import HttpCompletionProvider


ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(HttpCompletionProvider):
    """Anthropic /v1/messages over httpx."""

    name = "anthropic"
    default_base_url = "https://api.anthropic.com"

    def _post(self, system_prompt: str, user_prompt: str, max_tokens: int) -> dict[str, Any]:
        url = f"{self.base_url}/v1/messages"
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.cfg.model,
            "max_tokens": max_tokens,
            "temperature": self.cfg.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        with self._client() as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            return resp.json()

    def _extract_text(self, data: dict[str, Any]) -> str:
        blocks = data.get("content") or []
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

    def _stop_reason(self, data: dict[str, Any]) -> str | None:
        return data.get("stop_reason")
