"""Google Gemini provider."""

from __future__ import annotations

from typing import Any

from .base import HttpCompletionProvider


class GeminiProvider(HttpCompletionProvider):
    """Gemini generateContent over httpx."""

    name = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com"

    def _post(self, system_prompt: str, user_prompt: str, max_tokens: int) -> dict[str, Any]:
        url = f"{self.base_url}/v1beta/models/{self.cfg.model}:generateContent"
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        with self._client() as client:
            resp = client.post(url, params={"key": self.api_key}, json=payload)
            resp.raise_for_status()
            return resp.json()

    def _extract_text(self, data: dict[str, Any]) -> str:
        return _extract_text(data)

    def _stop_reason(self, data: dict[str, Any]) -> str | None:
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        return candidates[0].get("finishReason")


def _extract_text(data: dict[str, Any]) -> str:
    """Join the text parts of the first candidate, skipping thought parts.

    Falls back to all text parts when the candidate only has thoughts.
    """
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p.get("text", "") for p in parts if isinstance(p, dict) and not p.get("thought")]
    if not any(texts):
        texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
    return "".join(texts)
