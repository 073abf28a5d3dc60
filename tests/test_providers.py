"""Tests for the HTTP completion providers."""

import json
import logging

import httpx
import pytest

from draft_publisher.config import LoggingConfig, ProviderConfig
from draft_publisher.errors import CompletionError
from draft_publisher.llm.providers.anthropic import AnthropicProvider
from draft_publisher.llm.providers.gemini import GeminiProvider, _extract_text


def _transport(captured, status=200, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status, json=body or {})

    return httpx.MockTransport(handler)


def test_anthropic_sends_messages_request():
    captured = []
    body = {
        "content": [{"type": "text", "text": "```json\n{}\n```"}, {"type": "tool_use", "id": "x"}],
        "stop_reason": "end_turn",
    }
    provider = AnthropicProvider(
        ProviderConfig(name="anthropic", model="claude-test", api_key="k"),
        "k",
        LoggingConfig(),
        None,
        transport=_transport(captured, body=body),
    )

    text = provider.complete("system text", "user text", max_tokens=123, purpose="case_metadata")

    assert text == "```json\n{}\n```"
    request = captured[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "k"
    assert request.headers["anthropic-version"] == "2023-06-01"
    payload = json.loads(request.content)
    assert payload["model"] == "claude-test"
    assert payload["max_tokens"] == 123
    assert payload["system"] == "system text"
    assert payload["messages"] == [{"role": "user", "content": "user text"}]


def test_gemini_sends_generate_content_request():
    captured = []
    body = {"candidates": [{"content": {"parts": [{"text": "answer"}]}, "finishReason": "STOP"}]}
    provider = GeminiProvider(
        ProviderConfig(name="gemini", model="gemini-test", base_url="https://gemini.example"),
        "k",
        LoggingConfig(),
        None,
        transport=_transport(captured, body=body),
    )

    assert provider.complete("sys", "user") == "answer"
    request = captured[0]
    assert request.url.path == "/v1beta/models/gemini-test:generateContent"
    assert request.url.params["key"] == "k"
    payload = json.loads(request.content)
    assert payload["systemInstruction"] == {"parts": [{"text": "sys"}]}


def test_gemini_extract_text_skips_thoughts():
    data = {"candidates": [{"content": {"parts": [{"text": "thinking", "thought": True}, {"text": "final"}]}}]}
    only_thoughts = {"candidates": [{"content": {"parts": [{"text": "thinking", "thought": True}]}}]}

    assert _extract_text(data) == "final"
    assert _extract_text(only_thoughts) == "thinking"
    assert _extract_text({}) == ""


def test_http_error_becomes_completion_error():
    provider = AnthropicProvider(
        ProviderConfig(api_key="k"),
        "k",
        LoggingConfig(),
        None,
        transport=_transport([], status=529, body={"error": {"type": "overloaded_error"}}),
    )

    with pytest.raises(CompletionError) as excinfo:
        provider.complete("sys", "user")

    assert excinfo.value.provider == "anthropic"
    assert excinfo.value.exit_code == 7


def test_empty_response_is_an_error_and_is_logged():
    records = []

    class Capture(logging.Handler):
        def emit(self, record):
            records.append(record)

    llm_logger = logging.getLogger("draft_publisher.llm.test")
    llm_logger.handlers = [Capture()]
    llm_logger.setLevel(logging.INFO)
    llm_logger.propagate = False
    provider = AnthropicProvider(
        ProviderConfig(api_key="k"),
        "k",
        LoggingConfig(llm_log_detail="prompt_response"),
        llm_logger,
        transport=_transport([], body={"content": []}),
    )

    with pytest.raises(CompletionError):
        provider.complete("sys", "user prompt", purpose="post_article")

    assert records[0].event == "llm_post_article"
    assert records[0].raw_prompt == "user prompt"
    assert records[0].raw_response == ""


def test_non_json_reply_becomes_completion_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    provider = AnthropicProvider(
        ProviderConfig(api_key="k"),
        "k",
        LoggingConfig(),
        None,
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(CompletionError) as excinfo:
        provider.complete("sys", "user")

    assert excinfo.value.exit_code == 7


def test_gemini_uses_its_own_host_by_default():
    captured = []
    body = {"candidates": [{"content": {"parts": [{"text": "answer"}]}}]}
    provider = GeminiProvider(
        ProviderConfig(name="gemini", model="gemini-test"),
        "k",
        LoggingConfig(),
        None,
        transport=_transport(captured, body=body),
    )

    provider.complete("sys", "user")

    assert captured[0].url.host == "generativelanguage.googleapis.com"
