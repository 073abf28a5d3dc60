"""Tests for model response parsing."""

import pytest

from draft_publisher.errors import ParseError
from draft_publisher.llm.json_parser import (
    extract_fenced_block,
    find_json_structure,
    parse_json_response,
)


def test_prefers_fenced_json_block():
    text = 'Here you go [draft]:\n```json\n[{"sourceUrl": "https://ex.com/a.jpg"}]\n```\nDone.'

    assert parse_json_response(text, list) == [{"sourceUrl": "https://ex.com/a.jpg"}]


def test_falls_back_to_first_balanced_structure():
    text = 'Sure. {"title": "A {braced} title", "tags": ["x"]} trailing {not json}'

    assert parse_json_response(text, dict) == {"title": "A {braced} title", "tags": ["x"]}


def test_sentinel_object_returned_when_array_expected():
    text = '```json\n{"error": true, "message": "No usable context"}\n```'

    assert parse_json_response(text, list) == {"error": True, "message": "No usable context"}


def test_missing_or_invalid_json_raises():
    with pytest.raises(ParseError):
        parse_json_response("I could not do that.", dict)
    with pytest.raises(ParseError):
        parse_json_response("", list)
    with pytest.raises(ParseError) as excinfo:
        parse_json_response("```json\n{'single': 'quotes'}\n```", dict)
    assert "single" in excinfo.value.raw_text


def test_find_json_structure_ignores_brackets_in_strings():
    assert find_json_structure('x ["a]", "b"] y', "[") == '["a]", "b"]'
    assert find_json_structure("no structure", "{") is None


def test_nested_fence_keeps_inner_code_blocks():
    text = "```mdx\n## Heading\n\n```js\nconsole.log(1)\n```\n\nEnd\n```\ntrailing"

    assert extract_fenced_block(text, ("mdx",), nested=True) == "## Heading\n\n```js\nconsole.log(1)\n```\n\nEnd"
    assert extract_fenced_block(text, ("mdx",)) == "## Heading\n\n```js\nconsole.log(1)"
    assert extract_fenced_block("```python\nx\n```", ("mdx", "markdown")) is None


def test_nested_fence_stops_before_trailing_blocks():
    text = "```mdx\n## Body\n\nText\n```\n\nNotes for the editor:\n```\nignore me\n```"

    assert extract_fenced_block(text, ("mdx",), nested=True) == "## Body\n\nText"
    assert extract_fenced_block("```mdx\nunterminated", ("mdx",), nested=True) is None
