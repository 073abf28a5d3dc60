"""Extraction of fenced blocks and JSON structures from model responses."""

from __future__ import annotations

import json
import re
from typing import Any

from ..errors import ParseError


_FENCE_OPEN_RE = re.compile(r"^[ \t]*```[ \t]*([A-Za-z0-9_-]*)[ \t]*$")
_FENCE_CLOSE_RE = re.compile(r"^[ \t]*```[ \t]*$")


def extract_fenced_block(
    text: str,
    languages: tuple[str, ...],
    nested: bool = False,
) -> str | None:
    """Return the body of the first fenced block tagged with one of ``languages``.

    Args:
        text: Raw model response
        languages: Accepted fence language tags (case-insensitive)
        nested: Treat tagged fences inside the block as inner code blocks, so
            the block closes at the first bare fence that is not closing one

    Returns:
        The block body, or None when no matching block exists
    """
    wanted = {lang.lower() for lang in languages}
    lines = text.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        match = _FENCE_OPEN_RE.match(line)
        if match and match.group(1).lower() in wanted:
            start_idx = idx + 1
            break
    if start_idx is None:
        return None

    depth = 0
    for idx in range(start_idx, len(lines)):
        line = lines[idx]
        if _FENCE_CLOSE_RE.match(line):
            if depth == 0:
                return "\n".join(lines[start_idx:idx]).strip()
            depth -= 1
        elif nested and _FENCE_OPEN_RE.match(line):
            depth += 1
    return None


def find_json_structure(text: str, opener: str) -> str | None:
    """Locate the first balanced ``{...}`` or ``[...]`` structure in ``text``.

    Brackets inside JSON strings are ignored.
    """
    closer = {"{": "}", "[": "]"}[opener]
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            ch = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        start = text.find(opener, start + 1)
    return None


def parse_json_response(text: str, expect: type) -> Any:
    """Parse the JSON payload of a model response.

    A ```` ```json ```` fenced block is preferred; otherwise the first
    balanced structure of the expected kind is used.

    Args:
        text: Raw model response
        expect: ``list`` or ``dict``

    Raises:
        ParseError: If no structure is found or it is not valid JSON
    """
    if not text or not text.strip():
        raise ParseError("Model response was empty", text or "")

    opener = "[" if expect is list else "{"
    candidates = []
    fenced = extract_fenced_block(text, ("json",))
    if fenced:
        candidates.append(fenced)
    snippet = find_json_structure(fenced or text, opener)
    if snippet and snippet not in candidates:
        candidates.append(snippet)
    if fenced is not None:
        outer = find_json_structure(text, opener)
        if outer and outer not in candidates:
            candidates.append(outer)

    last_error: str | None = None
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = str(exc)
            continue
        if isinstance(value, expect):
            return value
        # an error sentinel object may arrive where a list was requested
        if isinstance(value, dict) and value.get("error") is True:
            return value
        last_error = f"Expected a JSON {expect.__name__}, got {type(value).__name__}"

    if last_error is None:
        raise ParseError(f"No JSON {expect.__name__} found in model response", text)
    raise ParseError(f"Invalid JSON in model response: {last_error}", text)
