"""YAML frontmatter reading and writing for MDX content files."""

from __future__ import annotations

import re
from typing import Any

import yaml


_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split ``text`` into raw frontmatter and body.

    Returns:
        ``(frontmatter, body)``; frontmatter is None when the text has none
    """
    match = _FRONTMATTER_RE.match(text.lstrip("\ufeff"))
    if not match:
        return None, text
    return match.group(1), text.lstrip("\ufeff")[match.end():]


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter.

    Raises:
        yaml.YAMLError: If the frontmatter block is not valid YAML
    """
    raw, body = split_frontmatter(text)
    if raw is None:
        return {}, text
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise yaml.YAMLError("Frontmatter is not a mapping")
    return data, body


def dump_frontmatter(metadata: dict[str, Any]) -> str:
    return yaml.safe_dump(
        metadata,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=1000,
    )
