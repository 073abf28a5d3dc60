"""
Metadata registry: canonical vocabularies for extendable fields.

Extendable fields (agencies, counties, force types, threat levels,
investigation statuses, case tags, post tags) have open vocabularies that
grow as content is published. Each list holds unique entries, compared after
case folding and whitespace collapsing, and is kept sorted.

Closed enum fields (gender, armed status, geography, flee status, link icon
and similar) are validated elsewhere and are never stored here. Attempting to
extend one raises ``EnumFieldError`` before any state changes.

Matching is exact after normalization. Looser matching such as abbreviation
expansion is left to the model prompt.
"""

from __future__ import annotations

from datetime import date
import logging
from pathlib import Path
import re
from typing import Any, Iterable

import yaml

from ..core.types import DraftKind
from ..errors import EnumFieldError
from ..utils.jsonfile import read_json, write_json_atomic
from ..utils.logging import log_event
from .frontmatter import parse_frontmatter


REGISTRY_VERSION = "2.0"

EXTENDABLE_FIELDS: tuple[str, ...] = (
    "agencies",
    "counties",
    "force_types",
    "threat_levels",
    "investigation_statuses",
    "case_tags",
    "post_tags",
)

ENUM_FIELDS = frozenset(
    {
        "gender",
        "armed_status",
        "geography",
        "flee_status",
        "icon",
        "wapo_armed",
        "wapo_threat_type",
        "wapo_flee",
        "wapo_body_camera",
        "wapo_mental_illness",
    }
)

DEFAULT_VALUES: dict[str, list[str]] = {
    "force_types": [
        "Baton",
        "Beating",
        "Chemical Agent",
        "Chokehold",
        "K-9 Attack",
        "Physical Force",
        "Restraint",
        "Shooting",
        "Taser",
        "Vehicle Pursuit",
    ],
    "threat_levels": [
        "Active Threat",
        "High Threat",
        "Low Threat",
        "Medium Threat",
        "No Threat",
    ],
    "investigation_statuses": [
        "Acquitted",
        "Charges Filed",
        "Convicted",
        "Disciplined",
        "No Charges Filed",
        "No Discipline",
        "No Investigation",
        "Settled",
        "Under Investigation",
    ],
}

# metadata field -> (registry field, prompt guidance)
CASE_FIELDS: dict[str, tuple[str, str]] = {
    "agencies": (
        "agencies",
        'Match abbreviations or informal names to full agency names from the registry '
        '(e.g., "LAPD" -> "Los Angeles Police Department"). Add new agencies if not in the registry.',
    ),
    "county": ("counties", "Use the exact county name from the registry. Infer from the city if possible."),
    "force_type": (
        "force_types",
        "Select all applicable force types from the registry. Infer from action verbs "
        '("shot" -> "Shooting", "tased" -> "Taser").',
    ),
    "threat_level": (
        "threat_levels",
        "Assess the threat level from incident context and subject behavior. Use registry categories.",
    ),
    "investigation_status": (
        "investigation_statuses",
        "Determine the current status from legal developments mentioned. Use registry values.",
    ),
    "tags": ("case_tags", "Select relevant tags from the registry. Add new tags only for new topics."),
}

POST_FIELDS: dict[str, tuple[str, str]] = {
    "tags": (
        "post_tags",
        "Select relevant topic tags from the registry. Add new tags if the article covers topics not yet "
        "in the registry. Tags should be 1-3 words, title case, 2-5 per post.",
    ),
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_key(value: str) -> str:
    """Case-fold, trim and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", str(value)).strip().casefold()


def fields_for(kind: DraftKind) -> dict[str, tuple[str, str]]:
    return CASE_FIELDS if kind == DraftKind.CASE else POST_FIELDS


def _sort_key(value: str) -> tuple[str, str]:
    return (value.casefold(), value)


def _check_field(field: str) -> None:
    if field in ENUM_FIELDS or field not in EXTENDABLE_FIELDS:
        raise EnumFieldError(field)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and str(v).strip()]
    text = str(value).strip()
    return [text] if text else []


class MetadataRegistry:
    """JSON-file backed registry of canonical values.

    Attributes:
        path: Location of the registry file
        metadata_version: Registry format version
        last_updated: Date of the last save (ISO format)
    """

    def __init__(
        self,
        path: Path,
        logger: logging.Logger | None = None,
        lists: dict[str, list[str]] | None = None,
    ):
        self.path = path
        self.logger = logger
        self.metadata_version = REGISTRY_VERSION
        self.last_updated: str | None = None
        self._lists: dict[str, list[str]] = {}
        if lists is None:
            self.reload()
        else:
            self._lists = {name: _dedupe(_as_list(lists.get(name))) for name in EXTENDABLE_FIELDS}

    def reload(self) -> None:
        raw = read_json(self.path, default=None)
        if raw is None:
            self._lists = {name: sorted(DEFAULT_VALUES.get(name, []), key=_sort_key) for name in EXTENDABLE_FIELDS}
            return
        self.metadata_version = str(raw.get("metadata_version") or REGISTRY_VERSION)
        self.last_updated = raw.get("last_updated")
        self._lists = {name: _dedupe(_as_list(raw.get(name))) for name in EXTENDABLE_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "metadata_version": self.metadata_version,
            "last_updated": self.last_updated,
        }
        for name in EXTENDABLE_FIELDS:
            data[name] = list(self._lists[name])
        return data

    def save(self) -> None:
        self.last_updated = date.today().isoformat()
        write_json_atomic(self.path, self.to_dict())

    def values(self, field: str) -> list[str]:
        _check_field(field)
        return list(self._lists[field])

    def counts(self) -> dict[str, int]:
        return {name: len(self._lists[name]) for name in EXTENDABLE_FIELDS}

    def match(self, field: str, value: str) -> str | None:
        """Return the canonical spelling of ``value`` in ``field``, if present."""
        _check_field(field)
        key = normalize_key(value)
        if not key:
            return None
        for entry in self._lists[field]:
            if normalize_key(entry) == key:
                return entry
        return None

    def add(self, field: str, value: str) -> bool:
        """Append ``value`` to ``field`` unless an equivalent entry exists.

        Persists the whole registry when a value is added.

        Returns:
            True when the registry changed

        Raises:
            EnumFieldError: If ``field`` is not an extendable field
        """
        return bool(self.add_many(field, [value]))

    def add_many(self, field: str, values: Iterable[str]) -> list[str]:
        """Append every new value to ``field`` and persist once.

        Returns:
            The values that were added
        """
        _check_field(field)
        added = self._append(field, values)
        if added:
            self.save()
            log_event(self.logger, "Registry updated", field=field, added=added)
        return added

    def _append(self, field: str, values: Iterable[str]) -> list[str]:
        added: list[str] = []
        entries = self._lists[field]
        for value in values:
            cleaned = _WHITESPACE_RE.sub(" ", str(value)).strip()
            if not cleaned or self.match(field, cleaned) is not None:
                continue
            entries.append(cleaned)
            added.append(cleaned)
        if added:
            entries.sort(key=_sort_key)
        return added

    def normalize_metadata(self, metadata: dict[str, Any], kind: DraftKind) -> dict[str, Any]:
        """Replace extendable values with their canonical spelling.

        Values without an exact normalized match pass through unchanged.
        Enum fields are not touched.
        """
        result = dict(metadata)
        for meta_field, (registry_field, _) in fields_for(kind).items():
            if meta_field not in result or result[meta_field] is None:
                continue
            value = result[meta_field]
            if isinstance(value, list):
                mapped = [self.match(registry_field, str(v)) or str(v).strip() for v in value if str(v).strip()]
                result[meta_field] = _dedupe(mapped, keep_order=True)
            elif isinstance(value, str):
                result[meta_field] = self.match(registry_field, value) or value.strip()
        return result

    def update_from_metadata(self, metadata: dict[str, Any], kind: DraftKind) -> dict[str, list[str]]:
        """Append every new extendable value found in ``metadata`` and persist.

        Returns:
            Added values keyed by registry field (only fields that changed)
        """
        additions: dict[str, list[str]] = {}
        for meta_field, (registry_field, _) in fields_for(kind).items():
            added = self._append(registry_field, _as_list(metadata.get(meta_field)))
            if added:
                additions[registry_field] = added
        if additions:
            self.save()
            log_event(self.logger, "Registry updated from metadata", kind=kind.value, additions=additions)
        return additions

    def format_for_prompt(self, kind: DraftKind) -> str:
        """Render canonical lists and matching guidance for a metadata prompt."""
        sections = []
        for meta_field, (registry_field, guidance) in fields_for(kind).items():
            lines = [f"**{meta_field.upper()}** (field `{meta_field}`):", guidance]
            values = self._lists[registry_field]
            if values:
                lines.append("Available values:")
                lines.extend(f"- {value}" for value in values)
            else:
                lines.append("(Registry currently empty - you may create initial values)")
            sections.append("\n".join(lines))
        return "\n\n".join(sections)


def _dedupe(values: list[str], keep_order: bool = False) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        key = normalize_key(value)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(_WHITESPACE_RE.sub(" ", value).strip())
    if keep_order:
        return result
    return sorted(result, key=_sort_key)


def rebuild_registry(
    content_dir: Path,
    registry_path: Path,
    logger: logging.Logger | None = None,
) -> MetadataRegistry:
    """Rebuild the registry from published content.

    Scans ``cases/*.mdx`` and ``posts/*.mdx`` frontmatter, takes the union of
    every extendable value with the default vocabularies, and overwrites the
    registry file. Files with unreadable frontmatter are logged and skipped.
    """
    collected: dict[str, list[str]] = {name: list(DEFAULT_VALUES.get(name, [])) for name in EXTENDABLE_FIELDS}
    scanned = 0
    for kind in DraftKind:
        folder = content_dir / kind.folder
        if not folder.is_dir():
            continue
        for path in sorted(folder.glob("*.mdx")):
            try:
                metadata, _ = parse_frontmatter(path.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                if logger is not None:
                    logger.warning("Skipping unreadable frontmatter", extra={"path": str(path), "error": str(exc)})
                continue
            scanned += 1
            for meta_field, (registry_field, _) in fields_for(kind).items():
                collected[registry_field].extend(_as_list(metadata.get(meta_field)))

    registry = MetadataRegistry(registry_path, logger=logger, lists=collected)
    registry.save()
    log_event(logger, "Registry rebuilt", files_scanned=scanned, counts=registry.counts())
    return registry
