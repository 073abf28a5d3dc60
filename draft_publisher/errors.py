"""Exception hierarchy for the publishing pipeline.

Every fatal pipeline failure derives from ``PublishError`` and carries an
``exit_code`` used by the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core.types import Violation


class PublishError(Exception):
    """Base class for pipeline failures."""

    exit_code = 1


class ConfigError(PublishError):
    """Missing credentials or an unsupported configuration value."""

    exit_code = 1


class SchemaValidationError(PublishError):
    """AI output failed the schema contract.

    Carries every violation found, not only the first one.
    """

    exit_code = 2

    def __init__(self, violations: list["Violation"], stage: str = "metadata"):
        self.violations = list(violations)
        self.stage = stage
        lines = [f"{stage} validation failed with {len(self.violations)} violation(s):"]
        lines.extend(f"  - {v}" for v in self.violations)
        super().__init__("\n".join(lines))


class SentinelModelError(PublishError):
    """The model refused to extract metadata and returned its error sentinel."""

    exit_code = 3

    def __init__(self, message: str):
        self.model_message = message
        super().__init__(f"Model reported an error: {message}")


class ParseError(PublishError):
    """A model response did not contain the expected structure."""

    exit_code = 4

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class UploadError(PublishError):
    """A storage backend failed to accept a media item."""

    exit_code = 5

    def __init__(self, source_url: str, provider: str, message: str):
        self.source_url = source_url
        self.provider = provider
        super().__init__(f"{provider} upload failed for {source_url}: {message}")


class CompletionError(PublishError):
    """The AI completion service failed or returned nothing."""

    exit_code = 7

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} completion failed: {message}")


class WriteConflict(PublishError):
    """The output file already exists and overwrite was not confirmed."""

    exit_code = 6

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Output file already exists: {path}")


class EnumFieldError(ValueError):
    """Raised when code tries to extend a closed enum field in the registry."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' is not an extendable registry field")
