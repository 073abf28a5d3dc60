"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- ProviderConfig: AI completion provider settings
- CloudflareConfig: Stream, Images and R2 credentials and endpoints
- PathsConfig: Draft, content and state file locations
- ExtractionConfig: Prompt context settings
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


@dataclass
class ProviderConfig:
    """Configuration for the AI completion provider.

    Attributes:
        name: Provider name ("anthropic" or "gemini")
        model: Model identifier
        api_key_env: Environment variable name containing the API key
        base_url: Base URL override; each provider has its own default
        api_key: Optional inline API key (overrides env var)
        trust_env: Whether to respect system proxy settings for API requests
        timeout_seconds: HTTP timeout for a single completion
        temperature: Sampling temperature
        max_tokens_metadata: Output token ceiling for metadata extraction
        max_tokens_article: Output token ceiling for article generation
    """

    name: str = "anthropic"
    model: str = "claude-sonnet-4-5"
    api_key_env: str = "ANTHROPIC_API_KEY"
    base_url: str | None = None
    api_key: str | None = None
    trust_env: bool = True
    timeout_seconds: float = 120.0
    temperature: float = 0.2
    max_tokens_metadata: int = 4000
    max_tokens_article: int = 8000


@dataclass
class CloudflareConfig:
    """Configuration for the Cloudflare storage backends.

    Attributes:
        api_base: Cloudflare REST API base URL
        account_id: Inline account id (overrides env var)
        account_id_env: Environment variable holding the account id
        api_token: Inline API token (overrides env var)
        api_token_env: Environment variable holding the API token
        images_account_hash: Account hash used in imagedelivery.net URLs
        images_account_hash_env: Environment variable holding the account hash
        stream_customer_code: Customer subdomain code for Stream URLs
        stream_customer_code_env: Environment variable holding the customer code
        r2_bucket: R2 bucket for documents
        r2_public_url: Public base URL serving the R2 bucket
        r2_public_url_env: Environment variable holding the public base URL
        r2_prefix: Object key prefix for uploaded documents
        timeout_seconds: HTTP request timeout
        retries: Retry attempts for source downloads
        trust_env: Whether to respect system proxy settings
    """

    api_base: str = "https://api.cloudflare.com/client/v4"
    account_id: str | None = None
    account_id_env: str = "CLOUDFLARE_ACCOUNT_ID"
    api_token: str | None = None
    api_token_env: str = "CLOUDFLARE_API_TOKEN"
    images_account_hash: str | None = None
    images_account_hash_env: str = "CLOUDFLARE_IMAGES_ACCOUNT_HASH"
    stream_customer_code: str | None = None
    stream_customer_code_env: str = "CLOUDFLARE_STREAM_CUSTOMER_CODE"
    r2_bucket: str = "documents"
    r2_public_url: str | None = None
    r2_public_url_env: str = "CLOUDFLARE_R2_PUBLIC_URL"
    r2_prefix: str = "documents"
    timeout_seconds: float = 60.0
    retries: int = 2
    trust_env: bool = True


@dataclass
class PathsConfig:
    """Filesystem locations used by the pipeline.

    Attributes:
        drafts_dir: Root folder holding cases/ and posts/ drafts
        content_dir: Root folder receiving cases/ and posts/ MDX output
        library_path: Media library JSON file
        registry_path: Metadata registry JSON file
        temp_dir: Scratch folder for document downloads
        schema_path: Optional content-schema text passed to prompts verbatim
        log_dir: Folder for run and LLM logs
    """

    drafts_dir: str = "drafts"
    content_dir: str = "content"
    library_path: str = "data/media-library.json"
    registry_path: str = "data/metadata-registry.json"
    temp_dir: str = ".temp-uploads"
    schema_path: str | None = None
    log_dir: str = "logs"


@dataclass
class ExtractionConfig:
    """Configuration for prompt construction.

    Attributes:
        context_chars: Characters of draft text kept on each side of a URL
        max_draft_chars: Maximum characters of draft text sent to the model
    """

    context_chars: int = 500
    max_draft_chars: int = 60000


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        llm_log_enabled: Whether to enable separate LLM interaction logging
        llm_log_detail: LLM log detail level ("response_only", "prompt_response")
        llm_log_redaction: Redaction mode for LLM logs ("none", "redact_content", "redact_urls")
        llm_log_file: Name of the LLM log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "publish.jsonl"
    llm_log_enabled: bool = True
    llm_log_detail: str = "response_only"
    llm_log_redaction: str = "none"
    llm_log_file: str = "llm.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    redaction: str = "none"
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    cloudflare: CloudflareConfig = field(default_factory=CloudflareConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


_SECTIONS: dict[str, type] = {
    "provider": ProviderConfig,
    "cloudflare": CloudflareConfig,
    "paths": PathsConfig,
    "extraction": ExtractionConfig,
    "logging": LoggingConfig,
    "langfuse": LangfuseConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            known = {k: v for k, v in value.items() if k in data[key]}
            data[key].update(known)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {name: dict(vars(getattr(cfg, name))) for name in _SECTIONS}


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(**{name: cls(**data.get(name, {})) for name, cls in _SECTIONS.items()})


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    return get_secret(cfg.api_key, cfg.api_key_env)


def get_secret(value: str | None, env_key: str) -> str | None:
    """Return an inline value, falling back to an environment variable."""
    if value:
        return value
    return os.getenv(env_key) or None
