"""
Langfuse tracing for publish runs.

A run produces one ``publish.run`` span with a child per phase, and
children below those for every completion call and every upload. Payloads
are redacted and truncated with the same helpers as the LLM exchange log.

Tracing is strictly optional: without ``langfuse.enabled``, without keys or
without the SDK installed, every helper here does nothing and ``start_span``
yields ``None``.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import os
from typing import Any, Iterator

from ..config import LangfuseConfig
from .logging import redact_text, truncate_text

logger = logging.getLogger("draft_publisher.tracing")

_TRACER = None
_CFG: LangfuseConfig | None = None


def setup_langfuse(cfg: LangfuseConfig) -> None:
    """Create the Langfuse client, or clear it when tracing is unavailable."""
    global _TRACER, _CFG  # noqa: PLW0603
    _TRACER = None
    _CFG = cfg
    if not cfg.enabled:
        return

    keys = (
        cfg.public_key or os.getenv("LANGFUSE_PUBLIC_KEY"),
        cfg.secret_key or os.getenv("LANGFUSE_SECRET_KEY"),
    )
    if not all(keys):
        logger.warning("Langfuse enabled but keys are missing; tracing disabled")
        return

    try:
        from langfuse import Langfuse  # type: ignore
    except ImportError:
        logger.warning("Langfuse enabled but the SDK is not installed; tracing disabled")
        return

    _TRACER = Langfuse(
        public_key=keys[0],
        secret_key=keys[1],
        host=cfg.host or os.getenv("LANGFUSE_HOST"),
        environment=cfg.environment or os.getenv("LANGFUSE_ENVIRONMENT"),
        release=cfg.release or os.getenv("LANGFUSE_RELEASE"),
    )


def get_tracer():
    return _TRACER


@contextmanager
def start_span(
    name: str,
    kind: str,
    input_value: Any | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Any | None]:
    tracer = _TRACER
    if tracer is None:
        yield None
        return

    metadata = {
        key: value if isinstance(value, (str, int, float, bool)) else str(value)
        for key, value in (attributes or {}).items()
        if value is not None
    }
    metadata.setdefault("span.kind", kind)

    try:
        cm = tracer.start_as_current_span(name=name, input=_payload(input_value), metadata=metadata)
        span = cm.__enter__()
    except Exception:  # noqa: BLE001
        logger.debug("Could not open span %s", name, exc_info=True)
        yield None
        return

    try:
        yield span
    finally:
        try:
            cm.__exit__(None, None, None)
        except Exception:  # noqa: BLE001
            logger.debug("Could not close span %s", name, exc_info=True)


def set_span_output(span: Any | None, output_value: Any) -> None:
    payload = _payload(output_value)
    if payload is not None:
        _update(span, output=payload)


def record_span_error(span: Any | None, exc: BaseException) -> None:
    _update(span, level="ERROR", status_message=f"{type(exc).__name__}: {exc}")


def flush() -> None:
    """Send buffered spans; call before the process exits."""
    if _TRACER is None:
        return
    try:
        _TRACER.flush()
    except Exception:  # noqa: BLE001
        logger.debug("Langfuse flush failed", exc_info=True)


def _payload(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=True, default=str)
    if _CFG is None:
        return text
    return truncate_text(redact_text(text, _CFG.redaction), _CFG.max_text_chars)


def _update(span: Any | None, **fields: Any) -> None:
    if span is None or not hasattr(span, "update"):
        return
    try:
        span.update(**fields)
    except Exception:  # noqa: BLE001
        logger.debug("Span update failed", exc_info=True)
