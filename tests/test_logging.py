import json

from draft_publisher.config import LoggingConfig
from draft_publisher.utils.logging import log_event, redact_text, setup_llm_logger, setup_logging


def test_run_log_is_jsonl_with_extra_fields(tmp_path):
    cfg = LoggingConfig(console=False, filename="run.jsonl")
    logger = setup_logging(cfg, tmp_path)

    log_event(logger, "State transition", from_state="idle", to_state="scanning")
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "run.jsonl").read_text(encoding="utf-8").strip()
    payload = json.loads(line)
    assert payload["message"] == "State transition"
    assert payload["from_state"] == "idle"
    assert payload["to_state"] == "scanning"
    assert payload["logger"] == "draft_publisher"
    assert "lineno" not in payload


def test_llm_logger_disabled_or_without_directory(tmp_path):
    assert setup_llm_logger(LoggingConfig(llm_log_enabled=False), tmp_path) is None
    assert setup_llm_logger(LoggingConfig(), None) is None


def test_redact_text_modes():
    text = "see https://ex.com/a.jpg now"

    assert redact_text(text, "none") == text
    assert redact_text(text, "redact_urls") == "see [REDACTED_URL] now"
    assert redact_text(text, "redact_content") == ""
