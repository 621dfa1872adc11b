"""Tests for logging helpers."""

from __future__ import annotations

import json
import logging

from feedback_digest.config import LoggingConfig
from feedback_digest.utils.logging import JsonlFormatter, redact_text, setup_logging, truncate_text


def test_redact_text_modes():
    text = "Mail ann@example.com about https://example.com/x"
    assert redact_text(text, "none") == text
    assert redact_text(text, "redact_content") == ""
    assert redact_text(text, "redact_urls_authors") == "Mail [REDACTED_EMAIL] about [REDACTED_URL]"


def test_truncate_text_marks_cut():
    assert truncate_text("abcdef", 3) == "abc...(truncated)"
    assert truncate_text("abc", 3) == "abc"


def test_jsonl_formatter_includes_extra_fields():
    record = logging.LogRecord("feedback_digest.runner", logging.INFO, __file__, 1, "Pipeline start", None, None)
    record.event = "pipeline_start"
    record.count = 3

    payload = json.loads(JsonlFormatter().format(record))

    assert payload["message"] == "Pipeline start"
    assert payload["event"] == "pipeline_start"
    assert payload["count"] == 3


def test_setup_logging_writes_jsonl_file(tmp_path):
    logger = setup_logging(LoggingConfig(console=False, file=True), log_dir=tmp_path)
    try:
        logging.getLogger("feedback_digest.test").info("hello", extra={"event": "greeting"})
        for handler in logger.handlers:
            handler.flush()
        line = (tmp_path / "run.jsonl").read_text(encoding="utf-8").strip()
        assert json.loads(line)["event"] == "greeting"
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []
        logger.propagate = True
