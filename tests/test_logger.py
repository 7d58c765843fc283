"""Tests for structured JSON logging."""

import json
import logging

import pytest

from draftpress.config import LoggingSettings
from draftpress.utils.logger import JSONFormatter, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("urllib3").setLevel(logging.NOTSET)


def test_json_formatter_includes_extras():
    record = logging.LogRecord("draftpress.wp_publisher", logging.INFO, __file__, 1,
                               "POST /posts -> 201", None, None)
    record.endpoint = "https://blog.acme-solar.com/wp-json/wp/v2/posts"
    record.status_code = 201
    record.tenant_id = "acme"

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "POST /posts -> 201"
    assert entry["level"] == "INFO"
    assert entry["status_code"] == 201
    assert entry["tenant_id"] == "acme"
    assert "draft_id" not in entry


def test_setup_logging_writes_json_file(root_logger, tmp_path):
    settings = LoggingSettings(dir=str(tmp_path / "logs"), level="DEBUG", file="publish.log",
                               quiet_loggers=["urllib3"])

    setup_logging(settings)
    setup_logging(settings)
    logging.getLogger("draftpress.orchestrator").info(
        "Publish succeeded", extra={"draft_id": "draft-1", "delivery_method": "direct"}
    )
    for handler in root_logger.handlers:
        handler.flush()

    assert sum(1 for h in root_logger.handlers if getattr(h, "draftpress", False)) == 2
    assert logging.getLogger("urllib3").level == logging.WARNING
    lines = (tmp_path / "logs" / "publish.log").read_text().splitlines()
    entry = json.loads(lines[-1])
    assert entry["message"] == "Publish succeeded"
    assert entry["draft_id"] == "draft-1"
    assert entry["delivery_method"] == "direct"
