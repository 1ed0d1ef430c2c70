"""Tests for logging setup."""

import json
import logging
import logging.handlers

from orchestration.logging_config import JSONFormatter, setup_logging
from orchestration.models import LoggerConfig


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_context(self):
        record = logging.LogRecord("orchestration.broker", logging.WARNING, __file__, 10, "hello %s", ("x",), None)
        record.context = {"agent_id": "a"}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "hello x"
        assert data["context"] == {"agent_id": "a"}


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_file_handler_from_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        log_file = tmp_path / "logs" / "agents.log"

        setup_logging(LoggerConfig(level="warn", console=False, file=True, file_path=str(log_file)))
        try:
            root = logging.getLogger()
            assert root.level == logging.WARNING
            assert log_file.parent.exists()
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
        finally:
            root = logging.getLogger()
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            root.setLevel(logging.WARNING)
