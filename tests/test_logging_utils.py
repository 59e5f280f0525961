"""
Tests for fhir_mcp/logging_utils.py - Standardized logging configuration.

Tiny module, but free coverage.
"""

import pytest
import logging
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp import logging_utils
from fhir_mcp.logging_utils import get_logger, configure_logging


@pytest.fixture
def fresh_root():
    """Snapshot and restore the 'fhir_mcp' logger around a test."""
    root = logging.getLogger("fhir_mcp")
    saved = (root.level, root.propagate, list(root.handlers), logging_utils._configured)
    logging_utils._configured = False
    root.handlers = []
    yield root
    root.level, root.propagate, root.handlers, logging_utils._configured = saved


class TestGetLogger:

    def test_returns_logger(self):
        logger = get_logger("test_module")
        assert isinstance(logger, logging.Logger)

    def test_logger_name(self):
        logger = get_logger("my.module.name")
        assert logger.name == "my.module.name"

    def test_same_name_same_logger(self):
        assert get_logger("same_name") is get_logger("same_name")

    def test_module_loggers_live_under_package(self):
        from fhir_mcp.elicitation import orchestrator
        assert orchestrator.logger.name.startswith("fhir_mcp.")


class TestConfigureLogging:

    def test_idempotent(self, fresh_root):
        """Calling configure_logging multiple times adds one handler."""
        configure_logging()
        configure_logging()
        configure_logging()
        assert len(fresh_root.handlers) == 1

    def test_writes_to_stderr(self, fresh_root):
        configure_logging()
        assert fresh_root.handlers[0].stream is sys.stderr
        assert fresh_root.propagate is False

    def test_explicit_level(self, fresh_root):
        configure_logging("debug")
        assert fresh_root.level == logging.DEBUG
        configure_logging("ERROR")
        assert fresh_root.level == logging.ERROR

    def test_env_level(self, fresh_root, monkeypatch):
        monkeypatch.setenv("FHIR_MCP_LOG_LEVEL", "WARNING")
        configure_logging()
        assert fresh_root.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, fresh_root):
        configure_logging("chatty")
        assert fresh_root.level == logging.INFO
