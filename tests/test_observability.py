"""
Tests for logging setup — levels, formatters, file output.
"""

import logging
from pathlib import Path

import pytest

from aiforge.core.observability.logging_config import MarkerFormatter, _parse_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseLevel:
    def test_known(self):
        assert _parse_level("debug") == logging.DEBUG
        assert _parse_level("WARNING") == logging.WARNING

    def test_unknown_defaults_to_info(self):
        assert _parse_level("chatty") == logging.INFO
        assert _parse_level(None) == logging.INFO


class TestMarkerFormatter:
    @pytest.mark.parametrize(
        "level,marker",
        [(logging.INFO, "[+]"), (logging.WARNING, "[!]"), (logging.ERROR, "[x]")],
    )
    def test_markers(self, level, marker):
        record = logging.LogRecord("x", level, __file__, 1, "hello %s", ("there",), None)
        assert MarkerFormatter().format(record) == f"{marker} hello there"


class TestSetupLogging:
    def test_default_console(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, MarkerFormatter)

    def test_debug_uses_diagnostic_format(self):
        setup_logging(level="DEBUG")
        assert not isinstance(logging.getLogger().handlers[0].formatter, MarkerFormatter)

    def test_file_handler_lowers_root_level(self, tmp_path: Path):
        log_file = tmp_path / "forge.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("aiforge.test").debug("to the file")
        for h in logging.getLogger().handlers:
            h.flush()
        assert logging.getLogger().level == logging.DEBUG
        assert "to the file" in log_file.read_text()

    def test_third_party_quieted(self):
        setup_logging(level="INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING
