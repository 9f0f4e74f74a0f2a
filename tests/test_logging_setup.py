"""Test suite for logging configuration."""

import sys

import pytest
from loguru import logger

from ocr_eval.core.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestSetupLogging:
    """Test setup_logging()."""

    def test_invalid_level(self):
        """Test unknown levels are rejected before touching handlers."""
        with pytest.raises(ValueError):
            setup_logging("LOUD")

    def test_file_sinks_created(self, tmp_path):
        """Test file logging writes the application and structured logs."""
        setup_logging("debug", log_dir=tmp_path / "logs", enable_file_logging=True, serialize=True)
        logger.info("benchmark finished")
        logger.complete()

        assert (tmp_path / "logs" / "ocr_eval.log").exists()
        assert (tmp_path / "logs" / "structured.jsonl").exists()
        assert "benchmark finished" in (tmp_path / "logs" / "ocr_eval.log").read_text()

    def test_console_only(self, tmp_path):
        """Test no files are written without file logging."""
        setup_logging("INFO", log_dir=tmp_path / "logs")

        assert not (tmp_path / "logs").exists()
