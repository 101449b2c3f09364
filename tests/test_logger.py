"""
Tests for logger functionality.
"""

import pytest
from fieldsweep.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with default settings."""
        logger = StructuredLogger(name="test", level="INFO", log_dir=tmp_path, enable_console=False)

        assert logger.logger.name == "test"
        assert logger.metrics["pages_scanned"] == 0
        assert logger.metrics["outcomes"] == {}

    def test_log_methods(self, tmp_path):
        """All log level methods should work."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_context_is_serialized(self, tmp_path):
        """Context kwargs are appended as JSON, including non-JSON values."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.info("Restating", urn="urn:li:dataHubPolicy:a", path=tmp_path)

        content = next(tmp_path.glob("*.log")).read_text()
        assert '"urn": "urn:li:dataHubPolicy:a"' in content
        assert str(tmp_path) in content

    def test_sweep_metrics(self, tmp_path):
        """Pages, candidates and outcomes are tracked."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.record_api_call()
        logger.record_page(2)
        logger.record_page(1)
        logger.record_outcome("applied")
        logger.record_outcome("applied")
        logger.record_outcome("failed", "ConnectionError")

        metrics = logger.get_metrics()
        assert metrics["api_calls"] == 1
        assert metrics["pages_scanned"] == 2
        assert metrics["candidates_seen"] == 3
        assert metrics["outcomes"] == {"applied": 2, "failed": 1}
        assert metrics["errors_by_type"] == {"ConnectionError": 1}
        assert metrics["applied_rate"] == pytest.approx(0.667, rel=0.01)

    def test_applied_rate_without_candidates(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        assert logger.get_metrics()["applied_rate"] == 0

    def test_metrics_summary(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_page(1)
        logger.record_outcome("skipped_parse_error", "UrnParseError")

        logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Sweep Metrics" in content
        assert "skipped_parse_error: 1" in content
        assert "UrnParseError: 1" in content

    def test_set_level(self, tmp_path):
        logger = StructuredLogger(name="test", level="INFO", log_dir=tmp_path, enable_console=False)
        logger.set_level("debug")
        assert logger.logger.level == 10

    def test_unknown_level_rejected(self, tmp_path):
        """An unknown level name is a configuration error, not an AttributeError."""
        logger = StructuredLogger(name="test", level="INFO", log_dir=tmp_path, enable_console=False)

        with pytest.raises(ValueError, match="VERBOSE"):
            logger.set_level("VERBOSE")

        assert logger.logger.level == 20

    def test_log_file_creation(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.info("Test message")

        log_files = list(tmp_path.glob("*.log"))
        assert len(log_files) == 1
        assert log_files[0].name.startswith("fieldsweep_")
        assert "Test message" in log_files[0].read_text()


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        """get_logger should return same instance."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2

    def test_reset_logger(self, tmp_path):
        """reset_logger should create new instance."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger1.record_api_call()

        reset_logger()

        logger2 = get_logger(log_dir=tmp_path, enable_console=False)

        assert logger2.metrics["api_calls"] == 0
