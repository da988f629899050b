"""Tests for utility functions."""

import io
import logging

import pytest

from bird_atlas.utils import format_duration, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    level = root_logger.level
    handlers = root_logger.handlers[:]
    yield
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


class TestFormatDuration:
    """Tests for format_duration()."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0 ms"),
        (0.25, "250 ms"),
        (1, "1.0 s"),
        (12.34, "12.3 s"),
        (60, "1m 00s"),
        (75, "1m 15s"),
        (3725, "62m 05s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_console_stream(self):
        """Test messages go to the given stream at the given level."""
        stream = io.StringIO()
        setup_logging("WARNING", stream=stream, include_timestamp=False)

        logging.getLogger("bird_atlas.test").info("hidden")
        logging.getLogger("bird_atlas.test").warning("shown")

        assert stream.getvalue() == "bird_atlas.test - WARNING - shown\n"

    def test_log_file(self, tmp_path):
        """Test a log file is created along with its directory."""
        log_file = tmp_path / "logs" / "scan.log"
        setup_logging(logging.DEBUG, log_file, stream=io.StringIO())

        logging.getLogger("bird_atlas.test").debug("walking %s", "/photos")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "DEBUG - walking /photos" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_does_not_duplicate(self):
        """Test calling setup twice leaves one console handler."""
        setup_logging("INFO", stream=io.StringIO())
        setup_logging("INFO", stream=io.StringIO())

        assert len(logging.getLogger().handlers) == 1

    def test_noisy_loggers_quietened(self):
        setup_logging("DEBUG", stream=io.StringIO())

        assert logging.getLogger("openpyxl").level == logging.WARNING
