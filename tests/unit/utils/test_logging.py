"""Tests for logging utilities module."""

import io
import logging
import sys

import numpy as np
from PIL import Image

from comicrestore.utils.logging import (
    _add_separator,
    _filter_event_dict,
    create_task_log_path,
    get_console,
    get_logger,
    quiet_console,
    set_log_output,
    setup_logging,
    setup_task_logging,
)


class TestFilterEventDict:
    """Tests for _filter_event_dict processor."""

    def test_truncates_long_strings(self):
        event = {"event": "x", "error": "a" * 600}

        result = _filter_event_dict(None, "info", event)

        assert result["error"].startswith("a" * 500)
        assert "600 chars total" in result["error"]

    def test_replaces_binary(self):
        result = _filter_event_dict(None, "info", {"event": "x", "payload": b"\x89PNG" * 10})

        assert result["payload"] == "[BINARY DATA: 40 bytes]"

    def test_summarizes_pixel_buffers(self):
        """Test images and arrays are logged as a short description."""
        event = {
            "event": "x",
            "image": Image.new("RGB", (32, 48)),
            "mask": np.zeros((48, 32), dtype=np.uint8),
        }

        result = _filter_event_dict(None, "info", event)

        assert result["image"] == "[IMAGE RGB 32x48]"
        assert result["mask"] == "[ARRAY uint8 (48, 32)]"

    def test_leaves_short_values(self):
        assert _filter_event_dict(None, "info", {"event": "x", "n": 3}) == {"event": "x", "n": 3}


class TestAddSeparator:
    """Tests for _add_separator processor."""

    def test_with_context(self):
        assert _add_separator(None, "info", {"event": "Job completed", "job_id": "a"})["event"] == "Job completed |"

    def test_without_context(self):
        assert _add_separator(None, "info", {"event": "Done", "level": "info"})["event"] == "Done"


class TestSetupLogging:
    """Tests for logging setup."""

    def teardown_method(self):
        set_log_output(sys.stderr)

    def test_console_level(self):
        stream = io.StringIO()
        set_log_output(stream)
        setup_logging(level="DEBUG", console_level="WARNING")

        log = get_logger("comicrestore.test")
        log.info("hidden message")
        log.warning("Visible warning", page="page01")

        output = stream.getvalue()
        assert "hidden message" not in output
        assert "Visible warning" in output
        assert "page01" in output

    def test_noisy_loggers_clamped(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        set_log_output(io.StringIO())
        setup_logging(level="INFO", log_file=str(log_file), json_format=True)

        get_logger("comicrestore.test").info("Batch started", jobs=3)
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert '"event": "Batch started |"' in content
        assert '"jobs": 3' in content


class TestTaskLogging:
    """Tests for task log paths."""

    def test_create_task_log_path(self, tmp_path):
        task_id, path = create_task_log_path(tmp_path / ".logs", "batch")

        assert len(task_id) == 8
        assert path.parent.is_dir()
        assert path.name.startswith("batch_")
        assert path.suffix == ".log"

    def test_setup_task_logging(self, tmp_path):
        set_log_output(io.StringIO())
        task_id, path = setup_task_logging(tmp_path, prefix="restore")

        get_logger("comicrestore.test").debug("Debug detail")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert task_id in path.name
        assert "Debug detail" in path.read_text()


class TestGetConsole:
    """Tests for get_console."""

    def test_singleton(self):
        assert get_console() is get_console()


class TestQuietConsole:
    """Tests for quiet_console."""

    def teardown_method(self):
        set_log_output(sys.stderr)

    def test_silences_console_keeps_file(self, tmp_path):
        """Test records reach the log file but not the console stream."""
        stream = io.StringIO()
        set_log_output(stream)
        log_path = tmp_path / "batch.log"

        with quiet_console(log_path):
            get_logger("comicrestore.test").warning("Rate limited", attempt=2)

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "Rate limited" not in stream.getvalue()
        assert "Rate limited" in log_path.read_text()

    def test_restores_console(self, tmp_path):
        stream = io.StringIO()
        set_log_output(stream)

        with quiet_console(tmp_path / "batch.log"):
            pass
        get_logger("comicrestore.test").warning("After progress")

        assert "After progress" in stream.getvalue()
