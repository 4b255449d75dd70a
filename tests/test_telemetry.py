"""Tests for logging helpers and the metrics facade."""

from unittest.mock import patch

from panectl.telemetry import Metrics, format_pane_log, redact_command


class TestRedactCommand:
    """Tests for redact_command."""

    def test_short_command_unchanged(self):
        assert redact_command("make test") == "make test"

    def test_masks_api_key(self):
        masked = redact_command("export KEY=sk-abcdefghijklmnopqrstuvwxyz123456")
        assert "abcdefghijklmnop" not in masked
        assert "sk-a***" in masked

    def test_truncates_long_command(self):
        with patch("panectl.telemetry.config.LOG_MAX_CMD_LEN", 10):
            assert redact_command("echo " + "x y " * 20) == "echo x y x..."

    def test_mask_everything(self):
        with patch("panectl.telemetry.config.MASK_COMMANDS", True):
            assert redact_command("secret stuff") == "<12 chars>"


class TestFormatPaneLog:
    """Tests for format_pane_log."""

    def test_format(self):
        assert format_pane_log("dispatch", "work:dev-1.1", "sent") == "[dispatch:work:dev-1.1] sent"

    def test_missing_target(self):
        assert format_pane_log("wait", "", "x") == "[wait:unknown] x"


class TestMetrics:
    """Tests for Metrics."""

    def test_counter_with_labels(self):
        m = Metrics()
        m.inc("dispatch.failed", {"reason": "target_not_found"})
        m.inc("dispatch.failed", {"reason": "target_not_found"})
        m.inc("dispatch.failed", {"reason": "command_failed"})

        assert m.get_counter("dispatch.failed", {"reason": "target_not_found"}) == 2
        assert m.get_all_counters()["dispatch.failed{reason=command_failed}"] == 1

    def test_timings(self):
        m = Metrics()
        m.observe("wait.duration", 0.5, {"state": "satisfied"})
        m.observe("wait.duration", 1.5, {"state": "satisfied"})
        assert m.get_timings("wait.duration", {"state": "satisfied"}) == [0.5, 1.5]
        assert m.get_timings("wait.duration") == []

    def test_disabled(self):
        m = Metrics()
        with patch("panectl.telemetry.config.METRICS_ENABLED", False):
            m.inc("capture.ok")
        assert m.get_counter("capture.ok") == 0

    def test_reset(self):
        m = Metrics()
        m.inc("capture.ok")
        m.reset()
        assert m.get_all_counters() == {}
