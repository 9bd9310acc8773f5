"""
Unit tests for configuration and logging setup.
"""

import pytest
import structlog

from diffscout.config import DiffScoutConfig
from diffscout.logging_config import configure_logging


# =============================================================================
# UNIT TESTS: Configuration
# =============================================================================

class TestConfig:
    """Tests for DiffScoutConfig defaults and environment loading."""

    def test_defaults(self):
        config = DiffScoutConfig()

        assert config.max_workers >= 1
        assert config.analysis_concurrency == 8
        assert config.search_timeout == 30.0
        assert config.include_all is False
        assert config.exclude_globs == ()
        assert config.review_body == "Review from diffscout"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DIFFSCOUT_MAX_WORKERS", "3")
        monkeypatch.setenv("DIFFSCOUT_ANALYSIS_CONCURRENCY", "2")
        monkeypatch.setenv("DIFFSCOUT_SEARCH_TIMEOUT", "5.5")
        monkeypatch.setenv("DIFFSCOUT_INCLUDE_ALL", "yes")
        monkeypatch.setenv("DIFFSCOUT_EXCLUDE_GLOBS", "*.snap, fixtures/*")
        monkeypatch.setenv("DIFFSCOUT_REVIEW_BODY", "bot review")
        monkeypatch.setenv("DIFFSCOUT_LOG_LEVEL", "debug")
        monkeypatch.setenv("DIFFSCOUT_LOG_FORMAT", "json")

        config = DiffScoutConfig.from_env()

        assert config.max_workers == 3
        assert config.analysis_concurrency == 2
        assert config.search_timeout == 5.5
        assert config.include_all is True
        assert config.exclude_globs == ("*.snap", "fixtures/*")
        assert config.review_body == "bot review"
        assert config.log_level == "debug"
        assert config.log_format == "json"

    def test_from_env_defaults(self, monkeypatch):
        for name in ("DIFFSCOUT_SEARCH_TIMEOUT", "DIFFSCOUT_INCLUDE_ALL", "DIFFSCOUT_EXCLUDE_GLOBS"):
            monkeypatch.delenv(name, raising=False)

        config = DiffScoutConfig.from_env()

        assert config.search_timeout == 30.0
        assert config.include_all is False
        assert config.exclude_globs == ()

    def test_zero_search_timeout_is_kept(self, monkeypatch):
        monkeypatch.setenv("DIFFSCOUT_SEARCH_TIMEOUT", "0")
        assert DiffScoutConfig.from_env().search_timeout == 0.0

    @pytest.mark.parametrize("value", ["none", "OFF", "inf"])
    def test_search_timeout_can_be_disabled(self, monkeypatch, value):
        monkeypatch.setenv("DIFFSCOUT_SEARCH_TIMEOUT", value)
        assert DiffScoutConfig.from_env().search_timeout is None


# =============================================================================
# UNIT TESTS: Logging
# =============================================================================

class TestLogging:
    """Tests for structlog configuration."""

    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_logs_to_stderr(self, capsys):
        configure_logging(DiffScoutConfig(max_workers=1, log_format="json", log_level="INFO"))

        structlog.get_logger("diffscout.test").info("Parsed diff", files=3)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert '"event": "Parsed diff"' in captured.err
        assert '"files": 3' in captured.err

    def test_level_filters_debug(self, capsys):
        configure_logging(DiffScoutConfig(max_workers=1, log_format="json", log_level="WARNING"))

        structlog.get_logger("diffscout.test").debug("Hidden")

        assert capsys.readouterr().err == ""

    def test_unknown_level_falls_back_to_info(self, capsys):
        configure_logging(DiffScoutConfig(max_workers=1, log_format="json", log_level="chatty"))

        structlog.get_logger("diffscout.test").info("Shown")

        assert "Shown" in capsys.readouterr().err
