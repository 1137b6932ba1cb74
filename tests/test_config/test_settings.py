"""
Tests for config — environment-driven settings and logging setup
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import logging
import logging.handlers

import pytest

from goalline.config import Config, DEFAULT_REGISTRY_PATH, setup_logging


class TestConfig:

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BACKTEST_MIN_MATCHES", "25")
        monkeypatch.setenv("BACKTEST_ASSUMED_ODDS", "1.9")
        monkeypatch.setenv("LINK_WINDOW_SECONDS", "600")
        config = Config(configure_logging=False, log_dir=tmp_path)
        assert config.backtest_min_matches == 25
        assert config.backtest_assumed_odds == pytest.approx(1.9)
        assert config.link_window_seconds == 600

    def test_defaults(self, monkeypatch):
        for var in ("BACKTEST_MIN_MATCHES", "BACKTEST_MIN_QUALITY", "GOALLINE_REGISTRY_PATH"):
            monkeypatch.delenv(var, raising=False)
        config = Config(configure_logging=False)
        assert config.backtest_min_matches == 100
        assert config.backtest_min_quality == pytest.approx(60)
        assert config.registry_path == DEFAULT_REGISTRY_PATH

    def test_load_default_registry(self, monkeypatch):
        monkeypatch.delenv("GOALLINE_REGISTRY_PATH", raising=False)
        registry = Config(configure_logging=False).load_registry()
        assert "O25" in registry


class TestSetupLogging:

    def test_console_and_rotating_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("DEBUG", log_dir=tmp_path)
            kinds = {type(h) for h in root.handlers}
            assert logging.handlers.RotatingFileHandler in kinds
            assert root.level == logging.DEBUG
            assert (tmp_path / "goalline.log").exists()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
