"""
Configuration management for GOALLINE.

Loads settings from environment variables with sensible defaults.
Configures logging with rotation to prevent unbounded log growth.

The scoring engine never reads this module's global instance; the CLI
builds a Config and injects the registry and thresholds it holds.
"""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from .registry import (
    DEFAULT_REGISTRY_PATH,
    MarketRegistry,
    MarketDefinition,
    load_registry,
    default_registry,
)

# Load .env file
load_dotenv()

PACKAGE_DIR = Path(__file__).parent.parent
PROJECT_ROOT = PACKAGE_DIR.parent
LOG_DIR = PROJECT_ROOT / "logs"
REPORTS_DIR = PROJECT_ROOT / "reports"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB per file
    backup_count: int = 3,
) -> None:
    """Configure logging with console output AND rotating file handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files (defaults to PROJECT_ROOT/logs)
        max_bytes: Max size per log file before rotation (default 5MB)
        backup_count: Number of rotated backup files to keep
    """
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates on reload
    root.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "goalline.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


@dataclass
class Config:
    """Application configuration."""

    # Market registry document
    registry_path: Path = field(default_factory=lambda: Path(
        os.getenv("GOALLINE_REGISTRY_PATH", str(DEFAULT_REGISTRY_PATH))
    ))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_dir: Path = field(default_factory=lambda: Path(os.getenv("LOG_DIR", str(LOG_DIR))))

    # Feature composition: +/- window for deterministic linking (seconds)
    link_window_seconds: int = field(default_factory=lambda: int(os.getenv("LINK_WINDOW_SECONDS", "7200")))

    # Backtesting
    backtest_min_matches: int = field(default_factory=lambda: int(os.getenv("BACKTEST_MIN_MATCHES", "100")))
    backtest_assumed_odds: float = field(default_factory=lambda: float(os.getenv("BACKTEST_ASSUMED_ODDS", "2.0")))
    backtest_min_quality: float = field(default_factory=lambda: float(os.getenv("BACKTEST_MIN_QUALITY", "60")))
    backtest_workers: int = field(default_factory=lambda: int(os.getenv("BACKTEST_WORKERS", "1")))
    reports_dir: Path = field(default_factory=lambda: Path(os.getenv("REPORTS_DIR", str(REPORTS_DIR))))

    # Apply logging configuration on creation (CLI use)
    configure_logging: bool = True

    def __post_init__(self):
        """Configure logging."""
        if self.configure_logging:
            setup_logging(level=self.log_level, log_dir=self.log_dir)

    def load_registry(self) -> MarketRegistry:
        """Registry document this configuration points at."""
        if self.registry_path == DEFAULT_REGISTRY_PATH:
            return default_registry()
        return load_registry(self.registry_path)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    load_dotenv(override=True)
    _config = Config()
    return _config


__all__ = [
    "Config",
    "setup_logging",
    "get_config",
    "reload_config",
    "DEFAULT_REGISTRY_PATH",
    "MarketRegistry",
    "MarketDefinition",
    "load_registry",
    "default_registry",
]
