"""
Runtime configuration for LifeSignal.

File: config.py
Created: 2026-10-12
Last Modified: 2026-10-17
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .documents.common import DATA_DIR, LOCAL_DB_PATH
from .liveness import DEFAULT_CHECK_IN_INTERVAL

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'


@dataclass
class LifeSignalConfig:
    """Configuration for the local document store and client behavior."""

    # Storage
    db_path: Path = field(default_factory=lambda: LOCAL_DB_PATH)

    # Logging
    log_dir: Path = field(default_factory=lambda: DATA_DIR.parent / "logs")
    log_level: str = "INFO"

    # Remote calls
    request_timeout: Optional[float] = 10.0  # seconds, None disables

    # Profile defaults
    default_phone_region: str = "US"
    default_check_in_interval: int = int(DEFAULT_CHECK_IN_INTERVAL.total_seconds())

    def __post_init__(self):
        # Ensure paths are Path objects
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if isinstance(self.log_dir, str):
            self.log_dir = Path(self.log_dir)

    @classmethod
    def from_env(cls) -> "LifeSignalConfig":
        """Build a config from LIFESIGNAL_* environment variables (and .env)."""
        load_dotenv()
        config = cls()

        if os.environ.get("LIFESIGNAL_DB_PATH"):
            config.db_path = Path(os.environ["LIFESIGNAL_DB_PATH"])
        if os.environ.get("LIFESIGNAL_LOG_DIR"):
            config.log_dir = Path(os.environ["LIFESIGNAL_LOG_DIR"])
        if os.environ.get("LIFESIGNAL_LOG_LEVEL"):
            config.log_level = os.environ["LIFESIGNAL_LOG_LEVEL"].upper()
        if os.environ.get("LIFESIGNAL_PHONE_REGION"):
            config.default_phone_region = os.environ["LIFESIGNAL_PHONE_REGION"].upper()

        timeout = os.environ.get("LIFESIGNAL_REQUEST_TIMEOUT")
        if timeout:
            config.request_timeout = float(timeout) if float(timeout) > 0 else None

        return config


def configure_logging(config: LifeSignalConfig) -> None:
    """Log to a dated file in config.log_dir and to stderr."""
    config.log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(config.log_dir / f"lifesignal_{datetime.now().strftime('%Y-%m-%d')}.log"),
            logging.StreamHandler()
        ]
    )


__all__ = [
    "LifeSignalConfig",
    "configure_logging",
]
