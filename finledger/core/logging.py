"""Logging utilities."""
from __future__ import annotations

import logging.config
from pathlib import Path

import yaml

from finledger.core.config import Settings, get_settings

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "../.." / "configs" / "logging.yaml"


def configure_logging(settings: Settings | None = None) -> None:
    """Configure logging from the YAML configuration file if present."""
    settings = settings or get_settings()
    config_path = Path(settings.logging_config_path) if settings.logging_config_path else _DEFAULT_CONFIG_PATH
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=settings.log_level.upper())


__all__ = ["configure_logging"]
