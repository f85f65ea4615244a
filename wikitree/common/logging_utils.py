"""
Logging configuration for WikiTree Explorer.

Reads the `logging` section of `config.yaml` (level, format, file), lets the
LOG_LEVEL environment variable override the level, and installs console and
optional file handlers on the root logger.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .config import DEFAULT_CONFIG_PATH, load_yaml

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO during large fan-outs
_QUIET_LOGGERS = ("urllib3", "requests")


def build_logging_config(logging_cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Translate a `logging` config section into a dictConfig mapping."""
    logging_cfg = logging_cfg or {}

    env_level = os.getenv("LOG_LEVEL")
    level_name = str(env_level or logging_cfg.get("level") or "INFO").upper()
    log_format = logging_cfg.get("format", DEFAULT_FORMAT)
    log_file = logging_cfg.get("file")

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": level_name,
        },
    }
    root_handlers = ["console"]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": level_name,
            "filename": log_file,
            "encoding": "utf-8",
        }
        root_handlers.append("file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": log_format}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"level": level_name, "handlers": root_handlers},
    }


def setup_logging(config_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Initialize application-wide logging from `config_path`."""
    config = load_yaml(config_path)
    logging_cfg = config.get("logging", {}) if isinstance(config, dict) else {}
    logging.config.dictConfig(build_logging_config(logging_cfg))
