"""
Logging configuration for mwaacli.

Loads the packaged logging.yml, substitutes ${LOG_LEVEL} and applies it with
dictConfig. Falls back to basicConfig when the file is missing.
"""

from __future__ import annotations

import logging
import logging.config
import os
import string
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).with_name("logging.yml")


def resolve_log_level(verbose: bool = False) -> str:
    if verbose:
        return "DEBUG"
    return os.environ.get("MWAACLI_LOG_LEVEL", "INFO").upper()


def setup_logging(level: str | None = None, config_path: str | Path | None = None) -> None:
    """
    Load the YAML config, substitute environment variables, and initialize logging.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    log_level = (level or resolve_log_level()).upper()

    if not path.exists():
        logging.basicConfig(level=log_level)
        return

    with open(path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())

    mapping = os.environ.copy()
    mapping["LOG_LEVEL"] = log_level
    content = template.safe_substitute(mapping)
    config = yaml.safe_load(content)
    logging.config.dictConfig(config)
