"""Defaults for mwaacli and their environment overrides."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_URL = "https://github.com/aws/aws-mwaa-local-runner.git"
DEFAULT_VERSION = "v2.10.3"
DEFAULT_CLONE_PATH = ".aws-mwaa-local-runner"
DEFAULT_DAGS_PATH = "."
LABEL_KEY = "github.com.hupe1980.mwaacli"

IMAGE_REPOSITORY = "amazon/mwaa-local"
SESSION_PREFIX = "aws-mwaa-local-runner"
DATABASE_SERVICE = "postgres"

# Paths inside the local runner image.
AIRFLOW_HOME = "/usr/local/airflow"
POSTGRES_DATA_DIR = "/var/lib/postgresql/data"
WEBSERVER_PORT = 8080

# Timeouts in seconds.
DATABASE_READY_TIMEOUT = 300.0
WEBSERVER_READY_TIMEOUT = 300.0
READINESS_INTERVAL = 5.0
READINESS_REQUEST_TIMEOUT = 10.0

DEFAULT_ENV_FILE = ".mwaacli.env"


def load_env_file(path: str | None = None) -> Path | None:
    """Load CLI defaults from a dotenv file without overriding the real environment."""
    env_file = Path(path or os.environ.get("MWAACLI_ENV_FILE", DEFAULT_ENV_FILE))
    if not env_file.is_file():
        return None
    load_dotenv(env_file, override=False)
    return env_file


def default_version() -> str:
    return os.environ.get("MWAACLI_VERSION", DEFAULT_VERSION)


def clone_path() -> str:
    return os.environ.get("MWAACLI_CLONE_PATH", DEFAULT_CLONE_PATH)


def repo_url() -> str:
    return os.environ.get("MWAACLI_REPO_URL", REPO_URL)
