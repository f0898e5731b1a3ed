"""Environment variable parsing, merging and rendering for the local runner."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable

from mwaacli.core.exceptions import MalformedLineError

_DOUBLE_QUOTED = re.compile(r'^"((?:[^"\\]|\\.)*)"\s*(?:#.*)?$')
_SINGLE_QUOTED = re.compile(r"^'([^']*)'\s*(?:#.*)?$")


@dataclass(frozen=True)
class AWSCredentials:
    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    region: str = ""

    def to_list(self) -> list[str]:
        env: list[str] = []
        if self.access_key_id:
            env.append(f"AWS_ACCESS_KEY_ID={self.access_key_id}")
        if self.secret_access_key:
            env.append(f"AWS_SECRET_ACCESS_KEY={self.secret_access_key}")
        if self.session_token:
            env.append(f"AWS_SESSION_TOKEN={self.session_token}")
        if self.region:
            env.append(f"AWS_REGION={self.region}")
            env.append(f"AWS_DEFAULT_REGION={self.region}")
        return env


@dataclass(frozen=True)
class Envs:
    """Settings injected into the Airflow container on top of the base env file."""

    credentials: AWSCredentials | None = None
    s3_dags_path: str = ""
    s3_requirements_path: str = ""
    s3_plugins_path: str = ""
    extra: tuple[str, ...] = field(default_factory=tuple)

    def to_list(self) -> list[str]:
        env = self.credentials.to_list() if self.credentials else []
        if self.s3_dags_path:
            env.append(f"S3_DAGS_PATH={self.s3_dags_path}")
        if self.s3_requirements_path:
            env.append(f"S3_REQUIREMENTS_PATH={self.s3_requirements_path}")
        if self.s3_plugins_path:
            env.append(f"S3_PLUGINS_PATH={self.s3_plugins_path}")
        env.extend(self.extra)
        return env


def _unquote(value: str) -> str:
    match = _DOUBLE_QUOTED.match(value)
    if match:
        inner = match.group(1)
        return inner.replace('\\"', '"').replace("\\n", "\n").replace("\\r", "\r")
    match = _SINGLE_QUOTED.match(value)
    if match:
        return match.group(1)
    # Unquoted values may carry an inline comment.
    if " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return value


def parse_env(source: str | Iterable[str] | IO[str]) -> list[str]:
    """Parse dotenv-style content into an ordered list of KEY=VALUE strings.

    Blank lines and lines starting with '#' are skipped. Any other line
    without '=' raises MalformedLineError; there is no best-effort mode.
    """
    lines = source.splitlines() if isinstance(source, str) else source
    env: list[str] = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise MalformedLineError(line, line_number)
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            raise MalformedLineError(line, line_number)
        env.append(f"{key}={_unquote(value.strip())}")
    return env


def parse_env_file(path: str | Path) -> list[str]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_env(f)


def merge_env_vars(*env_lists: Iterable[str], ignore_empty: bool = False) -> list[str]:
    """Flatten lists of KEY=VALUE strings; the last occurrence of a key wins.

    Keys keep the position of their first occurrence. With ignore_empty an
    empty value never overwrites or introduces a key. Entries without '=' are ignored.
    """
    merged: dict[str, str] = {}
    for env_list in env_lists:
        for entry in env_list:
            if "=" not in entry:
                continue
            key, value = entry.split("=", 1)
            if ignore_empty and value == "":
                continue
            merged[key] = value
    return [f"{key}={value}" for key, value in merged.items()]


def env_list_to_dict(env: Iterable[str]) -> dict[str, str]:
    return dict(entry.split("=", 1) for entry in env if "=" in entry)
