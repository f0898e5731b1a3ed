"""Compare the local airflow.cfg against an environment's configuration options."""

from __future__ import annotations

import configparser
import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


class DiffKind(str, enum.Enum):
    MISSING_IN_LOCAL = "missing-in-local"
    MISSING_IN_REMOTE = "missing-in-remote"
    VALUE_MISMATCH = "value-mismatch"


@dataclass(frozen=True)
class Diff:
    key: str
    kind: DiffKind
    local_value: str = ""
    remote_value: str = ""


def load_airflow_cfg(path: str | Path) -> dict[str, str]:
    """Flatten an INI file into "section.key" -> value. DEFAULT is ignored."""
    parser = configparser.ConfigParser(
        interpolation=None, strict=False, default_section="__mwaacli_default__"
    )
    parser.optionxform = str
    with open(path, "r", encoding="utf-8") as f:
        parser.read_file(f)

    flattened: dict[str, str] = {}
    for section in parser.sections():
        if section == "DEFAULT":
            continue
        for key, value in parser.items(section, raw=True):
            flattened[f"{section}.{key}"] = value
    return flattened


def compare_airflow_configs(local: Mapping[str, str], remote: Mapping[str, str]) -> list[Diff]:
    """Keys missing locally come first, then keys missing remotely, then mismatches."""
    missing_in_local: list[Diff] = []
    missing_in_remote: list[Diff] = []
    mismatched: list[Diff] = []

    for key in sorted(remote):
        remote_value = remote[key]
        local_value = local.get(key, "")
        if not local_value and remote_value:
            missing_in_local.append(Diff(key, DiffKind.MISSING_IN_LOCAL, "", remote_value))
        elif local_value and remote_value and local_value != remote_value:
            mismatched.append(Diff(key, DiffKind.VALUE_MISMATCH, local_value, remote_value))

    for key in sorted(local):
        if local[key] and not remote.get(key, ""):
            missing_in_remote.append(Diff(key, DiffKind.MISSING_IN_REMOTE, local[key], ""))

    return missing_in_local + missing_in_remote + mismatched


def format_diffs(diffs: list[Diff]) -> str:
    if not diffs:
        return "No differences found."

    sections = (
        (DiffKind.MISSING_IN_LOCAL, "Missing in local config:"),
        (DiffKind.MISSING_IN_REMOTE, "Missing in remote config:"),
        (DiffKind.VALUE_MISMATCH, "Different values:"),
    )
    lines: list[str] = []
    for kind, title in sections:
        group = [d for d in diffs if d.kind is kind]
        if not group:
            continue
        if lines:
            lines.append("")
        lines.append(title)
        for d in group:
            if kind is DiffKind.MISSING_IN_LOCAL:
                lines.append(f"  {d.key} = {d.remote_value}")
            elif kind is DiffKind.MISSING_IN_REMOTE:
                lines.append(f"  {d.key} = {d.local_value}")
            else:
                lines.append(f"  {d.key}: local={d.local_value} remote={d.remote_value}")
    return "\n".join(lines)
