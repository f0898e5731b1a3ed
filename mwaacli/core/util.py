"""Small helpers shared by the local runner and the AWS commands."""

from __future__ import annotations

import io
import os
import re
import socket
import webbrowser
import zipfile
from pathlib import Path

from mwaacli.core.exceptions import InvalidARNError, UnsafePathError

_ARN_PATTERN = re.compile(
    r"^arn:(aws|aws-cn|aws-us-gov):[a-zA-Z0-9-]+:[a-z0-9-]*:[0-9]{12}:[^:]+$"
)
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n]")

# Per-member cap when extracting archives downloaded from S3.
MAX_EXTRACT_FILE_SIZE = 100 * 1024 * 1024


def convert_version(version: str) -> str:
    """Normalise a release tag for use in image tags and names: v2.10.3 -> 2_10_3."""
    return version.removeprefix("v").replace(".", "_")


def short_id(container_id: str) -> str:
    return container_id[:12]


def is_valid_arn(arn: str) -> bool:
    return bool(_ARN_PATTERN.match(arn))


def validate_arn(arn: str) -> str:
    if not is_valid_arn(arn):
        raise InvalidARNError(arn)
    return arn


def strip_non_printable(text: str) -> str:
    return _NON_PRINTABLE.sub("", text)


def is_port_free(port: int, host: str = "") -> bool:
    """Return True when a TCP listener could bind the port right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def ensure_path_is_empty_or_missing(path: Path) -> bool:
    """True when path does not exist or is an empty directory."""
    if not path.exists():
        return True
    if not path.is_dir():
        return False
    return not any(path.iterdir())


def resolve_within(base: Path, relative: str) -> Path:
    """Join relative onto base, refusing paths that leave base."""
    if not relative or os.path.isabs(relative) or relative.startswith(("/", "\\")):
        raise UnsafePathError(f"illegal file path: {relative!r}")
    base = base.resolve()
    target = (base / relative).resolve()
    if target != base and base not in target.parents:
        raise UnsafePathError(f"illegal file path: {relative!r}")
    return target


def extract_zip(data: bytes, dest: Path, max_file_size: int = MAX_EXTRACT_FILE_SIZE) -> list[Path]:
    """Extract a zip archive held in memory into dest. Returns the written files."""
    written: list[Path] = []
    dest.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        for member in archive.infolist():
            target = resolve_within(dest, member.filename)
            if member.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            if member.file_size > max_file_size:
                raise UnsafePathError(
                    f"{member.filename} exceeds the extraction limit of {max_file_size} bytes"
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(member) as src, open(target, "wb") as dst:
                remaining = max_file_size
                while chunk := src.read(64 * 1024):
                    remaining -= len(chunk)
                    if remaining < 0:
                        raise UnsafePathError(
                            f"{member.filename} exceeds the extraction limit of "
                            f"{max_file_size} bytes"
                        )
                    dst.write(chunk)
            written.append(target)
    return written


def open_browser(url: str) -> bool:
    return webbrowser.open(url)
