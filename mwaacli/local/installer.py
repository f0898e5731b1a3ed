"""Install the aws-mwaa-local-runner tree into the working directory."""

from __future__ import annotations

import io
import logging
import os
import re
import subprocess
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping
from urllib.parse import urlparse

import requests

from mwaacli import config
from mwaacli.core.exceptions import InstallError, NonEmptyTargetError
from mwaacli.core.util import ensure_path_is_empty_or_missing, resolve_within

logger = logging.getLogger(__name__)

# Top-level entries of the upstream repository that are not needed locally.
_SKIPPED = re.compile(r"^(mwaa-local-env|\.github)")


@dataclass(frozen=True)
class FetchedFile:
    data: bytes
    mode: int = 0o644


Tree = Mapping[str, FetchedFile]
Fetcher = Callable[[str, str], Tree]


def archive_url(repo_url: str, ref: str) -> str:
    parsed = urlparse(repo_url)
    path = parsed.path.rstrip("/").removesuffix(".git")
    return f"https://{parsed.netloc}{path}/archive/{ref}.tar.gz"


def fetch_github_archive(repo_url: str, ref: str) -> dict[str, FetchedFile]:
    """Download the tarball of ref and return its files keyed by repo-relative path."""
    url = archive_url(repo_url, ref)
    logger.info("Downloading %s", url)
    try:
        response = requests.get(url, timeout=120)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise InstallError(f"failed to download {url}: {exc}") from exc

    files: dict[str, FetchedFile] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(response.content), mode="r:gz") as archive:
            for member in archive.getmembers():
                if not member.isfile():
                    continue
                # Drop the "<repo>-<ref>/" directory every archive entry starts with.
                _, _, relative = member.name.partition("/")
                if not relative:
                    continue
                extracted = archive.extractfile(member)
                if extracted is None:
                    continue
                files[relative] = FetchedFile(extracted.read(), member.mode)
    except tarfile.TarError as exc:
        raise InstallError(f"failed to read archive {url}: {exc}") from exc
    return files


def fetch_git_clone(repo_url: str, ref: str) -> dict[str, FetchedFile]:
    """Shallow-clone ref with git into a temporary directory and read it into memory."""
    files: dict[str, FetchedFile] = {}
    with tempfile.TemporaryDirectory(prefix="mwaacli-") as tmp:
        cmd = ["git", "clone", "--depth", "1", "--branch", ref, repo_url, tmp]
        logger.info("Cloning %s (%s)", repo_url, ref)
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise InstallError("required command not found: git") from exc
        except subprocess.CalledProcessError as exc:
            raise InstallError(f"git clone failed: {exc.stderr.strip()}") from exc

        root = Path(tmp)
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d != ".git"]
            for filename in filenames:
                path = Path(dirpath) / filename
                if path.is_symlink():
                    continue
                relative = path.relative_to(root).as_posix()
                files[relative] = FetchedFile(path.read_bytes(), path.stat().st_mode & 0o777)
    return files


def default_fetcher(repo_url: str) -> Fetcher:
    if urlparse(repo_url).netloc == "github.com":
        return fetch_github_archive
    return fetch_git_clone


@dataclass(frozen=True)
class InstallerOptions:
    repo_url: str = config.REPO_URL
    clone_path: str = config.DEFAULT_CLONE_PATH
    dags_path: str = config.DEFAULT_DAGS_PATH


class Installer:
    """Materialise the local runner repository at a given version."""

    def __init__(
        self,
        version: str,
        options: InstallerOptions | None = None,
        *,
        cwd: Path | None = None,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.version = version
        self.options = options or InstallerOptions()
        self.cwd = (cwd or Path.cwd()).resolve()
        self.fetcher = fetcher or default_fetcher(self.options.repo_url)

    @property
    def clone_dir(self) -> Path:
        return self.cwd / self.options.clone_path

    @property
    def dags_dir(self) -> Path:
        return self.cwd / self.options.dags_path

    def plan(self, tree: Tree) -> list[tuple[Path, FetchedFile, bool]]:
        """Map fetched files to their destinations, rejecting unsafe paths.

        Each entry is (target, file, is_dag).
        """
        planned: list[tuple[Path, FetchedFile, bool]] = []
        for relative in sorted(tree):
            if _SKIPPED.match(relative):
                continue
            is_dag = relative == "dags" or relative.startswith("dags/")
            base = self.dags_dir if is_dag else self.clone_dir
            planned.append((resolve_within(base, relative), tree[relative], is_dag))
        return planned

    def run(self) -> Path:
        if not ensure_path_is_empty_or_missing(self.clone_dir):
            raise NonEmptyTargetError(str(self.clone_dir))

        tree = self.fetcher(self.options.repo_url, self.version)
        planned = self.plan(tree)

        written = 0
        for target, fetched, is_dag in planned:
            if is_dag and target.exists():
                logger.info("Keeping existing %s", target)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(fetched.data)
            if fetched.mode & 0o111:
                target.chmod(fetched.mode & 0o777)
            written += 1

        (self.clone_dir / "db-data").mkdir(parents=True, exist_ok=True)
        logger.info("Wrote %d files for %s into %s", written, self.version, self.clone_dir)
        return self.clone_dir
