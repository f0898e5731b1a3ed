"""Object storage helpers used to mirror an environment's S3 content locally."""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path

from mwaacli.aws.session import AWSConfig
from mwaacli.core.util import extract_zip, resolve_within

logger = logging.getLogger(__name__)


def parse_s3_path(path: str) -> tuple[str, str]:
    """Split s3://bucket/key into (bucket, key)."""
    if not path.startswith("s3://"):
        raise ValueError(f"not an S3 path: {path}")
    bucket, _, key = path[len("s3://"):].partition("/")
    if not bucket:
        raise ValueError(f"not an S3 path: {path}")
    return bucket, key


def bucket_from_arn(arn: str) -> str:
    """arn:aws:s3:::bucket -> bucket"""
    parts = arn.split(":")
    if len(parts) < 6 or not parts[5]:
        raise ValueError(f"not an S3 bucket ARN: {arn}")
    return parts[5]


class S3Client:
    def __init__(self, aws_config: AWSConfig | None = None, *, client=None) -> None:
        self.client = client if client is not None else aws_config.client("s3")

    def _get_object(self, bucket: str, key: str, version: str | None = None) -> dict:
        params = {"Bucket": bucket, "Key": key}
        if version:
            params["VersionId"] = version
        return self.client.get_object(**params)

    def download_file(
        self, bucket: str, key: str, local_path: Path, version: str | None = None
    ) -> Path:
        logger.info("Downloading s3://%s/%s to %s", bucket, key, local_path)
        body = self._get_object(bucket, key, version)["Body"]
        local_path.parent.mkdir(parents=True, exist_ok=True)
        with open(local_path, "wb") as f:
            for chunk in body.iter_chunks():
                f.write(chunk)
        return local_path

    def download_and_unzip(
        self, bucket: str, key: str, dest: Path, version: str | None = None
    ) -> list[Path]:
        logger.info("Extracting s3://%s/%s into %s", bucket, key, dest)
        buffer = io.BytesIO()
        for chunk in self._get_object(bucket, key, version)["Body"].iter_chunks():
            buffer.write(chunk)
        return extract_zip(buffer.getvalue(), dest)

    def sync_directory(self, bucket: str, prefix: str, local_dir: Path) -> int:
        """Mirror every object under prefix into local_dir. Returns the download count.

        Objects are downloaded when missing locally or when size or modification
        time differ; local files without a remote counterpart are deleted.
        """
        prefix = prefix.rstrip("/") + "/" if prefix else ""
        local_dir.mkdir(parents=True, exist_ok=True)
        seen: set[Path] = set()
        downloaded = 0

        for page in self.client.get_paginator("list_objects_v2").paginate(
            Bucket=bucket, Prefix=prefix
        ):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                if key.endswith("/"):
                    continue
                target = resolve_within(local_dir, key[len(prefix):])
                seen.add(target)
                remote_mtime = obj["LastModified"].timestamp()
                if (
                    target.exists()
                    and target.stat().st_size == obj["Size"]
                    and int(target.stat().st_mtime) == int(remote_mtime)
                ):
                    continue
                self.download_file(bucket, key, target)
                os.utime(target, (remote_mtime, remote_mtime))
                downloaded += 1

        for path in sorted(local_dir.rglob("*")):
            if path.is_file() and path.resolve() not in seen:
                logger.info("Removing %s (not present in s3://%s/%s)", path, bucket, prefix)
                path.unlink()
        return downloaded
