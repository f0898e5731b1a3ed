"""Mirror an MWAA environment's S3 artifacts into the local runner layout."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from mwaacli.aws.s3 import S3Client, bucket_from_arn

logger = logging.getLogger(__name__)


class Syncer:
    def __init__(self, s3: S3Client, clone_path: Path, dags_path: Path) -> None:
        self.s3 = s3
        self.clone_path = clone_path
        self.dags_path = dags_path

    def sync(self, environment: Mapping) -> list[str]:
        """Download requirements, startup script, plugins and DAGs. Returns what was synced."""
        bucket = bucket_from_arn(environment["SourceBucketArn"])
        synced: list[str] = []

        key = environment.get("RequirementsS3Path")
        if key:
            self.s3.download_file(
                bucket,
                key,
                self.clone_path / "requirements" / "requirements.txt",
                version=environment.get("RequirementsS3ObjectVersion"),
            )
            synced.append("requirements")

        key = environment.get("StartupScriptS3Path")
        if key:
            self.s3.download_file(
                bucket,
                key,
                self.clone_path / "startup_script" / "startup.sh",
                version=environment.get("StartupScriptS3ObjectVersion"),
            )
            synced.append("startup script")

        key = environment.get("PluginsS3Path")
        if key:
            self.s3.download_and_unzip(
                bucket,
                key,
                self.clone_path / "plugins",
                version=environment.get("PluginsS3ObjectVersion"),
            )
            synced.append("plugins")

        prefix = environment.get("DagS3Path")
        if prefix:
            count = self.s3.sync_directory(bucket, prefix, self.dags_path / "dags")
            logger.info("Downloaded %d DAG files", count)
            synced.append("dags")

        return synced
