"""Unit tests for S3 mirroring and environment sync."""

import io
import os
import zipfile
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from mwaacli.aws.s3 import S3Client, bucket_from_arn, parse_s3_path
from mwaacli.core.exceptions import UnsafePathError
from mwaacli.local.sync import Syncer

MTIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def body(data):
    b = MagicMock()
    b.iter_chunks.return_value = iter([data])
    return b


def s3_client(objects):
    """S3Client backed by a mocked boto3 client serving objects {key: bytes}."""
    boto = MagicMock()
    boto.get_paginator.return_value.paginate.side_effect = lambda Bucket, Prefix: [
        {
            "Contents": [
                {"Key": key, "Size": len(data), "LastModified": MTIME}
                for key, data in objects.items()
                if key.startswith(Prefix)
            ]
        }
    ]
    boto.get_object.side_effect = lambda Bucket, Key, **kw: {"Body": body(objects[Key])}
    return S3Client(client=boto), boto


def test_parse_s3_path():
    assert parse_s3_path("s3://bucket/dags/x.py") == ("bucket", "dags/x.py")
    with pytest.raises(ValueError):
        parse_s3_path("bucket/dags")


def test_bucket_from_arn():
    assert bucket_from_arn("arn:aws:s3:::airflow-dev") == "airflow-dev"
    with pytest.raises(ValueError):
        bucket_from_arn("arn:aws:s3")


def test_download_file_passes_version(tmp_path):
    client, boto = s3_client({"requirements.txt": b"boto3\n"})
    target = client.download_file("b", "requirements.txt", tmp_path / "r" / "req.txt", "v1")
    assert target.read_bytes() == b"boto3\n"
    boto.get_object.assert_called_once_with(Bucket="b", Key="requirements.txt", VersionId="v1")


def test_sync_directory_downloads_and_prunes(tmp_path):
    client, _ = s3_client({"dags/a.py": b"A", "dags/sub/b.py": b"BB", "dags/": b""})
    local = tmp_path / "dags"
    local.mkdir()
    (local / "stale.py").write_text("old")

    assert client.sync_directory("b", "dags", local) == 2
    assert (local / "a.py").read_bytes() == b"A"
    assert (local / "sub" / "b.py").read_bytes() == b"BB"
    assert not (local / "stale.py").exists()
    assert int(os.stat(local / "a.py").st_mtime) == int(MTIME.timestamp())


def test_sync_directory_skips_unchanged(tmp_path):
    client, boto = s3_client({"dags/a.py": b"A"})
    local = tmp_path / "dags"
    client.sync_directory("b", "dags/", local)
    boto.get_object.reset_mock()

    assert client.sync_directory("b", "dags/", local) == 0
    boto.get_object.assert_not_called()


def test_sync_directory_rejects_escaping_keys(tmp_path):
    client, _ = s3_client({"dags/../../evil.py": b"x"})
    with pytest.raises(UnsafePathError):
        client.sync_directory("b", "dags", tmp_path / "work" / "dags")


def _plugins_zip():
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("hooks/custom_hook.py", "HOOK = 1\n")
    return buffer.getvalue()


def test_syncer_lays_out_environment(tmp_path):
    client, _ = s3_client(
        {
            "requirements.txt": b"apache-airflow-providers-snowflake\n",
            "startup.sh": b"#!/bin/sh\n",
            "plugins.zip": _plugins_zip(),
            "dags/etl.py": b"# dag\n",
        }
    )
    clone = tmp_path / ".aws-mwaa-local-runner"
    environment = {
        "SourceBucketArn": "arn:aws:s3:::airflow-dev",
        "RequirementsS3Path": "requirements.txt",
        "StartupScriptS3Path": "startup.sh",
        "PluginsS3Path": "plugins.zip",
        "DagS3Path": "dags",
    }

    synced = Syncer(client, clone, tmp_path).sync(environment)

    assert synced == ["requirements", "startup script", "plugins", "dags"]
    assert (clone / "requirements" / "requirements.txt").exists()
    assert (clone / "startup_script" / "startup.sh").exists()
    assert (clone / "plugins" / "hooks" / "custom_hook.py").read_text() == "HOOK = 1\n"
    assert (tmp_path / "dags" / "etl.py").read_bytes() == b"# dag\n"


def test_syncer_skips_unset_paths(tmp_path):
    client, boto = s3_client({})
    synced = Syncer(client, tmp_path / "clone", tmp_path).sync(
        {"SourceBucketArn": "arn:aws:s3:::airflow-dev"}
    )
    assert synced == []
    boto.get_object.assert_not_called()
