"""AWS session handling and credential resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import boto3

from mwaacli.core.exceptions import MwaaCliError
from mwaacli.core.util import validate_arn
from mwaacli.local.envs import AWSCredentials

logger = logging.getLogger(__name__)

ROLE_SESSION_NAME = "mwaacli"


@dataclass(frozen=True)
class AWSConfig:
    session: boto3.Session
    profile: str | None = None

    @property
    def region(self) -> str:
        return self.session.region_name or ""

    def client(self, service: str):
        return self.session.client(service)


def load_config(profile: str | None = None, region: str | None = None) -> AWSConfig:
    session = boto3.Session(profile_name=profile or None, region_name=region or None)
    return AWSConfig(session=session, profile=profile)


def resolve_credentials(aws_config: AWSConfig, role_arn: str | None = None) -> AWSCredentials:
    """Credentials for the local runner: an assumed role, or the session's own."""
    if role_arn:
        validate_arn(role_arn)
        logger.info("Assuming role %s", role_arn)
        response = aws_config.client("sts").assume_role(
            RoleArn=role_arn, RoleSessionName=ROLE_SESSION_NAME
        )
        creds = response["Credentials"]
        return AWSCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken", ""),
            region=aws_config.region,
        )

    credentials = aws_config.session.get_credentials()
    if credentials is None:
        raise MwaaCliError("no AWS credentials found; configure a profile or environment variables")
    frozen = credentials.get_frozen_credentials()
    return AWSCredentials(
        access_key_id=frozen.access_key,
        secret_access_key=frozen.secret_key,
        session_token=frozen.token or "",
        region=aws_config.region,
    )
