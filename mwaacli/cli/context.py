"""Per-invocation context handed to every command: console plus lazily built AWS clients."""

from __future__ import annotations

from dataclasses import dataclass

from mwaacli.aws.mwaa import MwaaClient
from mwaacli.aws.session import AWSConfig, load_config
from mwaacli.cli.console import Console
from mwaacli.core.exceptions import EnvironmentNotFoundError


@dataclass
class CliContext:
    console: Console
    profile: str | None = None
    region: str | None = None
    aws_config: AWSConfig | None = None
    mwaa_client: MwaaClient | None = None

    def aws(self) -> AWSConfig:
        if self.aws_config is None:
            self.aws_config = load_config(self.profile, self.region)
        return self.aws_config

    def mwaa(self) -> MwaaClient:
        if self.mwaa_client is None:
            self.mwaa_client = MwaaClient(self.aws())
        return self.mwaa_client

    def resolve_environment(self, name: str | None) -> str:
        """Use name when given; otherwise the only environment, or ask the user."""
        if name:
            return name
        environments = self.mwaa().list_environments()
        if not environments:
            raise EnvironmentNotFoundError("no environments found")
        if len(environments) == 1:
            return environments[0]
        choice = self.console.select("Select an MWAA environment:", sorted(environments))
        if not choice:
            raise EnvironmentNotFoundError("no environment selected; pass --env")
        return choice
