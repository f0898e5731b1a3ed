"""MWAA control plane: environments, tokens, the Airflow REST API and CLI."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import requests
from botocore.exceptions import ClientError

from mwaacli.aws.session import AWSConfig
from mwaacli.core.exceptions import RestApiError

logger = logging.getLogger(__name__)

# Lines the Airflow CLI emits on every call that carry no information.
CLI_NOISE = (
    "RemovedInAirflow3Warning",
    "FutureWarning",
    "UserWarning",
    "CloudWatch logging is disabled",
)

_REST_API_ERRORS = ("RestApiClientException", "RestApiServerException")


@dataclass(frozen=True)
class CliResult:
    stdout: str
    stderr: str


def filter_cli_output(text: str) -> str:
    kept = [line for line in text.splitlines() if not any(noise in line for noise in CLI_NOISE)]
    return "\n".join(kept)


def web_login_url(hostname: str, token: str) -> str:
    return f"https://{hostname}/aws_mwaa/aws-console-sso?login=true#{token}"


class MwaaClient:
    def __init__(
        self,
        aws_config: AWSConfig | None = None,
        *,
        client=None,
        http: requests.Session | None = None,
    ) -> None:
        if client is None:
            if aws_config is None:
                raise ValueError("either aws_config or client is required")
            client = aws_config.client("mwaa")
        self.client = client
        self.http = http or requests.Session()

    def list_environments(self) -> list[str]:
        names: list[str] = []
        for page in self.client.get_paginator("list_environments").paginate():
            names.extend(page.get("Environments", []))
        return names

    def get_environment(self, name: str) -> dict:
        return self.client.get_environment(Name=name)["Environment"]

    def delete_environment(self, name: str) -> None:
        self.client.delete_environment(Name=name)

    def create_cli_token(self, name: str) -> tuple[str, str]:
        response = self.client.create_cli_token(Name=name)
        return response["CliToken"], response["WebServerHostname"]

    def create_web_login_token(self, name: str) -> tuple[str, str]:
        response = self.client.create_web_login_token(Name=name)
        return response["WebToken"], response["WebServerHostname"]

    def invoke_rest_api(
        self,
        name: str,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Call the environment's Airflow REST API through the control plane."""
        kwargs: dict[str, Any] = {"Name": name, "Method": method, "Path": path}
        if query:
            kwargs["QueryParameters"] = query
        if body is not None:
            kwargs["Body"] = body

        logger.debug("%s %s on %s", method, path, name)
        try:
            response = self.client.invoke_rest_api(**kwargs)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            if error.get("Code") not in _REST_API_ERRORS:
                raise
            payload = exc.response.get("RestApiResponse") or {}
            status = exc.response.get("RestApiStatusCode") or exc.response.get(
                "ResponseMetadata", {}
            ).get("HTTPStatusCode", 0)
            raise RestApiError(
                payload.get("title", error.get("Code", "RestApiError")),
                payload.get("detail", error.get("Message", "")),
                int(status),
            ) from exc
        return response.get("RestApiResponse")

    def rest_api_get(self, name: str, path: str, query: dict[str, Any] | None = None) -> Any:
        return self.invoke_rest_api(name, "GET", path, query=query)

    def rest_api_post(self, name: str, path: str, body: dict[str, Any]) -> Any:
        return self.invoke_rest_api(name, "POST", path, body=body)

    def invoke_cli_command(self, name: str, command: str, timeout: float = 60.0) -> CliResult:
        """Run an Airflow CLI command on the environment's webserver."""
        token, hostname = self.create_cli_token(name)
        response = self.http.post(
            f"https://{hostname}/aws_mwaa/cli",
            data=command,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "text/plain"},
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
        return CliResult(
            stdout=base64.b64decode(payload.get("stdout", "")).decode("utf-8", errors="replace"),
            stderr=base64.b64decode(payload.get("stderr", "")).decode("utf-8", errors="replace"),
        )
