"""
Airflow secrets backends of an MWAA environment.

The environment's `secrets.backend` option names one of a closed set of
backend classes; each kind maps to an adapter exposing list/get/put over the
matching AWS service.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Mapping

from botocore.exceptions import ClientError

from mwaacli.aws.session import AWSConfig
from mwaacli.core.exceptions import SecretsBackendError

logger = logging.getLogger(__name__)


class BackendKind(enum.Enum):
    SECRETS_MANAGER = "airflow.providers.amazon.aws.secrets.secrets_manager.SecretsManagerBackend"
    PARAMETER_STORE = (
        "airflow.providers.amazon.aws.secrets.systems_manager.SystemsManagerParameterStoreBackend"
    )

    @classmethod
    def from_class_path(cls, class_path: str) -> "BackendKind":
        for kind in cls:
            if kind.value == class_path:
                return kind
        raise SecretsBackendError(f"unsupported secrets backend: {class_path}")


class SecretsManagerBackend:
    def __init__(self, client) -> None:
        self.client = client

    def list_secrets(self, prefix: str) -> list[str]:
        names: list[str] = []
        paginator = self.client.get_paginator("list_secrets")
        for page in paginator.paginate(Filters=[{"Key": "name", "Values": [prefix]}]):
            names.extend(
                s["Name"] for s in page.get("SecretList", []) if s["Name"].startswith(prefix)
            )
        return names

    def get_secret_value(self, secret_id: str) -> str:
        try:
            return self.client.get_secret_value(SecretId=secret_id)["SecretString"]
        except ClientError as exc:
            raise SecretsBackendError(f"failed to read secret {secret_id}: {exc}") from exc

    def put_secret_value(self, secret_id: str, value: str) -> None:
        try:
            self.client.put_secret_value(SecretId=secret_id, SecretString=value)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                raise SecretsBackendError(f"failed to write secret {secret_id}: {exc}") from exc
            self.client.create_secret(Name=secret_id, SecretString=value)


class ParameterStoreBackend:
    def __init__(self, client) -> None:
        self.client = client

    def list_secrets(self, prefix: str) -> list[str]:
        names: list[str] = []
        paginator = self.client.get_paginator("describe_parameters")
        filters = [{"Key": "Name", "Option": "BeginsWith", "Values": [prefix]}]
        for page in paginator.paginate(ParameterFilters=filters):
            names.extend(p["Name"] for p in page.get("Parameters", []))
        return names

    def get_secret_value(self, secret_id: str) -> str:
        try:
            response = self.client.get_parameter(Name=secret_id, WithDecryption=True)
        except ClientError as exc:
            raise SecretsBackendError(f"failed to read parameter {secret_id}: {exc}") from exc
        return response["Parameter"]["Value"]

    def put_secret_value(self, secret_id: str, value: str) -> None:
        try:
            self.client.put_parameter(
                Name=secret_id, Value=value, Type="SecureString", Overwrite=True
            )
        except ClientError as exc:
            raise SecretsBackendError(f"failed to write parameter {secret_id}: {exc}") from exc


_DEFAULT_PREFIXES = {
    BackendKind.SECRETS_MANAGER: ("airflow/connections", "airflow/variables"),
    BackendKind.PARAMETER_STORE: ("/airflow/connections", "/airflow/variables"),
}


@dataclass(frozen=True)
class BackendKwargs:
    connections_prefix: str | None = None
    connections_lookup_pattern: str | None = None
    variables_prefix: str | None = None
    variables_lookup_pattern: str | None = None
    sep: str = "/"

    @classmethod
    def from_json(cls, raw: str | None) -> "BackendKwargs":
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SecretsBackendError(f"invalid secrets.backend_kwargs: {exc}") from exc
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


class SecretsBackendClient:
    """Connections and variables stored in an environment's secrets backend."""

    def __init__(self, kind: BackendKind, backend, kwargs: BackendKwargs | None = None) -> None:
        self.kind = kind
        self.backend = backend
        self.kwargs = kwargs or BackendKwargs()
        default_connections, default_variables = _DEFAULT_PREFIXES[kind]
        self.connections_prefix = self.kwargs.connections_prefix or default_connections
        self.variables_prefix = self.kwargs.variables_prefix or default_variables

    @classmethod
    def from_environment(
        cls, aws_config: AWSConfig, environment: Mapping
    ) -> "SecretsBackendClient":
        options = environment.get("AirflowConfigurationOptions") or {}
        class_path = options.get("secrets.backend")
        if not class_path:
            raise SecretsBackendError(
                f"environment {environment.get('Name', '')} has no secrets backend configured"
            )
        kind = BackendKind.from_class_path(class_path)
        kwargs = BackendKwargs.from_json(options.get("secrets.backend_kwargs"))
        if kind is BackendKind.SECRETS_MANAGER:
            backend = SecretsManagerBackend(aws_config.client("secretsmanager"))
        else:
            backend = ParameterStoreBackend(aws_config.client("ssm"))
        return cls(kind, backend, kwargs)

    def _list(self, prefix: str, pattern: str | None) -> list[str]:
        lead = prefix + self.kwargs.sep
        names = self.backend.list_secrets(lead)
        ids = [name[len(lead):] for name in names if name.startswith(lead)]
        if pattern:
            compiled = re.compile(pattern)
            ids = [i for i in ids if compiled.match(i)]
        return sorted(ids)

    def _full_id(self, prefix: str, key: str) -> str:
        return f"{prefix}{self.kwargs.sep}{key}"

    def list_connections(self) -> list[str]:
        return self._list(self.connections_prefix, self.kwargs.connections_lookup_pattern)

    def list_variables(self) -> list[str]:
        return self._list(self.variables_prefix, self.kwargs.variables_lookup_pattern)

    def get_connection(self, conn_id: str) -> str:
        return self.backend.get_secret_value(self._full_id(self.connections_prefix, conn_id))

    def get_variable(self, key: str) -> str:
        return self.backend.get_secret_value(self._full_id(self.variables_prefix, key))

    def put_connection(self, conn_id: str, value: str) -> None:
        self.backend.put_secret_value(self._full_id(self.connections_prefix, conn_id), value)

    def put_variable(self, key: str, value: str) -> None:
        self.backend.put_secret_value(self._full_id(self.variables_prefix, key), value)
