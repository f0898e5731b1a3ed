"""Unit tests for the AWS clients (boto3 clients mocked)."""

import base64
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from mwaacli.aws.cloudwatch import (
    CloudWatchLogsClient,
    LogFilter,
    extract_log_group_arns,
    extract_log_group_name,
)
from mwaacli.aws.mwaa import MwaaClient, filter_cli_output, web_login_url
from mwaacli.aws.secretsbackend import (
    BackendKind,
    BackendKwargs,
    ParameterStoreBackend,
    SecretsBackendClient,
    SecretsManagerBackend,
)
from mwaacli.aws.session import AWSConfig, resolve_credentials
from mwaacli.core.exceptions import (
    InvalidARNError,
    MwaaCliError,
    RestApiError,
    SecretsBackendError,
)

GROUP_ARN = "arn:aws:logs:eu-west-1:123456789012:log-group"


def client_error(code, message="", **extra):
    response = {"Error": {"Code": code, "Message": message}}
    response.update(extra)
    return ClientError(response, "Operation")


class TestMwaaClient:
    def test_list_environments_follows_pages(self):
        boto = MagicMock()
        boto.get_paginator.return_value.paginate.return_value = [
            {"Environments": ["dev", "staging"]},
            {"Environments": ["prod"]},
        ]
        assert MwaaClient(client=boto).list_environments() == ["dev", "staging", "prod"]

    def test_invoke_rest_api_returns_payload(self):
        boto = MagicMock()
        boto.invoke_rest_api.return_value = {"RestApiResponse": {"dags": []}}

        result = MwaaClient(client=boto).rest_api_get("dev", "/dags", {"limit": 10})

        assert result == {"dags": []}
        boto.invoke_rest_api.assert_called_once_with(
            Name="dev", Method="GET", Path="/dags", QueryParameters={"limit": 10}
        )

    def test_rest_api_failure_carries_status(self):
        boto = MagicMock()
        boto.invoke_rest_api.side_effect = client_error(
            "RestApiClientException",
            "client error",
            RestApiResponse={"title": "DAG not found", "detail": "DAG with dag_id x not found"},
            RestApiStatusCode=404,
        )

        with pytest.raises(RestApiError) as excinfo:
            MwaaClient(client=boto).rest_api_get("dev", "/dags/x")
        assert excinfo.value.status_code == 404
        assert str(excinfo.value) == (
            "DAG not found: DAG with dag_id x not found (HTTP StatusCode 404)"
        )

    def test_other_client_errors_propagate(self):
        boto = MagicMock()
        boto.invoke_rest_api.side_effect = client_error("AccessDeniedException")
        with pytest.raises(ClientError):
            MwaaClient(client=boto).rest_api_get("dev", "/dags")

    def test_invoke_cli_command_decodes_output(self):
        boto = MagicMock()
        boto.create_cli_token.return_value = {
            "CliToken": "tok",
            "WebServerHostname": "abc.airflow.eu-west-1.on.aws",
        }
        http = MagicMock()
        http.post.return_value.json.return_value = {
            "stdout": base64.b64encode(b"2.10.3\n").decode(),
            "stderr": base64.b64encode(b"").decode(),
        }

        result = MwaaClient(client=boto, http=http).invoke_cli_command("dev", "version")

        assert result.stdout == "2.10.3\n"
        args, kwargs = http.post.call_args
        assert args == ("https://abc.airflow.eu-west-1.on.aws/aws_mwaa/cli",)
        assert kwargs["data"] == "version"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_filter_cli_output_drops_noise(self):
        text = "line one\n/x.py:1 RemovedInAirflow3Warning: old\nline two"
        assert filter_cli_output(text) == "line one\nline two"

    def test_web_login_url(self):
        url = web_login_url("host", "tok")
        assert url == "https://host/aws_mwaa/aws-console-sso?login=true#tok"


class TestCloudWatch:
    LOGGING = {
        "SchedulerLogs": {
            "Enabled": True,
            "CloudWatchLogGroupArn": f"{GROUP_ARN}:airflow-dev-Scheduler:*",
        },
        "TaskLogs": {
            "Enabled": True,
            "CloudWatchLogGroupArn": f"{GROUP_ARN}:airflow-dev-Task",
        },
        "WorkerLogs": {"Enabled": False, "CloudWatchLogGroupArn": "arn:ignored"},
    }

    def test_extract_log_group_name(self):
        arn = "arn:aws:logs:eu-west-1:123456789012:log-group:airflow-dev-Scheduler:*"
        assert extract_log_group_name(arn) == "airflow-dev-Scheduler"

    def test_only_enabled_and_not_ignored_groups(self):
        arns = extract_log_group_arns(self.LOGGING, ignored=["task"])
        assert [extract_log_group_name(a) for a in arns] == ["airflow-dev-Scheduler"]

    def test_fetch_logs_merges_and_sorts(self):
        boto = MagicMock()
        boto.get_paginator.return_value.paginate.side_effect = [
            [{"events": [{"timestamp": 3000, "message": "sched late"}]}],
            [{"events": [{"timestamp": 1000, "message": "task early"}]}],
        ]
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 1, 1, tzinfo=timezone.utc)

        events = CloudWatchLogsClient(client=boto).fetch_logs(
            extract_log_group_arns(self.LOGGING), LogFilter(start, end, "ERROR")
        )

        assert [e.message for e in events] == ["task early", "sched late"]
        first_call = boto.get_paginator.return_value.paginate.call_args_list[0]
        assert first_call.kwargs == {
            "logGroupName": "airflow-dev-Scheduler",
            "startTime": 1704067200000,
            "endTime": 1704070800000,
            "filterPattern": "ERROR",
        }


class TestCredentials:
    def test_assume_role(self):
        session = MagicMock()
        session.region_name = "eu-west-1"
        sts = session.client.return_value
        sts.assume_role.return_value = {
            "Credentials": {
                "AccessKeyId": "ASIA",
                "SecretAccessKey": "secret",
                "SessionToken": "token",
            }
        }

        creds = resolve_credentials(
            AWSConfig(session=session), "arn:aws:iam::123456789012:role/mwaa-local"
        )

        session.client.assert_called_once_with("sts")
        sts.assume_role.assert_called_once_with(
            RoleArn="arn:aws:iam::123456789012:role/mwaa-local", RoleSessionName="mwaacli"
        )
        assert creds.access_key_id == "ASIA"
        assert creds.session_token == "token"
        assert creds.region == "eu-west-1"

    def test_invalid_role_arn_is_rejected_before_calling_sts(self):
        session = MagicMock()
        with pytest.raises(InvalidARNError):
            resolve_credentials(AWSConfig(session=session), "mwaa-local")
        session.client.assert_not_called()

    def test_session_credentials(self):
        session = MagicMock()
        session.region_name = "us-east-1"
        frozen = session.get_credentials.return_value.get_frozen_credentials.return_value
        frozen.access_key = "AKIA"
        frozen.secret_key = "secret"
        frozen.token = None

        creds = resolve_credentials(AWSConfig(session=session))
        assert (creds.access_key_id, creds.session_token, creds.region) == ("AKIA", "", "us-east-1")

    def test_no_credentials(self):
        session = MagicMock()
        session.get_credentials.return_value = None
        with pytest.raises(MwaaCliError):
            resolve_credentials(AWSConfig(session=session))


class TestSecretsBackend:
    def environment(self, backend, kwargs=None):
        options = {"secrets.backend": backend}
        if kwargs is not None:
            options["secrets.backend_kwargs"] = json.dumps(kwargs)
        return {"Name": "dev", "AirflowConfigurationOptions": options}

    def test_dispatch_by_class_path(self):
        aws = MagicMock()
        client = SecretsBackendClient.from_environment(
            aws, self.environment(BackendKind.PARAMETER_STORE.value)
        )
        assert client.kind is BackendKind.PARAMETER_STORE
        assert isinstance(client.backend, ParameterStoreBackend)
        aws.client.assert_called_once_with("ssm")

        client = SecretsBackendClient.from_environment(
            aws, self.environment(BackendKind.SECRETS_MANAGER.value)
        )
        assert isinstance(client.backend, SecretsManagerBackend)

    def test_unknown_backend_is_rejected(self):
        with pytest.raises(SecretsBackendError):
            SecretsBackendClient.from_environment(
                MagicMock(), self.environment("my.custom.Backend")
            )

    def test_missing_backend_is_rejected(self):
        with pytest.raises(SecretsBackendError):
            SecretsBackendClient.from_environment(MagicMock(), {"Name": "dev"})

    def test_list_strips_prefix_and_applies_pattern(self):
        backend = MagicMock()
        backend.list_secrets.return_value = [
            "mwaa/conns/aws_default",
            "mwaa/conns/postgres_prod",
            "mwaa/conns/postgres_dev",
        ]
        client = SecretsBackendClient(
            BackendKind.SECRETS_MANAGER,
            backend,
            BackendKwargs(connections_prefix="mwaa/conns", connections_lookup_pattern="^postgres"),
        )

        assert client.list_connections() == ["postgres_dev", "postgres_prod"]
        backend.list_secrets.assert_called_once_with("mwaa/conns/")

    def test_default_prefixes(self):
        backend = MagicMock()
        client = SecretsBackendClient(BackendKind.PARAMETER_STORE, backend)
        client.get_variable("env")
        backend.get_secret_value.assert_called_once_with("/airflow/variables/env")

    def test_put_creates_missing_secret(self):
        boto = MagicMock()
        boto.put_secret_value.side_effect = client_error("ResourceNotFoundException")
        SecretsManagerBackend(boto).put_secret_value("airflow/variables/env", "prod")
        boto.create_secret.assert_called_once_with(
            Name="airflow/variables/env", SecretString="prod"
        )

    def test_invalid_backend_kwargs(self):
        with pytest.raises(SecretsBackendError):
            BackendKwargs.from_json("{not json")
