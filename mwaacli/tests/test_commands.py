"""Tests for the remote environment commands (MWAA client mocked)."""

import io
from unittest.mock import MagicMock, patch

import pytest

from mwaacli.aws.mwaa import CliResult
from mwaacli.cli.console import Console
from mwaacli.cli.context import CliContext
from mwaacli.commands import roles
from mwaacli.main import build_parser


@pytest.fixture
def console():
    return Console(io.StringIO(), io.StringIO(), color=False, interactive=False)


@pytest.fixture
def ctx(console):
    return CliContext(console=console, aws_config=MagicMock(), mwaa_client=MagicMock())


def invoke(ctx, argv):
    args = build_parser().parse_args(argv)
    return args.func(args, ctx)


def test_parse_actions():
    assert roles.parse_actions(["DAGs.can_read", "Website.can_read"]) == [
        {"action": {"name": "can_read"}, "resource": {"name": "DAGs"}},
        {"action": {"name": "can_read"}, "resource": {"name": "Website"}},
    ]
    with pytest.raises(ValueError):
        roles.parse_actions(["can_read"])


def test_roles_create_posts_body(ctx):
    assert invoke(
        ctx, ["roles", "create", "viewer", "--env", "dev", "--actions", "DAGs.can_read"]
    ) == 0
    ctx.mwaa_client.rest_api_post.assert_called_once_with(
        "dev",
        "/roles",
        {
            "name": "viewer",
            "actions": [{"action": {"name": "can_read"}, "resource": {"name": "DAGs"}}],
        },
    )


def test_dags_source_follows_file_token(ctx):
    ctx.mwaa_client.rest_api_get.side_effect = [
        {"dag_id": "etl", "file_token": "tok123"},
        {"content": "from airflow import DAG\n"},
    ]
    assert invoke(ctx, ["dags", "source", "etl", "--env", "dev"]) == 0
    assert ctx.mwaa_client.rest_api_get.call_args.args == ("dev", "/dagSources/tok123")
    assert "from airflow import DAG" in ctx.console.out.getvalue()


def test_run_joins_and_filters_command(ctx):
    ctx.mwaa_client.invoke_cli_command.return_value = CliResult(
        stdout="dag_a\nFutureWarning: soon\ndag_b", stderr=""
    )
    assert invoke(ctx, ["run", "--env", "dev", "dags", "list", "-o", "plain"]) == 0
    ctx.mwaa_client.invoke_cli_command.assert_called_once_with("dev", "dags list -o plain")
    assert ctx.console.out.getvalue() == "dag_a\ndag_b\n"


@patch("mwaacli.commands.sb.SecretsBackendClient.from_environment")
def test_sb_put_variable(mock_from_environment, ctx):
    assert invoke(ctx, ["sb", "--env", "dev", "put-variable", "region", "eu-west-1"]) == 0
    ctx.mwaa_client.get_environment.assert_called_once_with("dev")
    mock_from_environment.return_value.put_variable.assert_called_once_with(
        "region", "eu-west-1"
    )


@patch("mwaacli.commands.open_ui.open_browser")
def test_open_prints_url_when_asked(mock_browser, ctx):
    ctx.mwaa_client.create_web_login_token.return_value = ("tok", "host.example")
    assert invoke(ctx, ["open", "dev", "--print-url"]) == 0
    mock_browser.assert_not_called()
    assert "https://host.example/aws_mwaa/aws-console-sso?login=true#tok" in (
        ctx.console.out.getvalue()
    )
