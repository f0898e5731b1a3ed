"""Tests for the CLI entry point and command handlers."""

import io
from argparse import Namespace
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from mwaacli.cli.console import Console
from mwaacli.cli.context import CliContext
from mwaacli.commands import dags, logs
from mwaacli.core.exceptions import EnvironmentNotFoundError
from mwaacli.main import build_parser, main


@pytest.fixture
def console():
    return Console(io.StringIO(), io.StringIO(), color=False, interactive=False)


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MWAACLI_ENV_FILE", raising=False)
    return tmp_path


@pytest.fixture
def engine():
    engine = MagicMock()
    with patch("mwaacli.commands.local.ContainerEngine.from_env", return_value=engine):
        yield engine


def test_no_command_prints_help(console):
    assert main([], console=console) == 2


def test_local_stop_with_nothing_running_succeeds(console, engine):
    engine.stop_containers_by_label.return_value = 0

    assert main(["local", "stop"], console=console) == 0
    engine.stop_containers_by_label.assert_called_once_with(
        "github.com.hupe1980.mwaacli=aws-mwaa-local-runner-2_10_3"
    )
    assert "No running local runner containers found" in console.out.getvalue()


def test_local_stop_uses_requested_version(console, engine):
    engine.stop_containers_by_label.return_value = 2

    assert main(["local", "--version", "v2.9.2", "stop"], console=console) == 0
    engine.stop_containers_by_label.assert_called_once_with(
        "github.com.hupe1980.mwaacli=aws-mwaa-local-runner-2_9_2"
    )
    assert "Stopped 2 container(s)" in console.out.getvalue()


def test_local_version_after_subcommand(console, engine):
    engine.stop_containers_by_label.return_value = 0

    assert main(["local", "stop", "--version", "v2.9.2"], console=console) == 0
    engine.stop_containers_by_label.assert_called_once_with(
        "github.com.hupe1980.mwaacli=aws-mwaa-local-runner-2_9_2"
    )


@pytest.mark.parametrize(
    "argv",
    [
        ["local", "init", "--version", "v2.8.1"],
        ["local", "--version", "v2.8.1", "init"],
    ],
)
def test_local_init_accepts_version(argv):
    args = build_parser().parse_args(argv)
    assert args.local_command == "init"
    assert args.airflow_version == "v2.8.1"


def test_local_init_version_defaults(monkeypatch):
    monkeypatch.delenv("MWAACLI_VERSION", raising=False)
    assert build_parser().parse_args(["local", "init"]).airflow_version == "v2.10.3"


def test_local_start_refuses_when_already_running(console, engine):
    engine.list_containers_by_label.return_value = ["abc"]

    assert main(["local", "start", "--no-browser"], console=console) == 1
    assert "already running" in console.err.getvalue()
    engine.run_container.assert_not_called()
    engine.stop_containers_by_label.assert_not_called()


@patch("mwaacli.commands.local.open_browser")
@patch("mwaacli.commands.local.Runner")
def test_local_start_opens_browser(mock_runner, mock_browser, console):
    mock_runner.return_value.start.return_value = "web-id"
    with patch("mwaacli.commands.local.ContainerEngine.from_env"):
        assert main(["local", "start", "--port", "8081", "--wait", "0"], console=console) == 0

    options = mock_runner.return_value.start.call_args.args[0]
    assert options.port == 8081
    assert options.wait_timeout == 0
    mock_browser.assert_called_once_with("http://localhost:8081")
    mock_runner.return_value.serve.assert_not_called()


def test_env_file_provides_defaults(console, engine, workdir, monkeypatch):
    monkeypatch.delenv("MWAACLI_VERSION", raising=False)
    (workdir / ".mwaacli.env").write_text("MWAACLI_VERSION=v2.8.1\n")
    engine.stop_containers_by_label.return_value = 0
    try:
        assert main(["local", "stop"], console=console) == 0
    finally:
        monkeypatch.delenv("MWAACLI_VERSION", raising=False)
    engine.stop_containers_by_label.assert_called_once_with(
        "github.com.hupe1980.mwaacli=aws-mwaa-local-runner-2_8_1"
    )


def test_keyboard_interrupt_exits_130(console, engine):
    engine.stop_containers_by_label.side_effect = KeyboardInterrupt
    assert main(["local", "stop"], console=console) == 130


def test_invalid_time_range_exits_1(console):
    argv = ["logs", "--start-time", "2024-01-02T00:00:00Z", "--end-time", "2024-01-01T00:00:00Z"]
    assert main(argv, console=console) == 1
    assert "start time must be before end time" in console.err.getvalue()


class TestResolveEnvironment:
    def make_ctx(self, console, names):
        mwaa = MagicMock()
        mwaa.list_environments.return_value = names
        return CliContext(console=console, mwaa_client=mwaa)

    def test_explicit_name_skips_lookup(self, console):
        ctx = self.make_ctx(console, [])
        assert ctx.resolve_environment("prod") == "prod"
        ctx.mwaa_client.list_environments.assert_not_called()

    def test_single_environment_is_used(self, console):
        assert self.make_ctx(console, ["dev"]).resolve_environment(None) == "dev"

    def test_no_environments(self, console):
        with pytest.raises(EnvironmentNotFoundError):
            self.make_ctx(console, []).resolve_environment(None)

    def test_several_environments_need_a_choice(self, console):
        with pytest.raises(EnvironmentNotFoundError):
            self.make_ctx(console, ["dev", "prod"]).resolve_environment(None)

    @patch("mwaacli.cli.console.questionary.select")
    def test_interactive_choice(self, mock_select):
        mock_select.return_value.ask.return_value = "prod"
        console = Console(io.StringIO(), io.StringIO(), color=False, interactive=True)
        assert self.make_ctx(console, ["prod", "dev"]).resolve_environment(None) == "prod"
        assert mock_select.call_args.kwargs["choices"] == ["dev", "prod"]


def test_dags_list_query():
    args = build_parser().parse_args(
        ["dags", "list", "--limit", "5", "--tags", "etl", "--paused", "--no-only-active"]
    )
    assert dags.build_list_query(args) == {
        "limit": 5,
        "offset": 0,
        "only_active": False,
        "tags": ["etl"],
        "paused": True,
    }


def test_logs_default_window_is_last_hour():
    now = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
    args = Namespace(start_time=None, end_time=None, filter_pattern="")
    log_filter = logs.build_filter(args, now)
    assert log_filter.start_time == datetime(2024, 1, 1, 11, tzinfo=timezone.utc)
    assert log_filter.end_time == now


def test_logs_ignore_flags_collect_types():
    args = build_parser().parse_args(["logs", "--ignore-task", "--ignore-worker"])
    assert args.ignored == ["task", "worker"]


class TestEnvironmentsDelete:
    def test_requires_confirmation(self, console):
        mwaa = MagicMock()
        ctx = CliContext(console=console, mwaa_client=mwaa)
        args = build_parser().parse_args(["environments", "delete", "dev"])

        assert args.func(args, ctx) == 1
        mwaa.delete_environment.assert_not_called()
        assert "Delete cancelled." in console.out.getvalue()

    def test_yes_skips_prompt(self, console):
        mwaa = MagicMock()
        ctx = CliContext(console=console, mwaa_client=mwaa)
        args = build_parser().parse_args(["environments", "delete", "dev", "--yes"])

        assert args.func(args, ctx) == 0
        mwaa.delete_environment.assert_called_once_with("dev")
