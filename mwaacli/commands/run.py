"""mwaacli run: execute an Airflow CLI command on an environment."""

from __future__ import annotations

import argparse
import shlex

from mwaacli.aws.mwaa import filter_cli_output
from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "run",
        help="Run an Airflow CLI command, e.g. mwaacli run dags list",
    )
    parser.add_argument("--env", help="Environment name")
    parser.add_argument(
        "--raw", action="store_true", help="Do not filter warnings from the command output"
    )
    parser.add_argument("airflow_command", nargs=argparse.REMAINDER, help="Airflow CLI command")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, ctx: CliContext) -> int:
    if not args.airflow_command:
        raise ValueError("no Airflow command given")
    command = shlex.join(args.airflow_command)
    name = ctx.resolve_environment(args.env)

    result = ctx.mwaa().invoke_cli_command(name, command)
    stdout, stderr = result.stdout, result.stderr
    if not args.raw:
        stdout, stderr = filter_cli_output(stdout), filter_cli_output(stderr)

    if stdout:
        ctx.console.echo(stdout)
    if stderr:
        print(stderr, file=ctx.console.err)
    return 0
