"""mwaacli variables: list Airflow variables."""

from __future__ import annotations

import argparse

from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("variables", help="Inspect Airflow variables")
    sub = parser.add_subparsers(dest="variables_command", required=True)

    list_parser = sub.add_parser("list", help="List variables")
    list_parser.add_argument("--env", help="Environment name")
    list_parser.add_argument("--limit", type=int, default=100)
    list_parser.add_argument("--offset", type=int, default=0)
    list_parser.set_defaults(func=run_list)


def run_list(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    query = {"limit": args.limit, "offset": args.offset}
    ctx.console.json(ctx.mwaa().rest_api_get(name, "/variables", query))
    return 0
