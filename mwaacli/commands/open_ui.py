"""mwaacli open: open the Airflow UI of an environment in the browser."""

from __future__ import annotations

import argparse

from mwaacli.aws.mwaa import web_login_url
from mwaacli.cli.context import CliContext
from mwaacli.core.util import open_browser


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("open", help="Open the Airflow UI in the browser")
    parser.add_argument("name", nargs="?", help="Environment name (prompted when omitted)")
    parser.add_argument(
        "--print-url", action="store_true", help="Print the login URL instead of opening it"
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.name)
    token, hostname = ctx.mwaa().create_web_login_token(name)
    url = web_login_url(hostname, token)

    if args.print_url or not open_browser(url):
        ctx.console.echo(url)
        return 0
    ctx.console.success(f"Opened Airflow UI of {ctx.console.highlight(name)}")
    return 0
