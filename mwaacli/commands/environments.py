"""mwaacli environments: list, inspect and delete MWAA environments."""

from __future__ import annotations

import argparse
import logging

from mwaacli.cli.context import CliContext

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("environments", help="List and inspect MWAA environments")
    sub = parser.add_subparsers(dest="environments_command", required=True)

    list_parser = sub.add_parser("list", help="List environment names")
    list_parser.set_defaults(func=run_list)

    get_parser = sub.add_parser("get", help="Show the details of an environment")
    get_parser.add_argument("name", nargs="?", help="Environment name (prompted when omitted)")
    get_parser.set_defaults(func=run_get)

    delete_parser = sub.add_parser("delete", help="Delete an environment")
    delete_parser.add_argument("name", help="Environment name")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    delete_parser.set_defaults(func=run_delete)


def run_list(args: argparse.Namespace, ctx: CliContext) -> int:
    environments = ctx.mwaa().list_environments()
    if not environments:
        ctx.console.info("No environments found.")
        return 0
    for name in environments:
        ctx.console.echo(name)
    return 0


def run_get(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.name)
    ctx.console.json(ctx.mwaa().get_environment(name))
    return 0


def run_delete(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.console.warning(f"This will PERMANENTLY DELETE the environment {args.name}.")
    if args.yes:
        logger.info("Skipping confirmation (--yes).")
    elif not ctx.console.confirm("Are you sure you want to proceed?"):
        ctx.console.info("Delete cancelled.")
        return 1

    ctx.mwaa().delete_environment(args.name)
    ctx.console.success(f"Deletion of {ctx.console.highlight(args.name)} requested")
    return 0
