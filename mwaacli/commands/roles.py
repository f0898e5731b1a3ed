"""mwaacli roles: manage Airflow RBAC roles."""

from __future__ import annotations

import argparse

from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("roles", help="Manage Airflow roles")
    sub = parser.add_subparsers(dest="roles_command", required=True)

    list_parser = sub.add_parser("list", help="List roles")
    list_parser.add_argument("--env", help="Environment name")
    list_parser.set_defaults(func=run_list)

    get_parser = sub.add_parser("get", help="Show a role")
    get_parser.add_argument("role_name")
    get_parser.add_argument("--env", help="Environment name")
    get_parser.set_defaults(func=run_get)

    create_parser = sub.add_parser("create", help="Create a role")
    create_parser.add_argument("role_name")
    create_parser.add_argument("--env", help="Environment name")
    create_parser.add_argument(
        "--actions",
        nargs="+",
        required=True,
        help="Permissions as resource.action, e.g. DAGs.can_read",
    )
    create_parser.set_defaults(func=run_create)


def parse_actions(actions: list[str]) -> list[dict]:
    permissions = []
    for entry in actions:
        resource, sep, action = entry.partition(".")
        if not sep or not resource or not action:
            raise ValueError(f"invalid action {entry!r}: expected resource.action")
        permissions.append({"action": {"name": action}, "resource": {"name": resource}})
    return permissions


def run_list(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    ctx.console.json(ctx.mwaa().rest_api_get(name, "/roles"))
    return 0


def run_get(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    ctx.console.json(ctx.mwaa().rest_api_get(name, f"/roles/{args.role_name}"))
    return 0


def run_create(args: argparse.Namespace, ctx: CliContext) -> int:
    body = {"name": args.role_name, "actions": parse_actions(args.actions)}
    name = ctx.resolve_environment(args.env)
    ctx.console.json(ctx.mwaa().rest_api_post(name, "/roles", body))
    ctx.console.success(f"Role {ctx.console.highlight(args.role_name)} created")
    return 0
