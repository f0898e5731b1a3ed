"""mwaacli sb: connections and variables stored in the secrets backend."""

from __future__ import annotations

import argparse

from mwaacli.aws.secretsbackend import SecretsBackendClient
from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("sb", help="Read the environment's secrets backend")
    parser.add_argument("--env", help="Environment name")
    sub = parser.add_subparsers(dest="sb_command", required=True)

    sub.add_parser("list-connections", help="List connection ids").set_defaults(
        func=run_list_connections
    )
    sub.add_parser("list-variables", help="List variable keys").set_defaults(
        func=run_list_variables
    )

    conn_parser = sub.add_parser("get-connection", help="Print a connection")
    conn_parser.add_argument("conn_id")
    conn_parser.set_defaults(func=run_get_connection)

    var_parser = sub.add_parser("get-variable", help="Print a variable")
    var_parser.add_argument("key")
    var_parser.set_defaults(func=run_get_variable)

    put_conn_parser = sub.add_parser("put-connection", help="Create or update a connection")
    put_conn_parser.add_argument("conn_id")
    put_conn_parser.add_argument("value", help="Connection URI or JSON")
    put_conn_parser.set_defaults(func=run_put_connection)

    put_var_parser = sub.add_parser("put-variable", help="Create or update a variable")
    put_var_parser.add_argument("key")
    put_var_parser.add_argument("value")
    put_var_parser.set_defaults(func=run_put_variable)


def _client(args: argparse.Namespace, ctx: CliContext) -> SecretsBackendClient:
    name = ctx.resolve_environment(args.env)
    environment = ctx.mwaa().get_environment(name)
    return SecretsBackendClient.from_environment(ctx.aws(), environment)


def run_list_connections(args: argparse.Namespace, ctx: CliContext) -> int:
    for conn_id in _client(args, ctx).list_connections():
        ctx.console.echo(conn_id)
    return 0


def run_list_variables(args: argparse.Namespace, ctx: CliContext) -> int:
    for key in _client(args, ctx).list_variables():
        ctx.console.echo(key)
    return 0


def run_get_connection(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.console.echo(_client(args, ctx).get_connection(args.conn_id))
    return 0


def run_get_variable(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.console.echo(_client(args, ctx).get_variable(args.key))
    return 0


def run_put_connection(args: argparse.Namespace, ctx: CliContext) -> int:
    _client(args, ctx).put_connection(args.conn_id, args.value)
    ctx.console.success(f"Connection {ctx.console.highlight(args.conn_id)} saved")
    return 0


def run_put_variable(args: argparse.Namespace, ctx: CliContext) -> int:
    _client(args, ctx).put_variable(args.key, args.value)
    ctx.console.success(f"Variable {ctx.console.highlight(args.key)} saved")
    return 0
