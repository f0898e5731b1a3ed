"""mwaacli dags: query DAGs through the environment's Airflow REST API."""

from __future__ import annotations

import argparse
from typing import Any

from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("dags", help="Query DAGs of an environment")
    sub = parser.add_subparsers(dest="dags_command", required=True)

    list_parser = sub.add_parser("list", help="List DAGs")
    list_parser.add_argument("--env", help="Environment name")
    list_parser.add_argument("--limit", type=int, default=100, help="Maximum number of DAGs")
    list_parser.add_argument("--offset", type=int, default=0, help="Number of DAGs to skip")
    list_parser.add_argument("--order-by", help="Field to order by (prefix with - for descending)")
    list_parser.add_argument("--tags", action="append", default=[], help="Only DAGs with this tag")
    list_parser.add_argument(
        "--only-active", action=argparse.BooleanOptionalAction, default=True,
        help="Only active DAGs (default: true)",
    )
    paused = list_parser.add_mutually_exclusive_group()
    paused.add_argument("--paused", dest="paused", action="store_const", const=True, default=None,
                        help="Only paused DAGs")
    paused.add_argument("--unpaused", dest="paused", action="store_const", const=False,
                        help="Only unpaused DAGs")
    list_parser.add_argument("--fields", action="append", default=[], help="Fields to return")
    list_parser.add_argument("--dag-id-pattern", help="Only DAG ids matching this pattern")
    list_parser.set_defaults(func=run_list)

    get_parser = sub.add_parser("get", help="Show a DAG")
    get_parser.add_argument("dag_id")
    get_parser.add_argument("--env", help="Environment name")
    get_parser.set_defaults(func=run_get)

    source_parser = sub.add_parser("source", help="Print the source code of a DAG")
    source_parser.add_argument("dag_id")
    source_parser.add_argument("--env", help="Environment name")
    source_parser.set_defaults(func=run_source)


def build_list_query(args: argparse.Namespace) -> dict[str, Any]:
    query: dict[str, Any] = {
        "limit": args.limit,
        "offset": args.offset,
        "only_active": args.only_active,
    }
    if args.order_by:
        query["order_by"] = args.order_by
    if args.tags:
        query["tags"] = args.tags
    if args.paused is not None:
        query["paused"] = args.paused
    if args.fields:
        query["fields"] = args.fields
    if args.dag_id_pattern:
        query["dag_id_pattern"] = args.dag_id_pattern
    return query


def run_list(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    ctx.console.json(ctx.mwaa().rest_api_get(name, "/dags", build_list_query(args)))
    return 0


def run_get(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    ctx.console.json(ctx.mwaa().rest_api_get(name, f"/dags/{args.dag_id}"))
    return 0


def run_source(args: argparse.Namespace, ctx: CliContext) -> int:
    name = ctx.resolve_environment(args.env)
    mwaa = ctx.mwaa()
    dag = mwaa.rest_api_get(name, f"/dags/{args.dag_id}") or {}
    token = dag.get("file_token")
    if not token:
        ctx.console.error(f"DAG {args.dag_id} has no file token")
        return 1
    source = mwaa.rest_api_get(name, f"/dagSources/{token}")
    if isinstance(source, dict):
        source = source.get("content", "")
    ctx.console.echo(str(source))
    return 0
