"""mwaacli logs: search an environment's CloudWatch log groups."""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from mwaacli.aws.cloudwatch import (
    LOG_TYPES,
    CloudWatchLogsClient,
    LogFilter,
    extract_log_group_arns,
)
from mwaacli.cli.context import CliContext


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("logs", help="Search the CloudWatch logs of an environment")
    parser.add_argument("--env", help="Environment name")
    parser.add_argument("--start-time", help="RFC3339 start time (default: one hour ago)")
    parser.add_argument("--end-time", help="RFC3339 end time (default: now)")
    parser.add_argument("--filter-pattern", default="", help="CloudWatch Logs filter pattern")
    for short_name in LOG_TYPES.values():
        parser.add_argument(
            f"--ignore-{short_name}",
            dest="ignored",
            action="append_const",
            const=short_name,
            help=f"Skip the {short_name} log group",
        )
    parser.set_defaults(func=run, ignored=None)


def parse_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"invalid RFC3339 time {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_filter(args: argparse.Namespace, now: datetime | None = None) -> LogFilter:
    now = now or datetime.now(timezone.utc)
    start = parse_time(args.start_time) if args.start_time else now - timedelta(hours=1)
    end = parse_time(args.end_time) if args.end_time else now
    if start >= end:
        raise ValueError("start time must be before end time")
    return LogFilter(start_time=start, end_time=end, filter_pattern=args.filter_pattern or "")


def run(args: argparse.Namespace, ctx: CliContext) -> int:
    log_filter = build_filter(args)
    name = ctx.resolve_environment(args.env)
    environment = ctx.mwaa().get_environment(name)

    arns = extract_log_group_arns(environment.get("LoggingConfiguration") or {}, args.ignored or [])
    if not arns:
        ctx.console.warning("No enabled log groups to search.")
        return 0

    events = CloudWatchLogsClient(ctx.aws()).fetch_logs(arns, log_filter)
    for event in events:
        ctx.console.echo(f"[{event.log_group}] {event.message.rstrip()}")
    return 0
