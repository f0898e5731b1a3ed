"""CloudWatch Logs search across an environment's log groups."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from mwaacli.aws.session import AWSConfig

# Keys of an environment's LoggingConfiguration and their short names.
LOG_TYPES = {
    "DagProcessingLogs": "dag-processing",
    "SchedulerLogs": "scheduler",
    "TaskLogs": "task",
    "WebserverLogs": "webserver",
    "WorkerLogs": "worker",
}


@dataclass(frozen=True)
class LogFilter:
    start_time: datetime
    end_time: datetime
    filter_pattern: str = ""


@dataclass(frozen=True)
class LogEvent:
    log_group: str
    timestamp: int
    message: str


def extract_log_group_name(arn: str) -> str:
    _, sep, name = arn.partition("log-group:")
    if not sep:
        return arn
    return name.removesuffix(":*")


def extract_log_group_arns(
    logging_configuration: Mapping, ignored: Iterable[str] = ()
) -> list[str]:
    """ARNs of the enabled log groups, skipping the short names in ignored."""
    skip = set(ignored)
    arns: list[str] = []
    for key, short_name in LOG_TYPES.items():
        if short_name in skip:
            continue
        entry = logging_configuration.get(key) or {}
        arn = entry.get("CloudWatchLogGroupArn")
        if entry.get("Enabled") and arn:
            arns.append(arn)
    return arns


def _millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class CloudWatchLogsClient:
    def __init__(self, aws_config: AWSConfig | None = None, *, client=None) -> None:
        self.client = client if client is not None else aws_config.client("logs")

    def fetch_logs(self, log_group_arns: Iterable[str], log_filter: LogFilter) -> list[LogEvent]:
        events: list[LogEvent] = []
        paginator = self.client.get_paginator("filter_log_events")
        for arn in log_group_arns:
            group = extract_log_group_name(arn)
            params = {
                "logGroupName": group,
                "startTime": _millis(log_filter.start_time),
                "endTime": _millis(log_filter.end_time),
            }
            if log_filter.filter_pattern:
                params["filterPattern"] = log_filter.filter_pattern
            for page in paginator.paginate(**params):
                for event in page.get("events", []):
                    events.append(
                        LogEvent(group, int(event.get("timestamp", 0)), event.get("message", ""))
                    )
        events.sort(key=lambda e: e.timestamp)
        return events
