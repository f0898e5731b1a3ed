"""mwaacli command line entry point."""

from __future__ import annotations

import argparse

import docker.errors
import requests
from botocore.exceptions import BotoCoreError, ClientError

from mwaacli import __version__, config
from mwaacli.cli.console import Console
from mwaacli.cli.context import CliContext
from mwaacli.commands import dags, environments, local, logs, open_ui, roles, run, sb, variables
from mwaacli.core.exceptions import MwaaCliError
from mwaacli.core.logging_config import resolve_log_level, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mwaacli",
        description="Manage Amazon MWAA environments and run them locally",
    )
    parser.add_argument("--profile", help="AWS profile to use")
    parser.add_argument("--region", help="AWS region to use")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")
    local.register_parser(subparsers)
    environments.register_parser(subparsers)
    dags.register_parser(subparsers)
    roles.register_parser(subparsers)
    variables.register_parser(subparsers)
    run.register_parser(subparsers)
    open_ui.register_parser(subparsers)
    logs.register_parser(subparsers)
    sb.register_parser(subparsers)

    return parser


def main(argv: list[str] | None = None, console: Console | None = None) -> int:
    config.load_env_file()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    setup_logging(resolve_log_level(args.verbose))
    console = console or Console()
    ctx = CliContext(console=console, profile=args.profile, region=args.region)

    try:
        return int(args.func(args, ctx))
    except KeyboardInterrupt:
        console.warning("Aborted.")
        return 130
    except MwaaCliError as exc:
        console.error(f"Error: {exc}")
        return 1
    except ClientError as exc:
        console.error(f"Error: AWS request failed: {exc}")
        return 1
    except BotoCoreError as exc:
        console.error(f"Error: {exc}")
        return 1
    except docker.errors.DockerException as exc:
        console.error(f"Error: docker: {exc}")
        return 1
    except requests.RequestException as exc:
        console.error(f"Error: HTTP request failed: {exc}")
        return 1
    except (ValueError, FileNotFoundError) as exc:
        console.error(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
