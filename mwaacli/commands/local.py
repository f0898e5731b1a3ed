"""mwaacli local: install, run and inspect the MWAA local runner."""

from __future__ import annotations

import argparse

from mwaacli import config
from mwaacli.aws.s3 import S3Client
from mwaacli.aws.session import resolve_credentials
from mwaacli.cli.context import CliContext
from mwaacli.container.engine import ContainerEngine
from mwaacli.core.signals import cancel_on_signals
from mwaacli.core.util import open_browser
from mwaacli.local.diff import compare_airflow_configs, format_diffs, load_airflow_cfg
from mwaacli.local.envs import Envs
from mwaacli.local.installer import Installer, InstallerOptions
from mwaacli.local.runner import Runner, RunnerOptions, StartOptions
from mwaacli.local.sync import Syncer


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("local", help="Manage the MWAA local runner")
    parser.add_argument(
        "--version",
        dest="airflow_version",
        default=config.default_version(),
        help=f"aws-mwaa-local-runner version (default: {config.default_version()})",
    )
    sub = parser.add_subparsers(dest="local_command", required=True)
    # Accepted after the subcommand too; SUPPRESS keeps a value given before it.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--version",
        dest="airflow_version",
        default=argparse.SUPPRESS,
        help=f"aws-mwaa-local-runner version (default: {config.default_version()})",
    )

    init_parser = sub.add_parser(
        "init", parents=[common], help="Download the local runner into the current directory"
    )
    init_parser.add_argument("--repo-url", default=config.repo_url(), help="Repository to fetch")
    init_parser.set_defaults(func=run_init)

    sub.add_parser(
        "build-image", parents=[common], help="Build the local runner image"
    ).set_defaults(func=run_build_image)

    start_parser = sub.add_parser("start", parents=[common], help="Start the local runner")
    start_parser.add_argument("--port", type=int, default=config.WEBSERVER_PORT, help="Host port")
    start_parser.add_argument(
        "--reset-db", action="store_true", help="Start with an empty database"
    )
    _add_credential_args(start_parser)
    start_parser.add_argument(
        "--no-browser", action="store_true", help="Do not open the Airflow UI when ready"
    )
    start_parser.add_argument(
        "--follow-logs", action="store_true", help="Stream webserver logs until interrupted"
    )
    start_parser.add_argument(
        "--wait",
        type=float,
        default=config.WEBSERVER_READY_TIMEOUT,
        help="Seconds to wait for the webserver (0 disables the check)",
    )
    start_parser.set_defaults(func=run_start)

    sub.add_parser("stop", parents=[common], help="Stop the local runner").set_defaults(
        func=run_stop
    )

    sub.add_parser(
        "test-requirements",
        parents=[common],
        help="Install requirements.txt in a throwaway container",
    ).set_defaults(func=run_test_requirements)
    sub.add_parser(
        "package-requirements",
        parents=[common],
        help="Download requirements as wheels into requirements/",
    ).set_defaults(func=run_package_requirements)

    startup_parser = sub.add_parser(
        "test-startup-script", parents=[common], help="Run startup.sh in a throwaway container"
    )
    _add_credential_args(startup_parser)
    startup_parser.set_defaults(func=run_test_startup_script)

    sync_parser = sub.add_parser(
        "sync",
        parents=[common],
        help="Download requirements, startup script, plugins and DAGs of an environment",
    )
    sync_parser.add_argument("--env", help="Environment name")
    sync_parser.set_defaults(func=run_sync)

    diff_parser = sub.add_parser(
        "diff", parents=[common], help="Compare local airflow.cfg with an environment"
    )
    diff_parser.add_argument("--env", help="Environment name")
    diff_parser.set_defaults(func=run_diff)


def _add_credential_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--aws-creds", action="store_true", help="Pass the current AWS credentials to the container"
    )
    parser.add_argument("--role-arn", help="Assume this role and pass its credentials")


def _runner_options(args: argparse.Namespace) -> RunnerOptions:
    return RunnerOptions.for_version(args.airflow_version)


def _build_runner(args: argparse.Namespace) -> Runner:
    return Runner(_runner_options(args), ContainerEngine.from_env())


def _envs(args: argparse.Namespace, ctx: CliContext) -> Envs:
    if not (args.aws_creds or args.role_arn):
        return Envs()
    return Envs(credentials=resolve_credentials(ctx.aws(), args.role_arn))


def run_init(args: argparse.Namespace, ctx: CliContext) -> int:
    options = InstallerOptions(repo_url=args.repo_url, clone_path=config.clone_path())
    version = ctx.console.highlight(args.airflow_version)
    ctx.console.step(f"Installing aws-mwaa-local-runner {version}")
    target = Installer(args.airflow_version, options).run()
    ctx.console.success(f"Local runner installed into {ctx.console.highlight(target)}")
    return 0


def run_build_image(args: argparse.Namespace, ctx: CliContext) -> int:
    runner = _build_runner(args)
    ctx.console.step(f"Building image {ctx.console.highlight(runner.options.image_tag)}")
    runner.build_image()
    ctx.console.success("Image built")
    return 0


def run_start(args: argparse.Namespace, ctx: CliContext) -> int:
    envs = _envs(args, ctx)
    runner = _build_runner(args)
    options = StartOptions(
        port=args.port,
        reset_db=args.reset_db,
        envs=envs,
        follow_logs=args.follow_logs,
        wait_timeout=args.wait,
    )

    ctx.console.step(f"Starting local runner {ctx.console.highlight(args.airflow_version)}")
    container_id = runner.start(options)
    url = f"http://localhost:{args.port}"
    ctx.console.success(f"Airflow webserver is up at {ctx.console.highlight(url)}")

    if not args.no_browser:
        open_browser(url)

    if options.follow_logs:
        ctx.console.info("Following webserver logs, press Ctrl+C to stop")
        with cancel_on_signals() as cancel:
            if runner.serve(container_id, cancel):
                ctx.console.success("Local runner stopped")
    return 0


def run_stop(args: argparse.Namespace, ctx: CliContext) -> int:
    stopped = _build_runner(args).stop()
    if stopped:
        ctx.console.success(f"Stopped {stopped} container(s)")
    else:
        ctx.console.info("No running local runner containers found")
    return 0


def run_test_requirements(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.console.step("Testing requirements.txt")
    _build_runner(args).test_requirements()
    ctx.console.success("Requirements installed successfully")
    return 0


def run_package_requirements(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.console.step("Packaging requirements")
    _build_runner(args).package_requirements()
    ctx.console.success("Requirements packaged")
    return 0


def run_test_startup_script(args: argparse.Namespace, ctx: CliContext) -> int:
    envs = _envs(args, ctx)
    ctx.console.step("Testing startup script")
    _build_runner(args).test_startup_script(envs)
    ctx.console.success("Startup script finished successfully")
    return 0


def run_sync(args: argparse.Namespace, ctx: CliContext) -> int:
    options = _runner_options(args)
    name = ctx.resolve_environment(args.env)
    environment = ctx.mwaa().get_environment(name)

    ctx.console.step(f"Syncing {ctx.console.highlight(name)} into {options.clone_path}")
    synced = Syncer(S3Client(ctx.aws()), options.clone_path, options.dags_path).sync(environment)
    if synced:
        ctx.console.success(f"Synced {', '.join(synced)}")
    else:
        ctx.console.info("Nothing to sync")
    return 0


def run_diff(args: argparse.Namespace, ctx: CliContext) -> int:
    options = _runner_options(args)
    name = ctx.resolve_environment(args.env)
    remote = ctx.mwaa().get_environment(name).get("AirflowConfigurationOptions") or {}
    local = load_airflow_cfg(options.airflow_cfg)
    ctx.console.echo(format_diffs(compare_airflow_configs(local, remote)))
    return 0
