"""
Local runner lifecycle controller.

Brings up the database and Airflow containers of one local session on a
private network, waits for readiness and tears everything down again. Each
start step runs strictly after the previous one; a failure after the first
container was created stops the whole session before it is reported.
"""

from __future__ import annotations

import logging
import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from mwaacli import config
from mwaacli.container.compose import load_compose_file
from mwaacli.container.engine import ContainerEngine, ContainerSpec, HealthCheck, Mount, parse_label
from mwaacli.core.exceptions import (
    AlreadyRunningError,
    LifecycleError,
    MwaaCliError,
    PortInUseError,
    PreconditionError,
)
from mwaacli.core.util import convert_version, is_port_free, short_id
from mwaacli.local.envs import AWSCredentials, Envs, merge_env_vars, parse_env_file
from mwaacli.local.readiness import wait_for_ready

# Environment forced onto every local webserver: no example DAGs, local executor.
LOCAL_OVERRIDES = ("LOAD_EX=n", "EXECUTOR=Local")

WEBSERVER_HEALTHCHECK = HealthCheck(
    test=("CMD-SHELL", f"[ -f {config.AIRFLOW_HOME}/airflow-webserver.pid ]"),
    interval=30.0,
    timeout=30.0,
    retries=3,
)


@dataclass(frozen=True)
class RunnerOptions:
    version: str
    clone_path: Path
    dags_path: Path
    network_name: str
    label: str
    credentials: AWSCredentials | None = None

    @classmethod
    def for_version(
        cls,
        version: str,
        *,
        cwd: Path | None = None,
        clone_path: str | None = None,
        dags_path: str | None = None,
        credentials: AWSCredentials | None = None,
    ) -> "RunnerOptions":
        base = (cwd or Path.cwd()).resolve()
        session = f"{config.SESSION_PREFIX}-{convert_version(version)}"
        return cls(
            version=version,
            clone_path=base / (clone_path or config.clone_path()),
            dags_path=base / (dags_path or config.DEFAULT_DAGS_PATH),
            network_name=session,
            label=f"{config.LABEL_KEY}={session}",
            credentials=credentials,
        )

    @property
    def session_name(self) -> str:
        return f"{config.SESSION_PREFIX}-{convert_version(self.version)}"

    @property
    def image_tag(self) -> str:
        return f"{config.IMAGE_REPOSITORY}:{convert_version(self.version)}"

    @property
    def db_data_dir(self) -> Path:
        return self.clone_path / "db-data"

    @property
    def airflow_cfg(self) -> Path:
        return self.clone_path / "docker" / "config" / "airflow.cfg"


@dataclass(frozen=True)
class StartOptions:
    port: int = config.WEBSERVER_PORT
    reset_db: bool = False
    envs: Envs = field(default_factory=Envs)
    follow_logs: bool = False
    # Seconds to wait for the webserver; 0 skips the readiness check.
    wait_timeout: float = config.WEBSERVER_READY_TIMEOUT


class Runner:
    def __init__(
        self,
        options: RunnerOptions,
        engine: ContainerEngine,
        logger: logging.Logger | None = None,
    ) -> None:
        self.options = options
        self.engine = engine
        self.logger = logger or logging.getLogger(__name__)

    @property
    def _labels(self) -> dict[str, str]:
        key, value = parse_label(self.options.label)
        return {key: value}

    def _container_name(self, role: str) -> str:
        return f"{self.options.session_name}-{role}"

    @contextmanager
    def _phase(self, name: str) -> Iterator[None]:
        try:
            yield
        except (PreconditionError, LifecycleError):
            raise
        except (MwaaCliError, OSError) as exc:
            raise LifecycleError(name, exc) from exc

    def _compensate(self) -> None:
        self.logger.warning("Start failed, stopping containers with label %s", self.options.label)
        try:
            self.engine.stop_containers_by_label(self.options.label)
        except MwaaCliError as exc:
            self.logger.error("Cleanup after failed start did not complete: %s", exc)

    # Image

    def build_image(self) -> None:
        self.engine.build_image(self.options.clone_path / "docker", self.options.image_tag)

    def _ensure_image(self) -> None:
        if not self.engine.image_exists(self.options.image_tag):
            self.build_image()

    # Start

    def reset_db_data(self) -> None:
        db_data = self.options.db_data_dir
        if db_data.exists():
            self.logger.info("Resetting database directory %s", db_data)
            shutil.rmtree(db_data)
        db_data.mkdir(parents=True, exist_ok=True)

    def _database_spec(self) -> ContainerSpec:
        compose = load_compose_file(self.options.clone_path / "docker" / "docker-compose-local.yml")
        db_data = self.options.db_data_dir
        db_data.mkdir(parents=True, exist_ok=True)
        return ContainerSpec(
            image=compose.get_service_image(config.DATABASE_SERVICE),
            environment=tuple(compose.get_service_environment(config.DATABASE_SERVICE)),
            mounts=(Mount(str(db_data), config.POSTGRES_DATA_DIR),),
            labels=self._labels,
            network=self.options.network_name,
            aliases=(config.DATABASE_SERVICE,),
            restart_policy="always",
        )

    def build_environment(self, envs: Envs | None = None) -> list[str]:
        """Base env file, local overrides, runner credentials, then per-start settings."""
        base = parse_env_file(self.options.clone_path / "docker" / "config" / ".env.localrunner")
        credentials = self.options.credentials.to_list() if self.options.credentials else []
        extra = envs.to_list() if envs else []
        return merge_env_vars(base, LOCAL_OVERRIDES, credentials, extra, ignore_empty=True)

    def _airflow_mounts(self, *names: str) -> tuple[Mount, ...]:
        sources = {
            "dags": (self.options.dags_path / "dags", "dags"),
            "plugins": (self.options.clone_path / "plugins", "plugins"),
            "requirements": (self.options.clone_path / "requirements", "requirements"),
            "startup": (self.options.clone_path / "startup_script", "startup"),
        }
        mounts = []
        for name in names:
            source, target = sources[name]
            source.mkdir(parents=True, exist_ok=True)
            mounts.append(Mount(str(source), f"{config.AIRFLOW_HOME}/{target}"))
        return tuple(mounts)

    def _webserver_spec(self, environment: list[str], port: int) -> ContainerSpec:
        return ContainerSpec(
            image=self.options.image_tag,
            command=("local-runner",),
            environment=tuple(environment),
            mounts=self._airflow_mounts("dags", "plugins", "requirements", "startup"),
            ports={f"{config.WEBSERVER_PORT}/tcp": port},
            labels=self._labels,
            network=self.options.network_name,
            restart_policy="always",
            healthcheck=WEBSERVER_HEALTHCHECK,
        )

    def start(self, options: StartOptions | None = None) -> str:
        """Bring up a session and return the webserver container id."""
        options = options or StartOptions()

        with self._phase("build image"):
            self.build_image()

        with self._phase("check running containers"):
            running = self.engine.list_containers_by_label(self.options.label)
            if running:
                raise AlreadyRunningError(self.options.label, running)
            if not is_port_free(options.port):
                raise PortInUseError(options.port)

        with self._phase("create network"):
            self.engine.create_network(self.options.network_name)

        if options.reset_db:
            with self._phase("reset database"):
                self.reset_db_data()

        try:
            with self._phase("start database"):
                db_id = self.engine.run_container(
                    self._database_spec(), self._container_name(config.DATABASE_SERVICE)
                )
                self.logger.info("Waiting for database container %s", short_id(db_id))
                self.engine.wait_for_container_ready(db_id, config.DATABASE_READY_TIMEOUT)

            with self._phase("assemble environment"):
                environment = self.build_environment(options.envs)

            with self._phase("start webserver"):
                web_id = self.engine.run_container(
                    self._webserver_spec(environment, options.port),
                    self._container_name("local-runner"),
                )

            if options.wait_timeout > 0:
                url = f"http://localhost:{options.port}/health"
                self.logger.info("Waiting for %s", url)
                with self._phase("wait for webserver"):
                    wait_for_ready(url, timeout=options.wait_timeout)
        except (LifecycleError, KeyboardInterrupt):
            self._compensate()
            raise

        return web_id

    # Serving and teardown

    def serve(self, container_id: str, cancel: threading.Event) -> bool:
        """Follow the webserver logs until the stream ends or cancel is set.

        On cancellation the session is stopped and True is returned.
        """
        done = threading.Event()
        errors: list[MwaaCliError] = []

        def follow() -> None:
            try:
                self.engine.stream_logs(container_id, cancel)
            except MwaaCliError as exc:
                errors.append(exc)
            finally:
                done.set()

        worker = threading.Thread(target=follow, name="mwaacli-logs", daemon=True)
        worker.start()
        while not done.is_set():
            if cancel.wait(0.2):
                break
        worker.join(timeout=5)

        if cancel.is_set():
            self.logger.info("Interrupted, stopping local runner")
            self.stop()
            return True
        if errors:
            raise LifecycleError("follow logs", errors[0]) from errors[0]
        return False

    def stop(self) -> int:
        """Stop every container of this session. Safe when nothing runs."""
        with self._phase("stop"):
            return self.engine.stop_containers_by_label(self.options.label)

    # Ephemeral one-shot containers

    def _run_ephemeral(
        self, role: str, mounts: tuple[Mount, ...], environment: tuple[str, ...] = ()
    ) -> int:
        with self._phase(role):
            self._ensure_image()
            spec = ContainerSpec(
                image=self.options.image_tag,
                command=(role,),
                environment=environment,
                mounts=mounts,
                tty=True,
                stdin_open=True,
            )
            container_id = self.engine.ensure_container(spec, self._container_name(role))
            return self.engine.attach_to_container(container_id, start=True, remove=True)

    def test_requirements(self) -> int:
        return self._run_ephemeral(
            "test-requirements", self._airflow_mounts("dags", "plugins", "requirements")
        )

    def package_requirements(self) -> int:
        return self._run_ephemeral(
            "package-requirements", self._airflow_mounts("dags", "plugins", "requirements")
        )

    def test_startup_script(self, envs: Envs | None = None) -> int:
        environment = merge_env_vars(
            self.options.credentials.to_list() if self.options.credentials else [],
            envs.to_list() if envs else [],
            ignore_empty=True,
        )
        return self._run_ephemeral(
            "test-startup-script", self._airflow_mounts("startup"), tuple(environment)
        )
