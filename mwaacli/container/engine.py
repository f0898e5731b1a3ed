"""
Container engine gateway.

A thin, stateless wrapper over the docker SDK exposing the primitives the
local runner needs. Nothing about a container is cached between calls; every
operation asks the daemon.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, TextIO

import docker
import docker.errors
import requests
from docker.types import Mount as DockerMount
from docker.utils import parse_repository_tag

from mwaacli.core.exceptions import (
    ContainerCreationError,
    ContainerExitedError,
    ContainerLogsError,
    ContainerStartError,
    ContainerStopError,
    ContainerTimeoutError,
    DockerUnavailableError,
    ImageBuildError,
    ImagePullError,
    NetworkError,
)
from mwaacli.core.util import short_id, strip_non_printable

logger = logging.getLogger(__name__)

COLIMA_SOCKET = "~/.colima/docker.sock"
_NANOSECONDS = 1_000_000_000


@dataclass(frozen=True)
class Mount:
    source: str
    target: str
    read_only: bool = False


@dataclass(frozen=True)
class HealthCheck:
    """Container health check; durations are in seconds."""

    test: tuple[str, ...]
    interval: float = 30.0
    timeout: float = 30.0
    retries: int = 3

    def to_docker(self) -> dict:
        return {
            "test": list(self.test),
            "interval": int(self.interval * _NANOSECONDS),
            "timeout": int(self.timeout * _NANOSECONDS),
            "retries": self.retries,
        }


@dataclass(frozen=True)
class ContainerSpec:
    image: str
    command: tuple[str, ...] = ()
    environment: tuple[str, ...] = ()
    mounts: tuple[Mount, ...] = ()
    # container port ("8080/tcp") -> host port
    ports: Mapping[str, int] = field(default_factory=dict)
    labels: Mapping[str, str] = field(default_factory=dict)
    network: str | None = None
    aliases: tuple[str, ...] = ()
    restart_policy: str | None = None
    healthcheck: HealthCheck | None = None
    tty: bool = False
    stdin_open: bool = False


def parse_label(label: str) -> tuple[str, str]:
    key, _, value = label.partition("=")
    return key, value


def connect() -> docker.DockerClient:
    """Connect to the local docker daemon, trying the Colima socket on macOS."""
    try:
        client = docker.from_env()
        client.ping()
        return client
    except (docker.errors.DockerException, requests.RequestException) as exc:
        error: Exception = exc

    if platform.system() == "Darwin":
        socket_path = os.path.expanduser(COLIMA_SOCKET)
        if os.path.exists(socket_path):
            logger.debug("Default docker socket unavailable, trying %s", socket_path)
            try:
                client = docker.DockerClient(base_url=f"unix://{socket_path}")
                client.ping()
                return client
            except (docker.errors.DockerException, requests.RequestException) as exc:
                error = exc

    raise DockerUnavailableError(f"cannot connect to the docker daemon: {error}") from error


def _close_on_cancel(stream, cancel: threading.Event, finished: threading.Event) -> None:
    while not finished.is_set():
        if cancel.wait(0.2):
            stream.close()
            return


class ContainerEngine:
    """Container primitives used by the local runner."""

    def __init__(
        self,
        client: docker.DockerClient,
        *,
        output: TextIO | None = None,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self._output = output
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_env(cls, **kwargs) -> "ContainerEngine":
        return cls(connect(), **kwargs)

    def _write(self, text: str) -> None:
        out = self._output or sys.stdout
        out.write(text)
        out.flush()

    # Images

    def build_image(
        self, context_dir: str | Path, tag: str, dockerfile: str = "Dockerfile"
    ) -> None:
        context = Path(context_dir)
        if not (context / dockerfile).is_file():
            raise ImageBuildError(f"no {dockerfile} found in build context {context}")

        logger.info("Building image %s from %s", tag, context)
        try:
            for chunk in self.client.api.build(
                path=str(context), tag=tag, dockerfile=dockerfile, rm=True, decode=True
            ):
                if "error" in chunk:
                    raise ImageBuildError(f"failed to build image {tag}: {chunk['error'].strip()}")
                if chunk.get("stream"):
                    self._write(chunk["stream"])
        except (docker.errors.DockerException, requests.RequestException) as exc:
            raise ImageBuildError(f"failed to build image {tag}: {exc}") from exc

    def image_exists(self, image: str) -> bool:
        try:
            self.client.images.get(image)
        except docker.errors.ImageNotFound:
            return False
        return True

    def pull_image(self, image: str) -> None:
        repository, tag = parse_repository_tag(image)
        logger.info("Pulling image %s", image)
        try:
            for event in self.client.api.pull(
                repository, tag=tag or "latest", stream=True, decode=True
            ):
                if "error" in event:
                    raise ImagePullError(f"failed to pull image {image}: {event['error']}")
                status = event.get("status")
                # Byte-level progress updates are skipped; layer state changes are shown.
                if status and "progress" not in event:
                    layer = event.get("id")
                    self._write(f"{layer}: {status}\n" if layer else f"{status}\n")
        except (docker.errors.DockerException, requests.RequestException) as exc:
            raise ImagePullError(f"failed to pull image {image}: {exc}") from exc

    def ensure_image(self, image: str) -> None:
        if self.image_exists(image):
            logger.debug("Image %s already present", image)
            return
        self.pull_image(image)

    # Containers

    def _find_containers(self, filters: dict, include_stopped: bool) -> list:
        try:
            return self.client.containers.list(
                all=include_stopped, filters=filters, ignore_removed=True
            )
        except (docker.errors.APIError, requests.RequestException) as exc:
            raise DockerUnavailableError(f"failed to list containers: {exc}") from exc

    def list_containers_by_label(self, label: str, include_stopped: bool = False) -> list[str]:
        containers = self._find_containers({"label": label}, include_stopped)
        return [container.id for container in containers]

    def list_containers_by_name(self, name: str, include_stopped: bool = True) -> list[str]:
        # The daemon matches names as substrings; keep exact matches only.
        containers = self._find_containers({"name": name}, include_stopped)
        return [container.id for container in containers if container.name == name]

    def _create_kwargs(self, spec: ContainerSpec, name: str) -> dict:
        kwargs: dict = {
            "image": spec.image,
            "name": name,
            "environment": list(spec.environment),
            "labels": dict(spec.labels),
            "tty": spec.tty,
            "stdin_open": spec.stdin_open,
        }
        if spec.command:
            kwargs["command"] = list(spec.command)
        if spec.mounts:
            kwargs["mounts"] = [
                DockerMount(target=m.target, source=m.source, type="bind", read_only=m.read_only)
                for m in spec.mounts
            ]
        if spec.ports:
            kwargs["ports"] = dict(spec.ports)
        if spec.restart_policy:
            kwargs["restart_policy"] = {"Name": spec.restart_policy}
        if spec.healthcheck:
            kwargs["healthcheck"] = spec.healthcheck.to_docker()
        if spec.network:
            kwargs["network"] = spec.network
            if spec.aliases:
                kwargs["networking_config"] = {
                    spec.network: self.client.api.create_endpoint_config(
                        aliases=list(spec.aliases)
                    )
                }
        return kwargs

    def ensure_container(self, spec: ContainerSpec, name: str) -> str:
        """Create a fresh container named name, replacing any existing one."""
        for existing_id in self.list_containers_by_name(name, include_stopped=True):
            logger.info("Removing existing container %s (%s)", name, short_id(existing_id))
            try:
                self.client.api.remove_container(existing_id, force=True)
            except docker.errors.NotFound:
                logger.debug("Container %s already removed", short_id(existing_id))
            except docker.errors.APIError as exc:
                raise ContainerCreationError(
                    f"failed to remove existing container {name}: {exc}"
                ) from exc

        self.ensure_image(spec.image)

        try:
            container = self.client.containers.create(**self._create_kwargs(spec, name))
        except (docker.errors.APIError, docker.errors.ImageNotFound) as exc:
            raise ContainerCreationError(f"failed to create container {name}: {exc}") from exc
        logger.info("Created container %s (%s)", name, short_id(container.id))
        return container.id

    def start_container(self, container_id: str) -> None:
        try:
            self.client.api.start(container_id)
        except docker.errors.APIError as exc:
            raise ContainerStartError(
                f"failed to start container {short_id(container_id)}: {exc}"
            ) from exc

    def run_container(self, spec: ContainerSpec, name: str) -> str:
        container_id = self.ensure_container(spec, name)
        self.start_container(container_id)
        logger.info("Started container %s (%s)", name, short_id(container_id))
        return container_id

    def _inspect_state(self, container_id: str) -> dict:
        try:
            return self.client.api.inspect_container(container_id)["State"]
        except docker.errors.NotFound as exc:
            raise ContainerExitedError(short_id(container_id), -1, "was removed") from exc
        except docker.errors.APIError as exc:
            raise DockerUnavailableError(
                f"failed to inspect container {short_id(container_id)}: {exc}"
            ) from exc

    def wait_for_container_ready(self, container_id: str, timeout_seconds: float) -> None:
        """Poll the container state until it runs, dies, or the timeout passes.

        A restarting container is not a failure; only the deadline bounds it.
        """
        cid = short_id(container_id)
        deadline = self._clock() + timeout_seconds
        while True:
            self._sleep(self.poll_interval)
            if self._clock() >= deadline:
                raise ContainerTimeoutError(cid, timeout_seconds)

            state = self._inspect_state(container_id)
            if state.get("Restarting"):
                logger.info("Container %s is restarting...", cid)
                continue
            if state.get("Running"):
                logger.info("Container %s is running", cid)
                return
            exit_code = int(state.get("ExitCode") or 0)
            if state.get("Dead") or exit_code != 0:
                raise ContainerExitedError(cid, exit_code, state.get("Status") or "exited")
            logger.debug("Container %s is %s, waiting", cid, state.get("Status"))

    def stop_container(self, container_id: str) -> bool:
        """Stop a container. Returns False when it no longer exists."""
        try:
            self.client.api.stop(container_id)
        except docker.errors.NotFound:
            logger.debug("Container %s is already gone", short_id(container_id))
            return False
        except docker.errors.APIError as exc:
            raise ContainerStopError(
                f"failed to stop container {short_id(container_id)}: {exc}"
            ) from exc
        return True

    def stop_containers_by_label(self, label: str) -> int:
        """Stop every running container carrying label. Zero matches is success."""
        container_ids = self.list_containers_by_label(label)
        if not container_ids:
            logger.info("No running containers found with label %s", label)
            return 0

        failures: list[str] = []
        stopped = 0
        for container_id in container_ids:
            logger.info("Stopping container %s", short_id(container_id))
            try:
                if self.stop_container(container_id):
                    stopped += 1
            except ContainerStopError as exc:
                logger.error("%s", exc)
                failures.append(str(exc))
        if failures:
            raise ContainerStopError("; ".join(failures))
        return stopped

    def attach_to_container(
        self, container_id: str, *, start: bool = False, remove: bool = False
    ) -> int:
        """Attach to a container's output and block until it stops.

        With start=True the attach happens before the start so no output is
        lost. With remove=True the container is removed once it has stopped,
        also when the wait is interrupted. A non-zero exit raises ContainerExitedError.
        """
        cid = short_id(container_id)
        try:
            container = self.client.containers.get(container_id)
            stream = container.attach(stdout=True, stderr=True, stream=True, logs=True)
            if start:
                container.start()
            for chunk in stream:
                self._write(chunk.decode("utf-8", errors="replace"))
            result = container.wait()
        except (docker.errors.APIError, requests.RequestException) as exc:
            raise ContainerStartError(f"failed to attach to container {cid}: {exc}") from exc
        finally:
            if remove:
                try:
                    self.client.api.remove_container(container_id, force=True)
                except docker.errors.NotFound:
                    logger.debug("Container %s already removed", cid)

        exit_code = int(result.get("StatusCode", 0))
        if exit_code != 0:
            raise ContainerExitedError(cid, exit_code)
        return exit_code

    def stream_logs(self, container_id: str, cancel: threading.Event | None = None) -> None:
        """Follow a container's stdout and stderr line by line.

        Returns when the log stream ends or cancel is set. Each line is
        stripped of non-printable characters before it is written.
        """
        cid = short_id(container_id)
        try:
            stream = self.client.api.logs(
                container_id, stdout=True, stderr=True, stream=True, follow=True
            )
        except docker.errors.APIError as exc:
            raise ContainerLogsError(f"failed to read logs of container {cid}: {exc}") from exc

        finished = threading.Event()
        if cancel is not None:
            threading.Thread(
                target=_close_on_cancel, args=(stream, cancel, finished), daemon=True
            ).start()

        buffer = b""
        try:
            for chunk in stream:
                if cancel is not None and cancel.is_set():
                    break
                buffer += chunk
                *lines, buffer = buffer.split(b"\n")
                for line in lines:
                    self._write(strip_non_printable(line.decode("utf-8", errors="replace")) + "\n")
            if buffer and not (cancel is not None and cancel.is_set()):
                self._write(strip_non_printable(buffer.decode("utf-8", errors="replace")) + "\n")
        except (
            docker.errors.DockerException,
            requests.RequestException,
            OSError,
            ValueError,
        ) as exc:
            # Closing the stream from the cancel watcher interrupts the read.
            # Reading a closed file raises ValueError.
            if cancel is not None and cancel.is_set():
                logger.debug("Log stream of %s closed after cancellation", cid)
                return
            raise ContainerLogsError(f"log stream of container {cid} failed: {exc}") from exc
        finally:
            finished.set()

    # Networks

    def create_network(self, name: str) -> str:
        """Return the id of the bridge network name, creating it if needed."""
        try:
            for network in self.client.networks.list(names=[name]):
                if network.name == name:
                    logger.debug("Network %s already exists", name)
                    return network.id
            network = self.client.networks.create(name, driver="bridge")
        except docker.errors.APIError as exc:
            raise NetworkError(f"failed to create network {name}: {exc}") from exc
        logger.info("Created network %s (%s)", name, short_id(network.id))
        return network.id
