"""Typed failures raised by mwaacli.

Every error carries a kind (its class) so the CLI can report it and the
lifecycle controller can decide whether a compensating stop is needed.
"""

from __future__ import annotations


class MwaaCliError(RuntimeError):
    """Base class for all mwaacli failures."""


# Preconditions: reported before any container is created.


class PreconditionError(MwaaCliError):
    """A start or install precondition was not met."""


class AlreadyRunningError(PreconditionError):
    def __init__(self, label: str, container_ids: list[str] | None = None) -> None:
        self.label = label
        self.container_ids = list(container_ids or [])
        super().__init__(
            f"containers with label {label} are already running; run 'mwaacli local stop' first"
        )


class PortInUseError(PreconditionError):
    def __init__(self, port: int) -> None:
        self.port = port
        super().__init__(f"port {port} is already in use")


class NonEmptyTargetError(PreconditionError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"path {path} exists and is not empty")


# External failures from the container engine or remote services.


class DockerUnavailableError(MwaaCliError):
    """The container engine could not be reached."""


class ImageBuildError(MwaaCliError):
    pass


class ImagePullError(MwaaCliError):
    pass


class ContainerCreationError(MwaaCliError):
    pass


class ContainerStartError(MwaaCliError):
    pass


class ContainerStopError(MwaaCliError):
    pass


class ContainerLogsError(MwaaCliError):
    pass


class NetworkError(MwaaCliError):
    pass


class InstallError(MwaaCliError):
    """Fetching or writing the local runner tree failed."""


# Readiness failures.


class ContainerExitedError(MwaaCliError):
    def __init__(self, container_id: str, exit_code: int, status: str = "exited") -> None:
        self.container_id = container_id
        self.exit_code = exit_code
        self.status = status
        super().__init__(f"container {container_id} {status} with exit code {exit_code}")


class ContainerTimeoutError(MwaaCliError):
    def __init__(self, container_id: str, timeout: float) -> None:
        self.container_id = container_id
        self.timeout = timeout
        super().__init__(f"timeout waiting for container {container_id} to be ready ({timeout:g}s)")


class ReadinessTimeoutError(MwaaCliError):
    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout
        super().__init__(f"timeout waiting for {url} to respond with 200 OK ({timeout:g}s)")


class InvalidURLError(MwaaCliError, ValueError):
    pass


# Data errors.


class MalformedLineError(MwaaCliError, ValueError):
    def __init__(self, line: str, line_number: int | None = None) -> None:
        self.line = line
        self.line_number = line_number
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"invalid line in env content{where}: {line!r}")


class ComposeDecodeError(MwaaCliError, ValueError):
    pass


class ServiceNotFoundError(MwaaCliError, KeyError):
    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(f"service {service} not found")

    def __str__(self) -> str:
        return f"service {self.service} not found"


class UnsafePathError(MwaaCliError, ValueError):
    pass


class InvalidARNError(MwaaCliError, ValueError):
    def __init__(self, arn: str) -> None:
        self.arn = arn
        super().__init__(f"invalid ARN: {arn}")


# Remote service errors.


class EnvironmentNotFoundError(MwaaCliError):
    pass


class RestApiError(MwaaCliError):
    def __init__(self, title: str, detail: str, status_code: int) -> None:
        self.title = title
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{title}: {detail} (HTTP StatusCode {status_code})")


class SecretsBackendError(MwaaCliError):
    pass


# Context.


class LifecycleError(MwaaCliError):
    """Wraps a failure with the lifecycle phase it happened in."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase}: {cause}")
