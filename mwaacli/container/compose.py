"""Read service definitions from a docker-compose file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Mapping

import yaml

from mwaacli.core.exceptions import ComposeDecodeError, ServiceNotFoundError


@dataclass(frozen=True)
class ServiceConfig:
    image: str = ""
    environment: tuple[str, ...] = ()


@dataclass(frozen=True)
class Compose:
    services: Mapping[str, ServiceConfig] = field(default_factory=dict)

    def get_service(self, name: str) -> ServiceConfig:
        try:
            return self.services[name]
        except KeyError:
            raise ServiceNotFoundError(name) from None

    def get_service_image(self, name: str) -> str:
        return self.get_service(name).image

    def get_service_environment(self, name: str) -> list[str]:
        return list(self.get_service(name).environment)


def _render_environment(service: str, raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, list):
        return tuple(str(item) for item in raw)
    if isinstance(raw, dict):
        return tuple(
            f"{key}=" if value is None else f"{key}={value}" for key, value in raw.items()
        )
    raise ComposeDecodeError(f"service {service}: environment must be a list or a mapping")


def _load(data: Any) -> Compose:
    if data is None:
        return Compose()
    if not isinstance(data, dict):
        raise ComposeDecodeError("compose document must be a mapping")
    raw_services = data.get("services") or {}
    if not isinstance(raw_services, dict):
        raise ComposeDecodeError("compose 'services' must be a mapping")

    services: dict[str, ServiceConfig] = {}
    for name, raw in raw_services.items():
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ComposeDecodeError(f"service {name} must be a mapping")
        services[str(name)] = ServiceConfig(
            image=str(raw.get("image") or ""),
            environment=_render_environment(name, raw.get("environment")),
        )
    return Compose(services=services)


def parse_compose(source: str | bytes | os.PathLike | IO) -> Compose:
    """Parse compose YAML from a path, a string/bytes document or an open stream."""
    if isinstance(source, (os.PathLike, Path)):
        with open(source, "rb") as f:
            content = f.read()
    elif isinstance(source, (str, bytes)):
        content = source
    else:
        content = source.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ComposeDecodeError(f"failed to decode compose file: {exc}") from exc
    return _load(data)


def load_compose_file(path: str | Path) -> Compose:
    return parse_compose(Path(path))
