"""
Pre-flight descriptor scanner.

Statically inspects a ``fly.toml`` (as a mapping) for configuration that only
makes sense for a publicly exposed app. Runs in safe mode, before any platform
command, and only when a descriptor is available: image-only deploys skip it
and rely on the post-deploy audit alone.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional

from flygate.errors import PreflightRejectedError

HTTPS_PORT = 443
TLS_HANDLER = "tls"
DESCRIPTOR_NAME = "fly.toml"


@dataclass
class PreflightResult:
    ok: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def reject(self, message: str) -> None:
        self.ok = False
        self.errors.append(message)


def iter_service_ports(config: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Yield every ``[[services.ports]]`` entry, skipping malformed ones."""
    services = config.get("services") or []
    if not isinstance(services, list):
        return
    for service in services:
        if not isinstance(service, Mapping):
            continue
        ports = service.get("ports") or []
        if not isinstance(ports, list):
            continue
        for port in ports:
            if isinstance(port, Mapping):
                yield port


def is_public_https(port: Mapping[str, Any]) -> bool:
    handlers = port.get("handlers") or []
    return port.get("port") == HTTPS_PORT and TLS_HANDLER in handlers


def forces_https(config: Mapping[str, Any]) -> bool:
    http_service = config.get("http_service")
    return isinstance(http_service, Mapping) and bool(http_service.get("force_https"))


def scan(descriptor: Mapping[str, Any]) -> PreflightResult:
    result = PreflightResult()

    if forces_https(descriptor):
        result.reject(
            "http_service.force_https is enabled. This implies the app was "
            "written for public HTTPS exposure."
        )

    ports = list(iter_service_ports(descriptor))
    for port in ports:
        if is_public_https(port):
            result.reject(
                f"services.ports has port {HTTPS_PORT} with a '{TLS_HANDLER}' handler. "
                "This is the public HTTPS shape; remove it for private deployments."
            )

    if ports:
        result.warnings.append(
            "fly.toml declares [[services.ports]]. These are fine for Flycast "
            "routing but must be re-checked if a public IP is ever attached."
        )

    return result


def load_descriptor(path: Path) -> dict:
    """Parse a ``fly.toml``; unreadable or invalid files reject the deploy."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as exc:
        raise PreflightRejectedError([f"Could not read descriptor {path}: {exc}"])
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise PreflightRejectedError([f"Invalid TOML in descriptor {path}: {exc}"])


def find_descriptor(explicit: Optional[str], cwd: Optional[Path] = None) -> Optional[Path]:
    """
    The descriptor to scan: an explicit path (which must exist), else
    ``./fly.toml`` when present, else ``None``.
    """
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise PreflightRejectedError([f"Descriptor not found: {explicit}"])
        return path
    candidate = (cwd or Path.cwd()) / DESCRIPTOR_NAME
    return candidate if candidate.is_file() else None
