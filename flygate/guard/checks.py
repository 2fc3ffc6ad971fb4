"""Pure guard predicates: router-app protection and destructive confirmation."""

from __future__ import annotations

import ipaddress
import re

from flygate.errors import ConfirmationMismatchError, MalformedOutputError, ProtectedResourceError

ROUTER_APP_PREFIX = "router-"
DEFAULT_NETWORK = "default"

_ROUTER_SUFFIX = re.compile(r"-[a-z0-9]+$")


def is_router_app(app: str) -> bool:
    return app.startswith(ROUTER_APP_PREFIX)


def assert_not_protected(app: str) -> None:
    """Raise ``ProtectedResourceError`` if ``app`` is a router infrastructure app."""
    if is_router_app(app):
        raise ProtectedResourceError(app)


def assert_confirmation(provided: str, expected: str) -> None:
    """Exact, case-sensitive match. No trimming: ``"vol-1 "`` does not confirm ``"vol-1"``."""
    if provided != expected:
        raise ConfirmationMismatchError(provided, expected)


def router_app_name(network: str, suffix: str) -> str:
    return f"{ROUTER_APP_PREFIX}{network}-{suffix}"


def router_network_from_name(app: str) -> str:
    """Best-effort network name for a router app whose network is not reported."""
    return _ROUTER_SUFFIX.sub("", app[len(ROUTER_APP_PREFIX):])


def router_tag(network: str) -> str:
    return f"tag:{ROUTER_APP_PREFIX}{network}"


def extract_subnet(private_ip: str) -> str:
    """``fdaa:0:1234::5`` -> ``fdaa:0:1234::/48`` (the network's 6PN prefix)."""
    try:
        network = ipaddress.IPv6Network(f"{private_ip}/48", strict=False)
    except ValueError:
        raise MalformedOutputError(f"Not a private IPv6 address: {private_ip!r}", {"address": private_ip})
    return str(network)
