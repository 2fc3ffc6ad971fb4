"""
flygate error taxonomy.

Every failure an operation can report derives from ``FlyGateError``. The
``kind`` of an error is what callers see in a structured error result, so the
class names below are part of the public contract.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from flygate.guard.audit import AuditResult


class FlyGateError(Exception):
    """Base exception for all flygate errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ConfigError(FlyGateError):
    """Raised when configuration is invalid or missing."""


class ProtectedResourceError(FlyGateError):
    """Raised when an operation targets a reserved router app."""

    def __init__(self, app: str):
        super().__init__(
            f"Cannot operate on router infrastructure app '{app}' (router-* prefix). "
            "Use the router_* tools to manage routers.",
            {"app": app},
        )


class ConfirmationMismatchError(FlyGateError):
    """Raised when a destructive call's confirmation string does not match."""

    def __init__(self, provided: str, expected: str):
        super().__init__(
            f"Confirmation failed: 'confirm' must exactly match '{expected}'. "
            f"Got confirm={provided!r}.",
            {"provided": provided, "expected": expected},
        )


class ForbiddenFlagError(FlyGateError):
    """Raised when caller input collides with the flag blocklist."""

    def __init__(self, flag: str, command: str):
        super().__init__(
            f"Flag '{flag}' is not allowed in '{command}' (explicit port exposure is forbidden).",
            {"flag": flag, "command": command},
        )


class UnknownCommandError(FlyGateError):
    """Raised when a command is not on the allow-list for the active mode."""


class InputValidationError(FlyGateError):
    """Raised when caller input does not satisfy an operation's input contract."""


class ExecutionError(FlyGateError):
    """Raised when a platform command exits nonzero."""

    def __init__(self, command: str, exit_code: int, diagnostic: str):
        self.exit_code = exit_code
        self.diagnostic = diagnostic
        super().__init__(
            f"fly {command} failed (exit {exit_code}): {diagnostic.strip()}",
            {"exit_code": exit_code, "diagnostic": diagnostic},
        )


class MalformedOutputError(FlyGateError):
    """Raised when platform output (or a handler payload) fails shape validation."""


class PreflightRejectedError(FlyGateError):
    """Raised when the descriptor scan finds a blocking exposure pattern."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(
            "Pre-flight check rejected the deploy: " + "; ".join(self.errors),
            {"errors": self.errors, "warnings": self.warnings},
        )


class PostDeployExposureError(FlyGateError):
    """
    Raised when the post-deploy audit found public addresses.

    The deploy itself succeeded and the release commands have already been
    issued; this error reports that cleanup was required.
    """

    def __init__(self, app: str, audit: "AuditResult"):
        self.app = app
        self.audit = audit
        released = audit.public_ips_released
        message = (
            f"Deploy of '{app}' succeeded but {released} public IP(s) were found "
            "and released. This should not happen with --no-public-ips. "
            "Check fly.toml and deployment config."
        )
        if audit.unreleased:
            message += f" Could not release: {', '.join(audit.unreleased)}."
        super().__init__(message, {"audit": audit.model_dump(), "unreleased": list(audit.unreleased)})


class RouterNotFoundError(FlyGateError):
    """Raised when no router app serves the requested network."""

    def __init__(self, network: str):
        super().__init__(f"No router found for network '{network}'.", {"network": network})


class TailnetError(FlyGateError):
    """Raised when the tailnet control-plane API returns an error."""


class InternalError(FlyGateError):
    """Raised in place of an unexpected exception inside an operation."""
