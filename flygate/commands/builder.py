"""
Command executor — the only way flygate talks to the ``fly`` CLI.

A command is built from a name on a static allow-list plus caller-derived
arguments. Blocked flags fail the build, mode-enforced flags are appended no
matter what the caller asked for, and nothing outside the allow-list can be
constructed at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from flygate.commands.policy import PRIVATE_FLAG, DeployPolicy, Mode
from flygate.errors import (
    ExecutionError,
    ForbiddenFlagError,
    InputValidationError,
    UnknownCommandError,
)
from flygate.platform.process import ProcessResult, ProcessRunner, decode_json, decode_ndjson

logger = logging.getLogger(__name__)


COMMANDS: Dict[str, Tuple[str, ...]] = {
    "auth_whoami": ("auth", "whoami"),
    "apps_list": ("apps", "list"),
    "apps_create": ("apps", "create"),
    "apps_destroy": ("apps", "destroy"),
    "status": ("status",),
    "machines_list": ("machines", "list"),
    "machines_start": ("machines", "start"),
    "machines_stop": ("machines", "stop"),
    "machines_destroy": ("machines", "destroy"),
    "machine_exec": ("machine", "exec"),
    "ips_list": ("ips", "list"),
    "ips_release": ("ips", "release"),
    "ips_allocate_v6": ("ips", "allocate-v6"),
    "ips_allocate_v4": ("ips", "allocate-v4"),
    "ips_allocate": ("ips", "allocate"),
    "secrets_list": ("secrets", "list"),
    "secrets_set": ("secrets", "set"),
    "secrets_unset": ("secrets", "unset"),
    "scale_show": ("scale", "show"),
    "scale_count": ("scale", "count"),
    "scale_vm": ("scale", "vm"),
    "volumes_list": ("volumes", "list"),
    "volumes_create": ("volumes", "create"),
    "volumes_destroy": ("volumes", "destroy"),
    "config_show": ("config", "show"),
    "logs": ("logs",),
    "deploy": ("deploy",),
    "certs_list": ("certs", "list"),
    "certs_add": ("certs", "add"),
    "certs_remove": ("certs", "remove"),
}

# Explicit port exposure, in any spelling.
BLOCKED_FLAGS: Tuple[str, ...] = ("-p", "--port", "--publish", "--expose")

# Public-exposure commands that cannot even be built in safe mode.
UNSAFE_ONLY_COMMANDS: FrozenSet[str] = frozenset(
    {"ips_allocate_v4", "ips_allocate", "certs_list", "certs_add", "certs_remove"}
)

ENFORCED_FLAGS: Dict[Mode, Dict[str, Tuple[str, ...]]] = {
    Mode.SAFE: {
        "deploy": DeployPolicy.for_mode(Mode.SAFE).enforced_flags,
        "ips_allocate_v6": (PRIVATE_FLAG,),
    },
    Mode.UNSAFE: {},
}

REQUIRED_OPTIONS: Dict[Mode, Dict[str, Tuple[str, ...]]] = {
    Mode.SAFE: {
        "ips_allocate_v6": ("--network",),
        "apps_create": ("--network",),
    },
    Mode.UNSAFE: {},
}


@dataclass(frozen=True)
class Command:
    """One platform CLI invocation, built and consumed within a single call."""

    name: str
    args: Tuple[str, ...]
    expect: Any = None
    ndjson: bool = False

    @property
    def display(self) -> str:
        return " ".join(self.args)


def find_blocked_flag(tokens: Sequence[str]) -> Optional[str]:
    """
    Return the first token that is (or assigns to) a blocked flag.

    Short flags also take their value attached (``-p443:8080``), so any
    token starting with a blocked short flag is blocked.
    """
    for token in tokens:
        for flag in BLOCKED_FLAGS:
            if token == flag or token.startswith(flag + "="):
                return token
            if len(flag) == 2 and token.startswith(flag):
                return token
    return None


def option_value(tokens: Sequence[str], option: str) -> Optional[str]:
    """Value of ``--opt value`` or ``--opt=value`` in ``tokens``, if present."""
    for i, token in enumerate(tokens):
        if token == option:
            return tokens[i + 1] if i + 1 < len(tokens) else ""
        if token.startswith(option + "="):
            return token[len(option) + 1:]
    return None


class CommandExecutor:
    """
    Builds allow-listed commands for a fixed mode and runs them.

    Example:
        >>> fly = CommandExecutor(Mode.SAFE)
        >>> cmd = fly.build("deploy", ["-a", "my-app", "--yes"])
        >>> cmd.args[-2:]
        ('--no-public-ips', '--flycast')
    """

    def __init__(self, mode: Mode, runner: Optional[ProcessRunner] = None):
        self.mode = mode
        self.runner = runner or ProcessRunner()

    # ── Construction ──────────────────────────────────────────────────────

    def build(
        self,
        name: str,
        args: Sequence[str] = (),
        expect: Any = None,
        ndjson: bool = False,
    ) -> Command:
        base = COMMANDS.get(name)
        if base is None:
            raise UnknownCommandError(f"Command '{name}' is not on the allow-list.", {"command": name})
        if self.mode is Mode.SAFE and name in UNSAFE_ONLY_COMMANDS:
            raise UnknownCommandError(
                f"Command '{name}' is not available in safe mode.", {"command": name}
            )

        caller_tokens = [str(a) for a in args]
        blocked = find_blocked_flag(caller_tokens)
        if blocked is not None:
            logger.warning("rejected %s: blocked flag %s", name, blocked)
            raise ForbiddenFlagError(blocked, " ".join(base))

        for option in REQUIRED_OPTIONS[self.mode].get(name, ()):
            value = option_value(caller_tokens, option)
            if not value or value.startswith("-"):
                raise InputValidationError(
                    f"'{' '.join(base)}' requires a non-empty {option} in {self.mode.value} mode.",
                    {"command": name, "option": option},
                )

        tokens = [*base, *caller_tokens]
        for flag in ENFORCED_FLAGS[self.mode].get(name, ()):
            if flag not in tokens:
                tokens.append(flag)

        return Command(name=name, args=tuple(tokens), expect=expect, ndjson=ndjson)

    # ── Execution ─────────────────────────────────────────────────────────

    def run(self, command: Command, check: bool = True) -> ProcessResult:
        result = self.runner.run(command.args)
        if check and not result.success:
            raise ExecutionError(command.args[0], result.exit_code, result.diagnostic)
        return result

    def run_decoded(self, command: Command) -> Any:
        """Run and decode stdout according to the command's declared shape."""
        result = self.run(command)
        if command.expect is None:
            return result.stdout
        if command.ndjson:
            return decode_ndjson(result.stdout, command.expect)
        return decode_json(result.stdout, command.expect)

    # ── Shorthands used by handlers ───────────────────────────────────────

    def call(self, name: str, args: Sequence[str] = (), check: bool = True) -> ProcessResult:
        return self.run(self.build(name, args), check=check)

    def call_json(self, name: str, args: Sequence[str], shape: Any) -> Any:
        return self.run_decoded(self.build(name, args, expect=shape))

    def call_ndjson(self, name: str, args: Sequence[str], shape: Any) -> List[Any]:
        return self.run_decoded(self.build(name, args, expect=shape, ndjson=True))
