"""Process executor — runs the platform CLI and decodes its JSON output."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from flygate.errors import ExecutionError, MalformedOutputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Captured output of one platform CLI invocation."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def diagnostic(self) -> str:
        """Text explaining a failure: stderr, falling back to stdout."""
        return self.stderr or self.stdout


class ProcessRunner:
    """
    Run ``<binary> <args>`` and capture stdout/stderr/exit code.

    The call blocks until the subprocess exits; no timeout is imposed here.
    """

    def __init__(self, binary: str = "fly", env: Optional[Dict[str, str]] = None):
        self.binary = binary
        self.env = env or {}

    def run(self, args: Sequence[str]) -> ProcessResult:
        argv = [self.binary, *args]
        # Arguments can carry secret values; only the subcommand is logged.
        logger.debug("exec: %s %s (%d args)", self.binary, " ".join(args[:2]), len(args))
        merged_env = {**os.environ, **self.env}
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                env=merged_env,
            )
        except FileNotFoundError:
            raise ExecutionError(
                args[0] if args else "",
                127,
                f"{self.binary} CLI not found. Install it and make sure it is on PATH.",
            )
        except OSError as exc:
            raise ExecutionError(args[0] if args else "", 126, f"Could not run {self.binary}: {exc}")
        return ProcessResult(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )


# ── Decoding ──────────────────────────────────────────────────────────────


def decode_json(stdout: str, shape: Any) -> Any:
    """Decode single-document JSON stdout and validate it against ``shape``."""
    try:
        raw = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(
            f"Expected JSON output, got: {stdout[:200]!r} ({exc})",
            {"stdout": stdout[:2000]},
        )
    return _validate(raw, shape)


def decode_ndjson(stdout: str, shape: Any) -> List[Any]:
    """Decode newline-delimited JSON, validating each line against ``shape``."""
    records = []
    for lineno, line in enumerate(stdout.strip().splitlines(), 1):
        if not line.strip():
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as exc:
            raise MalformedOutputError(
                f"Line {lineno} is not JSON: {line[:200]!r} ({exc})",
                {"line": lineno},
            )
        records.append(_validate(raw, shape))
    return records


def _validate(raw: Any, shape: Any) -> Any:
    try:
        return TypeAdapter(shape).validate_python(raw)
    except ValidationError as exc:
        raise MalformedOutputError(
            f"Output did not match the expected shape: {exc.error_count()} error(s)",
            {"errors": [_format_error(err) for err in exc.errors()]},
        )


def _format_error(err: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
    return f"{location}: {err.get('msg', 'invalid')}"
