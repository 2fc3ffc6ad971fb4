"""Tool dispatcher — validates, runs and records operation calls."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from flygate.commands.builder import CommandExecutor
from flygate.commands.policy import Mode
from flygate.errors import FlyGateError, InternalError, UnknownCommandError
from flygate.platform.process import ProcessRunner
from flygate.tailnet.client import TailnetClient
from flygate.tools.handlers import Handler, OperationHandlers
from flygate.tools.registry import ToolRegistry
from flygate.tools.schema import ToolCall, ToolResult
from flygate.validation.config import Config

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """
    Executes operation calls and, optionally, persists results to disk.

    Every call returns a ``ToolResult``: platform failures keep their own
    error kind and anything unexpected is reported as ``InternalError``.
    When a results directory is configured each result is written to
    ``{results_dir}/{call_id}.yaml``, which gives an audit trail of
    everything the agent did.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        handlers: Mapping[str, Handler],
        results_dir: Optional[Path] = None,
        keep_results: int = 200,
    ):
        missing = set(registry.tools) - set(handlers)
        if missing:
            raise ValueError(f"no handler for: {', '.join(sorted(missing))}")
        self._registry = registry
        self._handlers = handlers
        self._results_dir = results_dir
        self._keep_results = keep_results
        if results_dir is not None:
            results_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def create(
        cls,
        mode: Mode,
        config: Config,
        runner: Optional[ProcessRunner] = None,
        tailnet: Optional[TailnetClient] = None,
        cwd: Optional[Path] = None,
    ) -> "ToolDispatcher":
        """Wire registry, executor and handlers for ``mode`` from configuration."""
        settings = config.merged
        executor = CommandExecutor(mode, runner or ProcessRunner(settings.fly.binary))
        handlers = OperationHandlers(mode, executor, config, tailnet=tailnet, cwd=cwd)
        results_dir = Path(settings.audit.results_dir).expanduser() if settings.audit.results_dir else None
        return cls(
            ToolRegistry(mode),
            handlers.handlers(),
            results_dir=results_dir,
            keep_results=settings.audit.keep_results,
        )

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def mode(self) -> Mode:
        return self._registry.mode

    # ── Execution ─────────────────────────────────────────────────────────

    def execute(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Execute one operation.

        Parameters
        ----------
        tool_name : operation name like ``fly_deploy``
        arguments : caller input; unknown fields are ignored
        """
        call = ToolCall(tool_name=tool_name, arguments=arguments or {})
        t0 = time.perf_counter()
        result = self._run(tool_name, arguments or {})
        result.call_id = call.call_id
        result.tool_name = tool_name
        result.duration_ms = int((time.perf_counter() - t0) * 1000)

        if result.success:
            logger.info("%s ok in %dms", tool_name, result.duration_ms)
        else:
            logger.warning("%s failed: %s", tool_name, result.error.kind if result.error else "?")

        self._save_result(result)
        return result

    def _run(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        tool_def = self._registry.get_tool(tool_name)
        if tool_def is None:
            return ToolResult.failure(
                UnknownCommandError(
                    f"Tool not found: {tool_name} (not available in {self.mode.value} mode).",
                    {"tool": tool_name},
                )
            )
        try:
            validated = tool_def.validate_input(arguments)
            result = self._handlers[tool_name](validated)
            if result.success:
                tool_def.validate_output(result.data)
        except FlyGateError as exc:
            return ToolResult.failure(exc)
        except Exception as exc:
            logger.exception("%s raised an unexpected error", tool_name)
            return ToolResult.failure(
                InternalError(f"{tool_name} failed unexpectedly: {exc!r}", {"exception": type(exc).__name__})
            )
        return result

    # ── Result Persistence ────────────────────────────────────────────────

    def _save_result(self, result: ToolResult) -> None:
        if self._results_dir is None:
            return
        path = self._results_dir / f"{result.call_id}.yaml"
        with open(path, "w") as f:
            yaml.safe_dump(result.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
        self._prune()

    def _prune(self) -> None:
        saved = sorted(self._results_dir.glob("*.yaml"), key=lambda p: p.stat().st_mtime)
        for path in saved[: max(0, len(saved) - self._keep_results)]:
            path.unlink(missing_ok=True)
