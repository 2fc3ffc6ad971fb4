"""Shared fixtures: an in-memory fly CLI and pre-wired executors/dispatchers."""

import json
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
from unittest.mock import MagicMock

import pytest

from flygate.commands.builder import CommandExecutor
from flygate.commands.policy import Mode
from flygate.platform.process import ProcessResult, ProcessRunner
from flygate.tailnet.client import TailnetClient
from flygate.tools.dispatcher import ToolDispatcher
from flygate.tools.handlers import OperationHandlers
from flygate.tools.registry import ToolRegistry
from flygate.validation.config import Config


def ip(address: str, type_: str, network: Optional[str] = None, region: str = "global") -> Dict[str, Any]:
    """An IP record as ``fly ips list --json`` prints it."""
    record = {"ID": f"ip_{address}", "Address": address, "Type": type_, "Region": region, "CreatedAt": "2026-01-01T00:00:00Z"}
    if network is not None:
        record["Network"] = network
    return record


def app(name: str, network: Optional[str] = None, status: str = "deployed", org: str = "personal") -> Dict[str, Any]:
    """An app record as ``fly apps list --json`` prints it."""
    record = {
        "ID": name,
        "Name": name,
        "Status": status,
        "Deployed": True,
        "Hostname": f"{name}.fly.dev",
        "Organization": {"Slug": org},
    }
    if network is not None:
        record["Network"] = network
    return record


def machine(id_: str, state: str = "started", private_ip: Optional[str] = "fdaa:0:1234:a7b:1::2") -> Dict[str, Any]:
    return {
        "id": id_,
        "name": f"m-{id_}",
        "state": state,
        "region": "iad",
        "private_ip": private_ip,
        "config": {"guest": {"cpu_kind": "shared", "cpus": 1, "memory_mb": 256}},
    }


def _option(args: Sequence[str], flag: str) -> Optional[str]:
    for i, token in enumerate(args):
        if token == flag and i + 1 < len(args):
            return args[i + 1]
    return None


class FakeFly(ProcessRunner):
    """
    Stand-in for the ``fly`` binary.

    IPs, merged configs, apps and machines are kept per app so that
    ``ips release`` followed by ``ips list`` reflects the release. Any other
    subcommand answers from ``responses`` (keyed by its first two tokens)
    or succeeds with empty output.
    """

    def __init__(self):
        super().__init__("fly")
        self.calls: List[Tuple[str, ...]] = []
        self.ips: Dict[str, List[Dict[str, Any]]] = {}
        self.configs: Dict[str, Any] = {}
        self.apps: List[Dict[str, Any]] = []
        self.machines: Dict[str, List[Dict[str, Any]]] = {}
        self.responses: Dict[Tuple[str, ...], str] = {}
        self.failures: Dict[Tuple[str, ...], ProcessResult] = {}
        self.unreleasable: Set[str] = set()

    def run(self, args: Sequence[str]) -> ProcessResult:
        args = tuple(args)
        self.calls.append(args)
        key = args[:2]
        app_name = _option(args, "-a")

        if key in self.failures:
            return self.failures[key]
        if key == ("ips", "list"):
            return _ok(json.dumps(self.ips.get(app_name, [])))
        if key == ("ips", "release"):
            address = args[2]
            if address in self.unreleasable:
                return ProcessResult("", f"Error: could not release {address}", 1)
            self.ips[app_name] = [r for r in self.ips.get(app_name, []) if r["Address"] != address]
            return _ok("")
        if key == ("config", "show"):
            return _ok(json.dumps(self.configs.get(app_name, {})))
        if key == ("apps", "list"):
            return _ok(json.dumps(self.apps))
        if key == ("machines", "list"):
            return _ok(json.dumps(self.machines.get(app_name, [])))
        if key in self.responses:
            return _ok(self.responses[key])
        return _ok("")

    def commands(self) -> List[Tuple[str, ...]]:
        """Subcommand pairs in call order, e.g. ``[("deploy", "-a"), ("ips", "list")]``."""
        return [c[:2] for c in self.calls]

    def find(self, *prefix: str) -> List[Tuple[str, ...]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]


def _ok(stdout: str) -> ProcessResult:
    return ProcessResult(stdout=stdout, stderr="", exit_code=0)


@pytest.fixture
def fly():
    return FakeFly()


@pytest.fixture
def workdir():
    """An empty working directory (no fly.toml unless a test writes one)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    return Config(
        global_config={
            "network": "browsers",
            "fly": {"org": "personal"},
            "router": {"image": "registry.fly.io/router:v1", "join_timeout": 1},
            "tailnet": {"api_key": "tskey-api-test"},
        },
        local_config={},
        env={},
    )


@pytest.fixture
def tailnet():
    return MagicMock(spec=TailnetClient)


@pytest.fixture
def make_dispatcher(fly, config, tailnet, workdir):
    """Factory: a dispatcher for a mode, wired to the fake fly CLI."""

    def _make(mode: Mode = Mode.SAFE, **overrides) -> ToolDispatcher:
        executor = CommandExecutor(mode, fly)
        handlers = OperationHandlers(
            mode,
            executor,
            overrides.get("config", config),
            tailnet=overrides.get("tailnet", tailnet),
            cwd=overrides.get("cwd", workdir),
        )
        return ToolDispatcher(
            ToolRegistry(mode),
            handlers.handlers(),
            results_dir=overrides.get("results_dir"),
            keep_results=overrides.get("keep_results", 200),
        )

    return _make


@pytest.fixture
def safe(make_dispatcher):
    return make_dispatcher(Mode.SAFE)


@pytest.fixture
def unsafe(make_dispatcher):
    return make_dispatcher(Mode.UNSAFE)


@pytest.fixture
def binary_script():
    """An executable that prints bytes which are not valid UTF-8."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "fly"
        path.write_text("#!/bin/sh\nprintf '\\377\\376binary'\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        yield path
