"""
Operation handlers.

Each handler takes validated arguments, runs guard checks, builds and runs
allow-listed ``fly`` commands through the ``CommandExecutor`` and returns a
``ToolResult`` whose ``data`` satisfies the operation's output contract.
Failures are raised as ``FlyGateError`` subclasses; the dispatcher turns them
into structured error results.
"""

from __future__ import annotations

import logging
import secrets
import shlex
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from flygate.commands.builder import CommandExecutor
from flygate.commands.policy import DeployPolicy, Mode
from flygate.errors import (
    ConfigError,
    FlyGateError,
    InputValidationError,
    PostDeployExposureError,
    PreflightRejectedError,
    RouterNotFoundError,
    TailnetError,
)
from flygate.guard.audit import DeployAuditor
from flygate.guard.checks import (
    DEFAULT_NETWORK,
    assert_confirmation,
    assert_not_protected,
    extract_subnet,
    is_router_app,
    router_app_name,
    router_network_from_name,
    router_tag,
)
from flygate.guard.preflight import find_descriptor, load_descriptor, scan
from flygate.platform.schemas import (
    FlyApp,
    FlyAppList,
    FlyAppStatus,
    FlyAuth,
    FlyCertList,
    FlyConfig,
    FlyIp,
    FlyIpList,
    FlyLogEntry,
    FlyMachine,
    FlyMachineList,
    FlyScaleShow,
    FlySecretList,
    FlyVolume,
    FlyVolumeList,
)
from flygate.tailnet.client import TailnetClient
from flygate.tools.schema import ToolResult
from flygate.validation.config import Config

logger = logging.getLogger(__name__)

Args = Dict[str, Any]
Handler = Callable[[Args], ToolResult]

COMMON_HANDLERS = (
    "fly_auth_status",
    "fly_app_status",
    "fly_app_list",
    "fly_app_create",
    "fly_app_destroy",
    "fly_machine_list",
    "fly_machine_start",
    "fly_machine_stop",
    "fly_machine_destroy",
    "fly_machine_exec",
    "fly_ip_list",
    "fly_ip_release",
    "fly_secrets_list",
    "fly_secrets_set",
    "fly_secrets_unset",
    "fly_scale_show",
    "fly_scale_count",
    "fly_scale_vm",
    "fly_volumes_list",
    "fly_volumes_create",
    "fly_volumes_destroy",
    "fly_config_show",
    "fly_logs",
    "fly_deploy",
)

SAFE_HANDLERS = (
    "fly_ip_allocate_flycast",
    "router_list",
    "router_status",
    "router_deploy",
    "router_destroy",
    "router_doctor",
    "router_logs",
)

UNSAFE_HANDLERS = (
    "fly_ip_allocate_v6",
    "fly_ip_allocate_v4",
    "fly_ip_allocate",
    "fly_certs_list",
    "fly_certs_add",
    "fly_certs_remove",
)


def _pairs(mapping: Optional[Dict[str, str]], flag: str) -> List[str]:
    """``{"A": "1"}, "-e"`` -> ``["-e", "A=1"]``"""
    tokens: List[str] = []
    for key, value in (mapping or {}).items():
        tokens += [flag, f"{key}={value}"]
    return tokens


def _log_entry(entry: FlyLogEntry) -> Dict[str, Any]:
    return {
        "timestamp": entry.timestamp,
        "level": entry.level or "",
        "message": entry.message,
        "region": entry.region or "",
        "instance": entry.instance or "",
    }


def _machine(m: FlyMachine) -> Dict[str, Any]:
    guest = m.guest
    return {
        "id": m.id,
        "name": m.name or "",
        "state": m.state,
        "region": m.region,
        "private_ip": m.private_ip or "",
        "cpu_kind": guest.cpu_kind,
        "cpus": guest.cpus,
        "memory_mb": guest.memory_mb,
    }


class OperationHandlers:
    """
    Handlers for one mode.

    Args:
        mode: Safe or unsafe; decides guards, deploy policy and which
            handlers ``handlers()`` returns.
        executor: Command executor bound to the same mode.
        config: Loaded configuration (network, org, router and tailnet settings).
        tailnet: Tailnet client for router operations. Built from the
            configured API key on first use when omitted.
        cwd: Directory searched for ``fly.toml`` during pre-flight.
    """

    def __init__(
        self,
        mode: Mode,
        executor: CommandExecutor,
        config: Optional[Config] = None,
        tailnet: Optional[TailnetClient] = None,
        cwd: Optional[Path] = None,
    ):
        if executor.mode is not mode:
            raise ValueError(f"executor mode {executor.mode.value} does not match {mode.value}")
        self.mode = mode
        self._fly = executor
        self._config = config or Config()
        self._tailnet = tailnet
        self._cwd = cwd
        self.deploy_policy = DeployPolicy.for_mode(mode)

    @property
    def safe(self) -> bool:
        return self.mode is Mode.SAFE

    def handlers(self) -> Dict[str, Handler]:
        names = COMMON_HANDLERS + (SAFE_HANDLERS if self.safe else UNSAFE_HANDLERS)
        return {name: getattr(self, name) for name in names}

    # ── Helpers ───────────────────────────────────────────────────────────

    def _guard(self, app: str) -> None:
        if self.safe:
            assert_not_protected(app)

    def _org(self, args: Args) -> Optional[str]:
        return args.get("org") or self._config.get_default_org()

    def _org_args(self, args: Args) -> List[str]:
        org = self._org(args)
        return ["--org", org] if org else []

    def _tailnet_client(self) -> TailnetClient:
        if self._tailnet is None:
            settings = self._config.merged.tailnet
            if not settings.api_key:
                raise ConfigError(
                    "No tailnet API key configured. Set tailnet.api_key or TAILSCALE_API_KEY."
                )
            self._tailnet = TailnetClient(settings.api_key, settings.tailnet, settings.api_base)
        return self._tailnet

    # ── Auth ──────────────────────────────────────────────────────────────

    def fly_auth_status(self, args: Args) -> ToolResult:
        try:
            auth = self._fly.call_json("auth_whoami", ["--json"], FlyAuth)
        except FlyGateError as exc:
            logger.debug("auth check failed: %s", exc)
            return ToolResult.ok(
                "Not authenticated. Run 'fly auth login' in your terminal.",
                {"authenticated": False},
            )
        return ToolResult.ok(f"Authenticated as {auth.email}", {"authenticated": True, "email": auth.email})

    # ── Apps ──────────────────────────────────────────────────────────────

    def fly_app_status(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        status: FlyAppStatus = self._fly.call_json("status", ["-a", app, "--json"], FlyAppStatus)
        machines = [
            {
                "id": m.id,
                "name": m.name or "",
                "state": m.state,
                "region": m.region,
                "private_ip": m.private_ip or "",
            }
            for m in status.machines or []
        ]
        return ToolResult.ok(
            f"App {status.name}: {status.status}",
            {
                "id": status.id,
                "name": status.name,
                "status": status.status,
                "deployed": status.deployed,
                "hostname": status.hostname,
                "machines": machines,
            },
        )

    def _list_apps(self, args: Args) -> List[FlyApp]:
        return self._fly.call_json("apps_list", ["--json", *self._org_args(args)], FlyAppList)

    def fly_app_list(self, args: Args) -> ToolResult:
        apps = self._list_apps(args)
        if self.safe:
            apps = [a for a in apps if not is_router_app(a.name)]
        normalized = [
            {
                "name": a.name,
                "status": a.status,
                "deployed": a.deployed,
                "hostname": a.hostname,
                "org": a.organization.slug,
                "network": a.network,
            }
            for a in apps
        ]
        return ToolResult.ok(f"{len(normalized)} app(s)", {"apps": normalized})

    def fly_app_create(self, args: Args) -> ToolResult:
        name = args["name"]
        self._guard(name)
        network = self._config.require_network() if self.safe else args.get("network")
        org = self._org(args)

        cmd = [name]
        if network:
            cmd += ["--network", network]
        if org:
            cmd += ["--org", org]
        self._fly.call("apps_create", cmd)
        return ToolResult.ok(
            f"Created app {name}" + (f" on network {network}" if network else ""),
            {"name": name, "network": network, "org": org or ""},
        )

    def fly_app_destroy(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        assert_confirmation(args["confirm"], app)
        self._fly.call("apps_destroy", [app, "--yes"])
        return ToolResult.ok(f"Destroyed app {app}", {"ok": True, "app": app})

    # ── Machines ──────────────────────────────────────────────────────────

    def fly_machine_list(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        machines = self._fly.call_json("machines_list", ["-a", app, "--json"], FlyMachineList)
        return ToolResult.ok(f"{len(machines)} machine(s)", {"machines": [_machine(m) for m in machines]})

    def _machine_action(self, args: Args, command: str, verb: str, extra: Sequence[str] = ()) -> ToolResult:
        app, machine_id = args["app"], args["machine_id"]
        self._guard(app)
        self._fly.call(command, [machine_id, "-a", app, *extra])
        return ToolResult.ok(f"{verb} machine {machine_id}", {"ok": True, "machine_id": machine_id})

    def fly_machine_start(self, args: Args) -> ToolResult:
        return self._machine_action(args, "machines_start", "Started")

    def fly_machine_stop(self, args: Args) -> ToolResult:
        return self._machine_action(args, "machines_stop", "Stopped")

    def fly_machine_destroy(self, args: Args) -> ToolResult:
        extra = ["--force"] if args.get("force") else []
        return self._machine_action(args, "machines_destroy", "Destroyed", extra)

    def fly_machine_exec(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        if not args["command"]:
            raise InputValidationError("command must contain at least one element")
        # The remote command travels as a single argument.
        remote = shlex.join(args["command"])
        result = self._fly.call("machine_exec", [args["machine_id"], remote, "-a", app], check=False)
        return ToolResult.ok(
            result.stdout or result.stderr or "(no output)",
            {"stdout": result.stdout, "stderr": result.stderr, "exit_code": result.exit_code},
        )

    # ── IPs ───────────────────────────────────────────────────────────────

    def fly_ip_list(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        ips = self._fly.call_json("ips_list", ["-a", app, "--json"], FlyIpList)
        normalized = [
            {
                "address": ip.address,
                "type": ip.type,
                "region": ip.region or "",
                "network": ip.network or "",
                "created_at": ip.created_at or "",
            }
            for ip in ips
        ]
        return ToolResult.ok(f"{len(normalized)} IP(s)", {"ips": normalized})

    def fly_ip_release(self, args: Args) -> ToolResult:
        app, address = args["app"], args["address"]
        self._guard(app)
        self._fly.call("ips_release", [address, "-a", app, "--yes"])
        return ToolResult.ok(f"Released {address}", {"ok": True, "address": address})

    def fly_ip_allocate_flycast(self, args: Args) -> ToolResult:
        app, network = args["app"], args["network"]
        self._guard(app)
        ip: FlyIp = self._fly.call_json(
            "ips_allocate_v6",
            ["--private", "--network", network, "-a", app, "--json"],
            FlyIp,
        )
        return ToolResult.ok(
            f"Allocated Flycast IP {ip.address} on network {network}",
            {"address": ip.address, "type": ip.type, "network": network},
        )

    def fly_ip_allocate_v6(self, args: Args) -> ToolResult:
        cmd = ["-a", args["app"], "--json"]
        if args.get("private"):
            cmd.append("--private")
        if args.get("network"):
            cmd += ["--network", args["network"]]
        if args.get("region"):
            cmd += ["--region", args["region"]]
        if args.get("org"):
            cmd += ["--org", args["org"]]
        ip: FlyIp = self._fly.call_json("ips_allocate_v6", cmd, FlyIp)
        return ToolResult.ok(
            f"Allocated {ip.type} {ip.address}",
            {"address": ip.address, "type": ip.type, "region": ip.region, "network": ip.network},
        )

    def fly_ip_allocate_v4(self, args: Args) -> ToolResult:
        cmd = ["-a", args["app"], "--json"]
        if args.get("shared"):
            cmd.append("--shared")
        if args.get("region"):
            cmd += ["--region", args["region"]]
        ip: FlyIp = self._fly.call_json("ips_allocate_v4", cmd, FlyIp)
        return ToolResult.ok(
            f"Allocated {ip.type} {ip.address}",
            {"address": ip.address, "type": ip.type, "region": ip.region, "network": ip.network},
        )

    def fly_ip_allocate(self, args: Args) -> ToolResult:
        cmd = ["-a", args["app"], "--json"]
        if args.get("region"):
            cmd += ["--region", args["region"]]
        decoded = self._fly.call_json("ips_allocate", cmd, Union[FlyIpList, FlyIp])
        ips = decoded if isinstance(decoded, list) else [decoded]
        normalized = [{"address": ip.address, "type": ip.type} for ip in ips]
        return ToolResult.ok(f"Allocated {len(normalized)} IP(s)", {"ips": normalized})

    # ── Secrets ───────────────────────────────────────────────────────────

    def fly_secrets_list(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        found = self._fly.call_json("secrets_list", ["-a", app, "--json"], FlySecretList)
        normalized = [{"name": s.name, "digest": s.digest, "created_at": s.created_at} for s in found]
        return ToolResult.ok(f"{len(normalized)} secret(s)", {"secrets": normalized})

    def fly_secrets_set(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        pairs = [f"{k}={v}" for k, v in args["secrets"].items()]
        if not pairs:
            raise InputValidationError("secrets must contain at least one KEY: VALUE pair")
        cmd = [*pairs, "-a", app]
        if args.get("stage"):
            cmd.append("--stage")
        self._fly.call("secrets_set", cmd)
        return ToolResult.ok(f"Set {len(pairs)} secret(s)", {"ok": True, "count": len(pairs)})

    def fly_secrets_unset(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        keys = args["keys"]
        if not keys:
            raise InputValidationError("keys must contain at least one secret name")
        self._fly.call("secrets_unset", [*keys, "-a", app])
        return ToolResult.ok(f"Unset {len(keys)} secret(s)", {"ok": True, "count": len(keys)})

    # ── Scale ─────────────────────────────────────────────────────────────

    def fly_scale_show(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        processes = self._fly.call_json("scale_show", ["-a", app, "--json"], FlyScaleShow)
        normalized = [
            {
                "name": p.process,
                "count": p.count,
                "cpu_kind": p.cpu_kind,
                "cpus": p.cpus,
                "memory_mb": p.memory,
                "regions": p.regions or {},
            }
            for p in processes
        ]
        return ToolResult.ok(f"{len(normalized)} process group(s)", {"processes": normalized})

    def fly_scale_count(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        cmd = [str(args["count"]), "-a", app, "--yes"]
        if args.get("region"):
            cmd += ["--region", args["region"]]
        if args.get("process_group"):
            cmd += ["--process-group", args["process_group"]]
        self._fly.call("scale_count", cmd)
        return ToolResult.ok(f"Scaled to {args['count']} machine(s)", {"ok": True})

    def fly_scale_vm(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        cmd = [args["size"], "-a", app, "--yes"]
        if args.get("memory"):
            cmd += ["--vm-memory", str(args["memory"])]
        self._fly.call("scale_vm", cmd)
        return ToolResult.ok(f"Scaled VM to {args['size']}", {"ok": True})

    # ── Volumes ───────────────────────────────────────────────────────────

    def fly_volumes_list(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        volumes = self._fly.call_json("volumes_list", ["-a", app, "--json"], FlyVolumeList)
        normalized = [
            {
                "id": v.id,
                "name": v.name,
                "state": v.state,
                "size_gb": v.size_gb,
                "region": v.region,
                "encrypted": v.encrypted,
                "attached_machine_id": v.attached_machine_id,
            }
            for v in volumes
        ]
        return ToolResult.ok(f"{len(normalized)} volume(s)", {"volumes": normalized})

    def fly_volumes_create(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        cmd = [args.get("name", "data"), "-a", app, "--region", args["region"], "--json", "--yes"]
        if args.get("size_gb"):
            cmd += ["--size", str(args["size_gb"])]
        volume: FlyVolume = self._fly.call_json("volumes_create", cmd, FlyVolume)
        return ToolResult.ok(
            f"Created volume {volume.id}",
            {"id": volume.id, "name": volume.name, "size_gb": volume.size_gb, "region": volume.region},
        )

    def fly_volumes_destroy(self, args: Args) -> ToolResult:
        app, volume_id = args["app"], args["volume_id"]
        self._guard(app)
        assert_confirmation(args["confirm"], volume_id)
        self._fly.call("volumes_destroy", [volume_id, "-a", app, "--yes"])
        return ToolResult.ok(f"Destroyed volume {volume_id}", {"ok": True, "volume_id": volume_id})

    # ── Config & logs ─────────────────────────────────────────────────────

    def fly_config_show(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        config = self._fly.call_json("config_show", ["-a", app], FlyConfig)
        return ToolResult.ok(f"Config for {app}", {"config": config})

    def _logs(self, app: str, region: Optional[str] = None, machine: Optional[str] = None) -> List[Dict]:
        cmd = ["-a", app, "--no-tail", "--json"]
        if region:
            cmd += ["--region", region]
        if machine:
            cmd += ["--machine", machine]
        return [_log_entry(e) for e in self._fly.call_ndjson("logs", cmd, FlyLogEntry)]

    def fly_logs(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        entries = self._logs(app, args.get("region"), args.get("machine"))
        return ToolResult.ok(f"{len(entries)} log entries", {"entries": entries})

    # ── Deploy ────────────────────────────────────────────────────────────

    def _preflight(self, args: Args) -> List[str]:
        """Scan the descriptor, if one is available; returns its warnings."""
        descriptor = find_descriptor(args.get("config"), self._cwd)
        if descriptor is None:
            logger.info("no descriptor for %s; relying on post-deploy audit", args["app"])
            return []
        result = scan(load_descriptor(descriptor))
        if not result.ok:
            logger.warning("pre-flight rejected deploy of %s: %s", args["app"], result.errors)
            raise PreflightRejectedError(result.errors, result.warnings)
        return result.warnings

    def fly_deploy(self, args: Args) -> ToolResult:
        app = args["app"]
        self._guard(app)
        policy = self.deploy_policy

        warnings = self._preflight(args) if policy.preflight else []

        cmd = ["-a", app, "--yes"]
        if args.get("config"):
            cmd += ["--config", args["config"]]
        if args.get("image"):
            cmd += ["--image", args["image"]]
        if args.get("dockerfile"):
            cmd += ["--dockerfile", args["dockerfile"]]
        if args.get("region"):
            cmd += ["--primary-region", args["region"]]
        if args.get("strategy"):
            cmd += ["--strategy", args["strategy"]]
        for name, flag in policy.caller_flags:
            if args.get(name):
                cmd.append(flag)
        if args.get("ha") is False:
            cmd.append("--ha=false")
        cmd += _pairs(args.get("env"), "-e")
        cmd += _pairs(args.get("build_args"), "--build-arg")

        self._fly.call("deploy", cmd)
        if not policy.audit:
            return ToolResult.ok(f"Deployed {app}", {"ok": True})

        audit = DeployAuditor(self._fly).audit(app)
        audit.warnings[:0] = warnings
        if audit.exposed:
            raise PostDeployExposureError(app, audit)
        return ToolResult.ok(f"Deployed {app}", {"ok": True, "audit": audit.model_dump()})

    # ── Certs ─────────────────────────────────────────────────────────────

    def fly_certs_list(self, args: Args) -> ToolResult:
        certs = self._fly.call_json("certs_list", ["-a", args["app"], "--json"], FlyCertList)
        normalized = [{"hostname": c.hostname, "created_at": c.created_at} for c in certs]
        return ToolResult.ok(f"{len(normalized)} certificate(s)", {"certificates": normalized})

    def fly_certs_add(self, args: Args) -> ToolResult:
        hostname = args["hostname"]
        self._fly.call("certs_add", [hostname, "-a", args["app"]])
        return ToolResult.ok(f"Added certificate for {hostname}", {"hostname": hostname})

    def fly_certs_remove(self, args: Args) -> ToolResult:
        hostname = args["hostname"]
        self._fly.call("certs_remove", [hostname, "-a", args["app"], "--yes"])
        return ToolResult.ok(f"Removed certificate for {hostname}", {"ok": True, "hostname": hostname})

    # ── Routers ───────────────────────────────────────────────────────────
    # Router apps are protected from the fly_* operations above; these
    # handlers are the only ones allowed to touch them.

    def _routers(self, args: Args) -> List[FlyApp]:
        return [
            a for a in self._list_apps(args)
            if is_router_app(a.name) and a.network != DEFAULT_NETWORK
        ]

    @staticmethod
    def _router_network(app: FlyApp) -> str:
        return app.network or router_network_from_name(app.name)

    def _find_router(self, args: Args, network: str) -> Optional[FlyApp]:
        for app in self._routers(args):
            if self._router_network(app) == network:
                return app
        return None

    def _require_router(self, args: Args) -> FlyApp:
        router = self._find_router(args, args["network"])
        if router is None:
            raise RouterNotFoundError(args["network"])
        return router

    def _router_machine(self, app: str) -> Optional[FlyMachine]:
        machines = self._fly.call_json("machines_list", ["-a", app, "--json"], FlyMachineList)
        with_ip = [m for m in machines if m.private_ip]
        return (with_ip or machines or [None])[0]

    def router_list(self, args: Args) -> ToolResult:
        routers = [
            {
                "network": self._router_network(a),
                "app_name": a.name,
                "region": None,
                "machine_state": a.status,
                "private_ip": None,
                "subnet": None,
            }
            for a in self._routers(args)
        ]
        return ToolResult.ok(f"{len(routers)} router(s)", {"routers": routers})

    def router_status(self, args: Args) -> ToolResult:
        network = args["network"]
        router = self._require_router(args)
        machine = self._router_machine(router.name)
        private_ip = machine.private_ip if machine else None
        return ToolResult.ok(
            f"Router for network '{network}'",
            {
                "network": network,
                "app_name": router.name,
                "region": machine.region if machine else None,
                "machine_state": machine.state if machine else router.status,
                "private_ip": private_ip,
                "subnet": extract_subnet(private_ip) if private_ip else None,
                "tag": router_tag(network),
            },
        )

    def router_deploy(self, args: Args) -> ToolResult:
        network = args["network"]
        if network == DEFAULT_NETWORK:
            raise InputValidationError("Routers must be deployed onto a custom network, not 'default'.")
        settings = self._config.merged.router
        if not settings.image:
            raise ConfigError("No router image configured. Set router.image in .flygate/config.yaml.")
        if self._find_router(args, network) is not None:
            raise InputValidationError(f"A router already exists for network '{network}'.")

        api_key = self._config.get_tailnet_api_key()
        if not api_key:
            raise ConfigError("No tailnet API key configured. Set tailnet.api_key or TAILSCALE_API_KEY.")
        tailnet = self._tailnet_client()
        if not tailnet.validate_api_key():
            raise TailnetError("Tailnet API key was rejected.")

        app_name = router_app_name(network, secrets.token_hex(3))
        tag = router_tag(network)
        region = args.get("region") or settings.region
        logger.info("deploying router %s onto network %s", app_name, network)

        self._fly.call("apps_create", [app_name, "--network", network, *self._org_args(args)])
        self._fly.call(
            "secrets_set",
            [
                f"TAILSCALE_API_TOKEN={api_key}",
                f"NETWORK_NAME={network}",
                f"TAILSCALE_TAGS={tag}",
                "-a",
                app_name,
                "--stage",
            ],
        )
        self._fly.call(
            "deploy",
            ["-a", app_name, "--yes", "--image", settings.image, "--primary-region", region],
        )
        audit = DeployAuditor(self._fly).audit(app_name)
        if audit.exposed:
            raise PostDeployExposureError(app_name, audit)

        device = tailnet.wait_for_device(app_name, timeout=settings.join_timeout)
        machine = self._router_machine(app_name)
        subnet = extract_subnet(machine.private_ip) if machine and machine.private_ip else None

        if args.get("self_approve") and subnet:
            tailnet.approve_routes(device.id, [subnet])
        if device.addresses:
            tailnet.set_split_dns(network, [device.addresses[0]])

        return ToolResult.ok(
            f"Router {app_name} deployed; apps on '{network}' resolve as <app>.{network}",
            {"network": network, "app_name": app_name, "tag": tag, "subnet": subnet},
        )

    def router_destroy(self, args: Args) -> ToolResult:
        network = args["network"]
        router = self._require_router(args)
        steps: List[Dict[str, Any]] = []

        def attempt(step: str, fn: Callable[[], Any]) -> None:
            try:
                fn()
            except FlyGateError as exc:
                logger.warning("router_destroy %s: %s", step, exc.message)
                steps.append({"step": step, "ok": False, "detail": exc.message})
                return
            steps.append({"step": step, "ok": True, "detail": ""})

        def remove_device() -> None:
            device = self._tailnet_client().get_device_by_hostname(router.name)
            if device is not None:
                self._tailnet_client().delete_device(device.id)

        attempt("clear_split_dns", lambda: self._tailnet_client().clear_split_dns(network))
        attempt("delete_device", remove_device)
        self._fly.call("apps_destroy", [router.name, "--yes"])
        steps.append({"step": "destroy_app", "ok": True, "detail": router.name})

        return ToolResult.ok(
            f"Router {router.name} destroyed",
            {"ok": True, "network": network, "steps": steps},
        )

    def router_doctor(self, args: Args) -> ToolResult:
        checks: List[Dict[str, Any]] = []

        def check(name: str, ok: bool, hint: str) -> None:
            checks.append({"name": name, "ok": ok, "hint": "" if ok else hint})

        check(
            "Tailscale CLI installed",
            shutil.which("tailscale") is not None,
            "Install from https://tailscale.com/download",
        )

        tailnet: Optional[TailnetClient] = None
        try:
            tailnet = self._tailnet_client()
        except ConfigError:
            check("Tailnet API key configured", False, "Set tailnet.api_key or TAILSCALE_API_KEY")
        else:
            check("Tailnet API key valid", tailnet.validate_api_key(), "Create a new API access token")

        network = args.get("network")
        try:
            found = self._routers(args)
        except FlyGateError as exc:
            check("Fly.io apps listed", False, f"{exc.message} Run fly_auth_status to check the CLI login.")
            found = None

        routers: List[FlyApp] = []
        if found is not None and network:
            routers = [r for r in found if self._router_network(r) == network][:1]
            check(f"Router for '{network}' exists", bool(routers), "Run router_deploy")
        elif found is not None:
            routers = found
            check("At least one router exists", bool(routers), "Run router_deploy")

        for router in routers:
            label = self._router_network(router)
            try:
                machines = self._fly.call_json("machines_list", ["-a", router.name, "--json"], FlyMachineList)
            except FlyGateError as exc:
                check(f"Router '{label}' machines listed", False, exc.message)
                machines = []
            running = any(m.state in ("started", "running") for m in machines)
            check(f"Router '{label}' running", running, f"Check router_logs for network '{label}'")
            if tailnet is not None:
                try:
                    device = tailnet.get_device_by_hostname(router.name)
                except TailnetError as exc:
                    logger.debug("device lookup failed: %s", exc)
                    device = None
                check(
                    f"Router '{label}' in tailnet",
                    device is not None,
                    "Router may still be starting, or check router_logs",
                )

        healthy = all(c["ok"] for c in checks)
        failed = sum(not c["ok"] for c in checks)
        summary = "All checks passed." if healthy else f"{failed} issue(s) found."
        return ToolResult.ok(summary, {"checks": checks, "healthy": healthy})

    def router_logs(self, args: Args) -> ToolResult:
        router = self._require_router(args)
        entries = self._logs(router.name)
        return ToolResult.ok(f"{len(entries)} router log entries", {"entries": entries})
