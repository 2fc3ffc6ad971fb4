"""
Operation definitions.

Four groups, composed per mode by ``flygate.tools.registry.build_tools``:

* common      identical in both modes (reads, machine lifecycle, secrets, ...)
* templated   same name in both modes, mode-specific description or contract
* safe-only   router management and Flycast-only IP allocation
* unsafe-only public IPs and TLS certificates
"""

from __future__ import annotations

from typing import Dict, List

from flygate.commands.policy import Mode
from flygate.tools.schema import SideEffect, ToolDef, ToolParam

ToolMap = Dict[str, ToolDef]

READ_ONLY = SideEffect.READ_ONLY
MUTATING = SideEffect.MUTATING
DESTRUCTIVE = SideEffect.DESTRUCTIVE


# ── Shared input fragments ───────────────────────────────────────────────

APP = ToolParam(name="app", description="The Fly.io app name.", required=True)
ORG = ToolParam(
    name="org",
    description="Fly.io organization slug. If omitted, the configured org is used.",
)
REGION = ToolParam(name="region", description="Fly.io region (e.g. 'iad', 'sea', 'lhr').")
MACHINE_ID = ToolParam(name="machine_id", description="The machine ID (from fly_machine_list).", required=True)
NETWORK = ToolParam(
    name="network",
    description="The custom private network name (e.g. 'browsers', 'infra').",
    required=True,
)
VOLUME_ID = ToolParam(name="volume_id", description="The volume ID (from fly_volumes_list).", required=True)
ADDRESS = ToolParam(name="address", description="The exact IP address (from fly_ip_list).", required=True)

DEPLOY_INPUTS: List[ToolParam] = [
    ToolParam(
        name="app",
        description="The Fly.io app name to deploy to. Must already exist (use fly_app_create first).",
        required=True,
    ),
    ToolParam(
        name="image",
        description="Docker image to deploy (e.g. 'registry.fly.io/my-app:latest'). Mutually exclusive with dockerfile.",
    ),
    ToolParam(
        name="dockerfile",
        description="Path to a Dockerfile to build and deploy. Mutually exclusive with image.",
    ),
    ToolParam(
        name="config",
        description="Path to the fly.toml to deploy with. Defaults to ./fly.toml when present.",
    ),
    ToolParam(name="region", description="Primary region for the deployment (e.g. 'iad')."),
    ToolParam(
        name="strategy",
        description="Deployment strategy: rolling (default), immediate, canary or bluegreen.",
        enum=("canary", "rolling", "bluegreen", "immediate"),
    ),
    ToolParam(
        name="env",
        type="object",
        values="string",
        description="Environment variables as KEY: VALUE pairs. NOT secrets; use fly_secrets_set for those.",
    ),
    ToolParam(
        name="build_args",
        type="object",
        values="string",
        description="Docker build-time arguments as KEY: VALUE pairs. Only used with a Dockerfile.",
    ),
]


# ── Shared output fragments ──────────────────────────────────────────────


def _out(name: str, type_: str = "string", required: bool = True, **kw) -> ToolParam:
    return ToolParam(name=name, type=type_, required=required, **kw)


OK = _out("ok", "boolean")
MACHINES = _out("machines", "array", items="object")
IPS = _out("ips", "array", items="object")
LOG_ENTRIES = _out("entries", "array", items="object")
ALLOCATED_IP = [
    _out("address"),
    _out("type"),
    _out("region", required=False, nullable=True),
    _out("network", required=False, nullable=True),
]


def _tool(name: str, description: str, side_effect: SideEffect, params=None, outputs=None) -> ToolDef:
    return ToolDef(
        name=name,
        description=description,
        params=list(params or []),
        outputs=list(outputs or []),
        side_effect=side_effect,
    )


# ── Common ───────────────────────────────────────────────────────────────

COMMON: ToolMap = {
    t.name: t
    for t in [
        _tool(
            "fly_auth_status",
            "Check whether the fly CLI is authenticated and return the current user identity. "
            "If not authenticated, returns authenticated: false; the user must run "
            "'fly auth login' in a terminal first.",
            READ_ONLY,
            outputs=[_out("authenticated", "boolean"), _out("email", required=False)],
        ),
        _tool(
            "fly_app_status",
            "Get detailed status of an app: deployment state, hostname, and its machines "
            "with their states, regions and private IPs.",
            READ_ONLY,
            params=[APP],
            outputs=[
                _out("id"),
                _out("name"),
                _out("status"),
                _out("deployed", "boolean"),
                _out("hostname"),
                MACHINES,
            ],
        ),
        _tool(
            "fly_machine_list",
            "List all machines (VMs) for an app with ID, name, state, region, private IPv6 "
            "and VM size. Use it to get machine IDs for start/stop/destroy.",
            READ_ONLY,
            params=[APP],
            outputs=[MACHINES],
        ),
        _tool(
            "fly_machine_start",
            "Start a stopped or suspended machine.",
            MUTATING,
            params=[APP, MACHINE_ID],
            outputs=[OK, _out("machine_id")],
        ),
        _tool(
            "fly_machine_stop",
            "Stop a running machine gracefully (SIGTERM). Restart it with fly_machine_start.",
            MUTATING,
            params=[APP, MACHINE_ID],
            outputs=[OK, _out("machine_id")],
        ),
        _tool(
            "fly_machine_destroy",
            "Permanently destroy a machine and its local (non-volume) state. Attached volumes "
            "are NOT destroyed. Use force: true for a machine that won't stop. Cannot be undone.",
            DESTRUCTIVE,
            params=[
                APP,
                MACHINE_ID,
                ToolParam(name="force", type="boolean", description="Force-kill regardless of current state."),
            ],
            outputs=[OK, _out("machine_id")],
        ),
        _tool(
            "fly_machine_exec",
            "Run a single command on a running machine and return its output. Not an "
            "interactive shell: chain with '&&' or use 'sh -c \"...\"'.",
            READ_ONLY,
            params=[
                APP,
                MACHINE_ID,
                ToolParam(
                    name="command",
                    type="array",
                    items="string",
                    required=True,
                    description="The command as an argument list, e.g. ['ls', '-la', '/app'].",
                ),
            ],
            outputs=[_out("stdout"), _out("stderr"), _out("exit_code", "integer")],
        ),
        _tool(
            "fly_ip_list",
            "List all IP addresses allocated to an app: address, type (private_v6 for "
            "Flycast, v4/v6 for public), region and network. Use it to audit exposure.",
            READ_ONLY,
            params=[APP],
            outputs=[IPS],
        ),
        _tool(
            "fly_ip_release",
            "Release (deallocate) an IP address from an app, given the exact address from fly_ip_list.",
            DESTRUCTIVE,
            params=[APP, ADDRESS],
            outputs=[OK, _out("address")],
        ),
        _tool(
            "fly_secrets_list",
            "List names, digests and creation timestamps of an app's secrets. Values are never returned.",
            READ_ONLY,
            params=[APP],
            outputs=[_out("secrets", "array", items="object")],
        ),
        _tool(
            "fly_secrets_set",
            "Set one or more encrypted secrets on an app. Triggers a redeploy unless stage: true.",
            MUTATING,
            params=[
                APP,
                ToolParam(
                    name="secrets",
                    type="object",
                    values="string",
                    required=True,
                    description="Secrets as KEY: VALUE pairs.",
                ),
                ToolParam(name="stage", type="boolean", description="Stage without deploying."),
            ],
            outputs=[OK, _out("count", "integer")],
        ),
        _tool(
            "fly_secrets_unset",
            "Remove one or more secrets from an app. The app is redeployed to pick up the change.",
            MUTATING,
            params=[
                APP,
                ToolParam(
                    name="keys",
                    type="array",
                    items="string",
                    required=True,
                    description="Secret names to remove.",
                ),
            ],
            outputs=[OK, _out("count", "integer")],
        ),
        _tool(
            "fly_scale_show",
            "Show VM size, process groups and machine counts per region for an app.",
            READ_ONLY,
            params=[APP],
            outputs=[_out("processes", "array", items="object")],
        ),
        _tool(
            "fly_scale_count",
            "Set the number of machines for an app, optionally per region or process group. "
            "Capped at 20.",
            MUTATING,
            params=[
                APP,
                ToolParam(
                    name="count",
                    type="integer",
                    required=True,
                    minimum=0,
                    maximum=20,
                    description="Target number of machines. 0 removes all machines.",
                ),
                ToolParam(name="region", description="Only scale in this region."),
                ToolParam(name="process_group", description="Only scale this process group."),
            ],
            outputs=[OK],
        ),
        _tool(
            "fly_scale_vm",
            "Change the VM size for an app's machines (e.g. 'shared-cpu-1x', 'performance-2x').",
            MUTATING,
            params=[
                APP,
                ToolParam(name="size", required=True, description="VM size name."),
                ToolParam(name="memory", type="integer", description="Override memory in MB."),
            ],
            outputs=[OK],
        ),
        _tool(
            "fly_volumes_list",
            "List an app's volumes with ID, name, size, region, state and attached machine.",
            READ_ONLY,
            params=[APP],
            outputs=[_out("volumes", "array", items="object")],
        ),
        _tool(
            "fly_volumes_create",
            "Create a persistent, encrypted volume in a region. Mount it via [[mounts]] in fly.toml.",
            MUTATING,
            params=[
                APP,
                ToolParam(name="name", description="Volume name. Defaults to 'data'."),
                ToolParam(name="region", required=True, description="Region; must match where machines run."),
                ToolParam(
                    name="size_gb",
                    type="integer",
                    minimum=1,
                    maximum=500,
                    description="Size in GB. Default 1.",
                ),
            ],
            outputs=[_out("id"), _out("name"), _out("size_gb", "integer"), _out("region")],
        ),
        _tool(
            "fly_volumes_destroy",
            "Permanently destroy a volume. ALL DATA is lost. 'confirm' must exactly match the volume ID.",
            DESTRUCTIVE,
            params=[
                APP,
                VOLUME_ID,
                ToolParam(name="confirm", required=True, description="Must exactly match volume_id."),
            ],
            outputs=[OK, _out("volume_id")],
        ),
        _tool(
            "fly_config_show",
            "Show the merged live configuration of an app (fly.toml merged with platform defaults).",
            READ_ONLY,
            params=[APP],
            outputs=[_out("config", "object")],
        ),
        _tool(
            "fly_logs",
            "Fetch the recent log buffer of an app as structured entries, optionally filtered "
            "by region or machine. Poll repeatedly; this is not a stream.",
            READ_ONLY,
            params=[
                APP,
                ToolParam(name="region", description="Filter logs to a region."),
                ToolParam(name="machine", description="Filter logs to a machine ID."),
            ],
            outputs=[LOG_ENTRIES],
        ),
    ]
}


# ── Templated ────────────────────────────────────────────────────────────


def app_list_tool(mode: Mode) -> ToolMap:
    description = "List all Fly.io apps in the organization with name, status and organization."
    if mode is Mode.SAFE:
        description += " Results exclude router infrastructure apps (router-* prefix)."
    return {
        "fly_app_list": _tool(
            "fly_app_list",
            description,
            READ_ONLY,
            params=[ORG],
            outputs=[_out("apps", "array", items="object")],
        )
    }


def app_create_tool(mode: Mode) -> ToolMap:
    name = ToolParam(name="name", required=True, description="Name for the new app. Globally unique.")
    if mode is Mode.SAFE:
        return {
            "fly_app_create": _tool(
                "fly_app_create",
                "Create a new app on the configured custom private network. The app has NO "
                "public IPs and is only reachable via Flycast. --network is always set to the "
                "configured network.",
                MUTATING,
                params=[name, ORG],
                outputs=[_out("name"), _out("network"), _out("org")],
            )
        }
    return {
        "fly_app_create": _tool(
            "fly_app_create",
            "Create a new app, optionally on a custom private network (6PN).",
            MUTATING,
            params=[
                name,
                ORG,
                ToolParam(name="network", description="Custom private network name (--network)."),
            ],
            outputs=[_out("name"), _out("network", required=False, nullable=True), _out("org")],
        )
    }


def app_destroy_tool(mode: Mode) -> ToolMap:
    description = (
        "Permanently destroy an app with all its machines, volumes and IPs. 'confirm' must "
        "exactly match the app name. Cannot be undone."
    )
    if mode is Mode.SAFE:
        description += " Cannot target router infrastructure apps (router-* prefix)."
    return {
        "fly_app_destroy": _tool(
            "fly_app_destroy",
            description,
            DESTRUCTIVE,
            params=[APP, ToolParam(name="confirm", required=True, description="Must exactly match app.")],
            outputs=[OK, _out("app")],
        )
    }


def deploy_tool(mode: Mode) -> ToolMap:
    if mode is Mode.SAFE:
        return {
            "fly_deploy": _tool(
                "fly_deploy",
                "Deploy an app from a Docker image or Dockerfile.\n\n"
                "Safety enforcement:\n"
                "- --no-public-ips and --flycast are ALWAYS passed\n"
                "- Pre-flight: the fly.toml (if any) is scanned for force_https and public TLS handlers\n"
                "- Post-flight: any public IPs are released immediately and the deploy is flagged as an error\n"
                "- Post-flight: the merged config is inspected for exposure signals\n\n"
                "Returns an audit with public IPs released, Flycast allocations and warnings.",
                MUTATING,
                params=DEPLOY_INPUTS,
                outputs=[OK, _out("audit", "object")],
            )
        }
    return {
        "fly_deploy": _tool(
            "fly_deploy",
            "Deploy an app from a Docker image or Dockerfile. no_public_ips and flycast control "
            "network exposure.",
            MUTATING,
            params=DEPLOY_INPUTS
            + [
                ToolParam(name="no_public_ips", type="boolean", description="Pass --no-public-ips."),
                ToolParam(name="flycast", type="boolean", description="Pass --flycast."),
                ToolParam(name="ha", type="boolean", description="If false, pass --ha=false."),
            ],
            outputs=[OK],
        )
    }


def ip_allocate_tools(mode: Mode) -> ToolMap:
    if mode is Mode.SAFE:
        return {
            "fly_ip_allocate_flycast": _tool(
                "fly_ip_allocate_flycast",
                "Allocate a private Flycast IPv6 for an app, reachable from one named private "
                "network. The ONLY way to make an app reachable; 'network' is REQUIRED.",
                MUTATING,
                params=[
                    APP,
                    NETWORK.model_copy(
                        update={"description": "The private network that will reach this app via Flycast."}
                    ),
                ],
                outputs=[_out("address"), _out("type"), _out("network")],
            )
        }
    return {
        "fly_ip_allocate_v6": _tool(
            "fly_ip_allocate_v6",
            "Allocate an IPv6 for an app. PUBLIC unless private: true (Flycast, optionally "
            "scoped to a network).",
            MUTATING,
            params=[
                APP,
                ToolParam(name="private", type="boolean", description="Allocate a private Flycast IPv6."),
                ToolParam(name="network", description="Custom network for Flycast (with private: true)."),
                REGION,
                ORG.model_copy(update={"description": "For cross-org Flycast: the requesting org."}),
            ],
            outputs=ALLOCATED_IP,
        ),
        "fly_ip_allocate_v4": _tool(
            "fly_ip_allocate_v4",
            "Allocate a public IPv4 for an app. shared: true for a cheaper shared address.",
            MUTATING,
            params=[
                APP,
                ToolParam(name="shared", type="boolean", description="Allocate a shared IPv4."),
                REGION,
            ],
            outputs=ALLOCATED_IP,
        ),
    }


# ── Safe-only ────────────────────────────────────────────────────────────

ROUTER_SUMMARY = [
    _out("network"),
    _out("app_name"),
    _out("region", required=False, nullable=True),
    _out("machine_state", required=False, nullable=True),
    _out("private_ip", required=False, nullable=True),
    _out("subnet", required=False, nullable=True),
]

SAFE_ONLY: ToolMap = {
    t.name: t
    for t in [
        _tool(
            "router_list",
            "Discover all subnet routers in the organization. Each bridges one custom private "
            "network to the tailnet.",
            READ_ONLY,
            params=[ORG],
            outputs=[_out("routers", "array", items="object")],
        ),
        _tool(
            "router_status",
            "Detailed status of the router for a network: app, region, machine state, private "
            "IPv6, /48 subnet and tag.",
            READ_ONLY,
            params=[NETWORK, ORG],
            outputs=ROUTER_SUMMARY + [_out("tag", required=False, nullable=True)],
        ),
        _tool(
            "router_deploy",
            "Deploy a subnet router onto a custom private network: create the app on the "
            "network, stage secrets, deploy the router image, wait for the tailnet device and "
            "configure split DNS. Apps on the network become reachable as '<app>.<network>'.",
            MUTATING,
            params=[
                NETWORK.model_copy(update={"description": "Network name; becomes the tailnet TLD."}),
                ORG,
                REGION.model_copy(update={"description": "Region for the router machine. Default: 'iad'."}),
                ToolParam(
                    name="self_approve",
                    type="boolean",
                    description="Approve the subnet route via the tailnet API instead of autoApprovers.",
                ),
            ],
            outputs=[
                _out("network"),
                _out("app_name"),
                _out("tag", required=False, nullable=True),
                _out("subnet", required=False, nullable=True),
            ],
        ),
        _tool(
            "router_destroy",
            "Tear down the router for a network: clear split DNS, remove the tailnet device, "
            "destroy the router app. Apps on the network are NOT destroyed.",
            DESTRUCTIVE,
            params=[NETWORK, ORG],
            outputs=[OK, _out("network"), _out("steps", "array", items="object")],
        ),
        _tool(
            "router_doctor",
            "Health checks for one router (or all): router exists and is running, device "
            "visible in the tailnet, credentials available.",
            READ_ONLY,
            params=[
                ToolParam(name="network", description="Network to check. All routers if omitted."),
                ORG,
            ],
            outputs=[_out("checks", "array", items="object"), _out("healthy", "boolean")],
        ),
        _tool(
            "router_logs",
            "Fetch recent logs from a router's machine as structured entries.",
            READ_ONLY,
            params=[NETWORK, ORG],
            outputs=[LOG_ENTRIES],
        ),
    ]
}


# ── Unsafe-only ──────────────────────────────────────────────────────────

UNSAFE_ONLY: ToolMap = {
    t.name: t
    for t in [
        _tool(
            "fly_certs_list",
            "List TLS certificates configured for an app's custom domains.",
            READ_ONLY,
            params=[APP],
            outputs=[_out("certificates", "array", items="object")],
        ),
        _tool(
            "fly_certs_add",
            "Add a TLS certificate for a custom domain. DNS must point at the app's public IPs.",
            MUTATING,
            params=[APP, ToolParam(name="hostname", required=True, description="Custom domain hostname.")],
            outputs=[_out("hostname")],
        ),
        _tool(
            "fly_certs_remove",
            "Remove the TLS certificate for a custom domain.",
            DESTRUCTIVE,
            params=[APP, ToolParam(name="hostname", required=True, description="Custom domain hostname.")],
            outputs=[OK, _out("hostname")],
        ),
        _tool(
            "fly_ip_allocate",
            "Allocate the recommended public IPs for an app (shared IPv4 + IPv6).",
            MUTATING,
            params=[APP, REGION],
            outputs=[IPS],
        ),
    ]
}
