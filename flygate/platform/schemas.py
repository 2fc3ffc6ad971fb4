"""
Lenient pydantic models for ``fly ... --json`` output.

Only the fields flygate reads are declared. Extra fields are tolerated so
newer CLI releases keep working; a missing required field is a hard
validation error. The CLI mixes PascalCase and snake_case, hence the aliases.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

PRIVATE_IP_TYPE = "private_v6"


class FlyModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# --- fly auth whoami --json ---
class FlyAuth(FlyModel):
    email: str


# --- fly apps list --json (PascalCase) ---
class FlyOrganization(FlyModel):
    slug: str = Field(alias="Slug")


class FlyApp(FlyModel):
    id: str = Field(alias="ID")
    name: str = Field(alias="Name")
    status: str = Field(alias="Status")
    deployed: bool = Field(alias="Deployed")
    hostname: str = Field(alias="Hostname")
    organization: FlyOrganization = Field(alias="Organization")
    network: Optional[str] = Field(default=None, alias="Network")


# --- fly status --json (PascalCase, machines nested in snake_case) ---
class FlyStatusMachine(FlyModel):
    id: str
    name: Optional[str] = None
    state: str
    region: str
    private_ip: Optional[str] = None


class FlyAppStatus(FlyModel):
    id: str = Field(alias="ID")
    name: str = Field(alias="Name")
    status: str = Field(alias="Status")
    deployed: bool = Field(alias="Deployed")
    hostname: str = Field(alias="Hostname")
    machines: Optional[List[FlyStatusMachine]] = Field(default=None, alias="Machines")


# --- fly machines list --json (snake_case) ---
class FlyGuest(FlyModel):
    cpu_kind: Optional[str] = None
    cpus: Optional[int] = None
    memory_mb: Optional[int] = None


class FlyMachineConfig(FlyModel):
    guest: Optional[FlyGuest] = None


class FlyMachine(FlyModel):
    id: str
    name: Optional[str] = None
    state: str
    region: str
    private_ip: Optional[str] = None
    config: Optional[FlyMachineConfig] = None

    @property
    def guest(self) -> FlyGuest:
        if self.config and self.config.guest:
            return self.config.guest
        return FlyGuest()


# --- fly ips list --json / allocate-* (PascalCase) ---
class FlyIp(FlyModel):
    id: Optional[str] = Field(default=None, alias="ID")
    address: str = Field(alias="Address")
    type: str = Field(alias="Type")
    region: Optional[str] = Field(default=None, alias="Region")
    created_at: Optional[str] = Field(default=None, alias="CreatedAt")
    network: Optional[str] = Field(default=None, alias="Network")

    @property
    def is_private(self) -> bool:
        """Flycast (private IPv6) addresses are the only private kind."""
        return self.type == PRIVATE_IP_TYPE


# --- fly secrets list --json (PascalCase) ---
class FlySecret(FlyModel):
    name: str = Field(alias="Name")
    digest: str = Field(alias="Digest")
    created_at: str = Field(alias="CreatedAt")


# --- fly volumes list/create --json (snake_case) ---
class FlyVolume(FlyModel):
    id: str
    name: str
    state: str
    size_gb: int
    region: str
    encrypted: bool
    attached_machine_id: Optional[str] = None


# --- fly scale show --json (PascalCase) ---
class FlyScaleProcess(FlyModel):
    process: str = Field(alias="Process")
    count: int = Field(alias="Count")
    cpu_kind: str = Field(alias="CPUKind")
    cpus: int = Field(alias="CPUs")
    memory: int = Field(alias="Memory")
    regions: Optional[Dict[str, int]] = Field(default=None, alias="Regions")


# --- fly logs --json --no-tail (NDJSON, snake_case) ---
class FlyLogEntry(FlyModel):
    timestamp: str
    level: Optional[str] = None
    message: str
    region: Optional[str] = None
    instance: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


# --- fly certs list --json (PascalCase) ---
class FlyCert(FlyModel):
    hostname: str = Field(alias="Hostname")
    created_at: Optional[str] = Field(default=None, alias="CreatedAt")


FlyAppList = List[FlyApp]
FlyMachineList = List[FlyMachine]
FlyIpList = List[FlyIp]
FlySecretList = List[FlySecret]
FlyVolumeList = List[FlyVolume]
FlyScaleShow = List[FlyScaleProcess]
FlyCertList = List[FlyCert]
FlyConfig = Dict[str, Any]
