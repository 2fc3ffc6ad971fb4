"""
Post-deploy audit.

After every safe-mode deploy the auditor re-reads live platform state:

1. enumerate IPs, releasing every public one on the spot;
2. inspect the merged config (``fly config show``) for exposure signals;
3. check that at least one Flycast address exists.

Re-running it is harmless: a second pass over unchanged state releases nothing.
"""

from __future__ import annotations

import logging
from typing import List

from pydantic import BaseModel, Field, PrivateAttr

from flygate.commands.builder import CommandExecutor
from flygate.errors import FlyGateError
from flygate.guard.checks import DEFAULT_NETWORK
from flygate.guard.preflight import forces_https, is_public_https, iter_service_ports
from flygate.platform.schemas import FlyConfig, FlyIp, FlyIpList

logger = logging.getLogger(__name__)


class FlycastAllocation(BaseModel):
    address: str
    network: str


class AuditResult(BaseModel):
    public_ips_released: int = 0
    flycast_allocations: List[FlycastAllocation] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    _unreleased: List[str] = PrivateAttr(default_factory=list)

    @property
    def unreleased(self) -> List[str]:
        """Public addresses whose release command failed."""
        return self._unreleased

    @property
    def exposed(self) -> bool:
        return self.public_ips_released > 0 or bool(self._unreleased)


class DeployAuditor:
    """Verifies and remediates an app's network exposure after a deploy."""

    def __init__(self, executor: CommandExecutor):
        self._fly = executor

    def audit(self, app: str) -> AuditResult:
        result = AuditResult()
        self._check_ips(app, result)
        self._check_config(app, result)

        if not result.flycast_allocations:
            result.warnings.append(
                "No Flycast IP allocated. App is not reachable via Flycast. "
                "Use fly_ip_allocate_flycast to allocate one."
            )
        return result

    # ── Phase 1: enumerate and remediate ──────────────────────────────────

    def _check_ips(self, app: str, result: AuditResult) -> None:
        ips: List[FlyIp] = self._fly.call_json("ips_list", ["-a", app, "--json"], FlyIpList)
        for ip in ips:
            if ip.is_private:
                result.flycast_allocations.append(
                    FlycastAllocation(address=ip.address, network=ip.network or DEFAULT_NETWORK)
                )
                continue

            logger.warning("releasing public IP %s (%s) on %s", ip.address, ip.type, app)
            try:
                self._fly.call("ips_release", [ip.address, "-a", app, "--yes"])
            except FlyGateError as exc:
                result._unreleased.append(ip.address)
                result.warnings.append(f"Failed to release public IP {ip.address}: {exc.message}")
                continue
            result.public_ips_released += 1

    # ── Phase 2: merged config ────────────────────────────────────────────

    def _check_config(self, app: str, result: AuditResult) -> None:
        try:
            config = self._fly.call_json("config_show", ["-a", app], FlyConfig)
        except FlyGateError as exc:
            logger.debug("config inspection failed for %s: %s", app, exc)
            result.warnings.append("Could not inspect merged config.")
            return

        if any(is_public_https(port) for port in iter_service_ports(config)):
            result.warnings.append(
                "Service config has TLS handler on port 443. "
                "Safe only because no public IPs are allocated."
            )
        if forces_https(config):
            result.warnings.append(
                "http_service.force_https is enabled. Has no effect on Flycast "
                "and suggests config was written for public deployment."
            )
