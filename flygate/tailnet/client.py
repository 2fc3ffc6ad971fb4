"""Tailnet control-plane client used by the router operations."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flygate.errors import TailnetError

logger = logging.getLogger(__name__)

API_BASE = "https://api.tailscale.com/api/v2"


class TailnetDevice(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    hostname: str
    addresses: List[str] = Field(default_factory=list)
    online: Optional[bool] = None
    last_seen: Optional[str] = Field(default=None, alias="lastSeen")
    advertised_routes: List[str] = Field(default_factory=list, alias="advertisedRoutes")
    enabled_routes: List[str] = Field(default_factory=list, alias="enabledRoutes")


class TailnetClient:
    """Bearer-authenticated client for the tailnet HTTP API."""

    def __init__(
        self,
        api_key: str,
        tailnet: str = "-",
        base_url: str = API_BASE,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.tailnet = tailnet or "-"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("tailnet %s %s", method, path)
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise TailnetError(f"{method} {path} failed: {exc}")
        if not response.ok:
            raise TailnetError(
                f"{method} {path} returned HTTP {response.status_code}: {response.text or response.reason}",
                {"status": response.status_code},
            )
        if not response.text:
            return None
        return response.json()

    # ── Devices ───────────────────────────────────────────────────────────

    def validate_api_key(self) -> bool:
        try:
            self._request("GET", f"/tailnet/{self.tailnet}/devices")
        except TailnetError:
            return False
        return True

    def list_devices(self) -> List[TailnetDevice]:
        data = self._request("GET", f"/tailnet/{self.tailnet}/devices") or {}
        try:
            return [TailnetDevice.model_validate(d) for d in data.get("devices", [])]
        except ValidationError as exc:
            raise TailnetError(f"Unexpected device list shape: {exc.error_count()} error(s)")

    def get_device_by_hostname(self, hostname: str) -> Optional[TailnetDevice]:
        """
        Exact hostname match, else the best ``<hostname>-N`` device the
        control plane renamed on collision (online first, then most recent).
        """
        devices = self.list_devices()
        for device in devices:
            if device.hostname == hostname:
                return device

        renamed = [d for d in devices if d.hostname.startswith(hostname + "-")]
        renamed.sort(key=lambda d: (bool(d.online), d.last_seen or ""), reverse=True)
        return renamed[0] if renamed else None

    def delete_device(self, device_id: str) -> None:
        self._request("DELETE", f"/device/{device_id}")

    def approve_routes(self, device_id: str, routes: List[str]) -> None:
        self._request("POST", f"/device/{device_id}/routes", {"routes": routes})

    def wait_for_device(
        self,
        hostname: str,
        timeout: float = 120.0,
        interval: float = 5.0,
    ) -> TailnetDevice:
        deadline = time.monotonic() + timeout
        while True:
            device = self.get_device_by_hostname(hostname)
            if device is not None:
                return device
            if time.monotonic() >= deadline:
                raise TailnetError(
                    f"Timed out after {timeout:.0f}s waiting for device '{hostname}' to join the tailnet.",
                    {"hostname": hostname},
                )
            time.sleep(interval)

    # ── DNS ───────────────────────────────────────────────────────────────

    def set_split_dns(self, domain: str, nameservers: List[str]) -> None:
        self._request("PATCH", f"/tailnet/{self.tailnet}/dns/split-dns", {domain: nameservers})

    def clear_split_dns(self, domain: str) -> None:
        payload: Dict[str, Any] = {domain: None}
        self._request("PATCH", f"/tailnet/{self.tailnet}/dns/split-dns", payload)
