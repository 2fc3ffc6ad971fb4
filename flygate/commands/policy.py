"""Process-wide mode and the per-mode deploy policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class Mode(str, Enum):
    """Selected once at startup; fixes the operation surface and enforced flags."""

    SAFE = "safe"
    UNSAFE = "unsafe"


NO_PUBLIC_IPS_FLAG = "--no-public-ips"
FLYCAST_FLAG = "--flycast"
PRIVATE_FLAG = "--private"


@dataclass(frozen=True)
class DeployPolicy:
    """
    What a deploy does beyond running ``fly deploy``.

    ``enforced_flags`` are appended unconditionally; ``caller_flags`` maps
    optional boolean inputs to the flag they add; ``preflight`` and ``audit``
    switch the descriptor scan and the post-deploy audit.
    """

    enforced_flags: Tuple[str, ...]
    caller_flags: Tuple[Tuple[str, str], ...]
    preflight: bool
    audit: bool

    @classmethod
    def for_mode(cls, mode: Mode) -> "DeployPolicy":
        if mode is Mode.SAFE:
            return cls(
                enforced_flags=(NO_PUBLIC_IPS_FLAG, FLYCAST_FLAG),
                caller_flags=(),
                preflight=True,
                audit=True,
            )
        return cls(
            enforced_flags=(),
            caller_flags=(("no_public_ips", NO_PUBLIC_IPS_FLAG), ("flycast", FLYCAST_FLAG)),
            preflight=False,
            audit=False,
        )
