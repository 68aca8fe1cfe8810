"""
Host Value Objects

Architectural Intent:
- Immutable value objects describing a deployable host and its probe results
- Host ids are opaque (flake attribute names); only blank ids are rejected
- Category classification is a pure display helper; orchestration never branches on it
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

LOCAL_SUFFIX = ".local"


class HostCategory(str, Enum):
    WORKSTATION = "workstation"
    SERVER = "server"
    KIOSK = "kiosk"
    OTHER = "other"


def classify(host: str) -> HostCategory:
    """Guess a host's role from its naming convention."""
    for category in (HostCategory.WORKSTATION, HostCategory.SERVER, HostCategory.KIOSK):
        if category.value in host:
            return category
    return HostCategory.OTHER


def fallback_address(host: str) -> str:
    """The mDNS form tried when the plain host id does not answer."""
    if host.endswith(LOCAL_SUFFIX):
        return host
    return f"{host}{LOCAL_SUFFIX}"


@dataclass(frozen=True)
class HostRecord:
    """
    Value Object holding what pre-flight learned about a host.

    `address` is the form that answered the handshake; deploys and
    post-deploy queries go there.
    """
    id: str
    reachable: bool = False
    disk_pressure_percent: Optional[int] = None
    address: str = ""

    def __post_init__(self) -> None:
        if not self.id or self.id != self.id.strip():
            raise ValueError(f"Invalid host id: {self.id!r}")
        if self.disk_pressure_percent is not None and not (
            0 <= self.disk_pressure_percent <= 100
        ):
            raise ValueError(
                f"Disk pressure must be 0-100, got {self.disk_pressure_percent}"
            )
        if not self.address:
            object.__setattr__(self, "address", self.id)

    @property
    def category(self) -> HostCategory:
        return classify(self.id)

    def __str__(self) -> str:
        return self.id
