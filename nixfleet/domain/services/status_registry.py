"""
Status Registry

Architectural Intent:
- Shared map host -> deployment state, the single source of truth for
  reporting and strategy gating
- Readers may be anywhere; each host has exactly one writer, obtained via claim()
- A lock guards the map so snapshots are consistent even when writers run in
  executor threads

Design Decisions:
- The one-task-per-host rule is enforced by claim() raising HostAlreadyClaimed,
  not left to scheduling order
- Transitions are validated against DeploymentStatus.can_transition_to
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Optional
from nixfleet.domain.errors import HostAlreadyClaimed, InvalidTransition
from nixfleet.domain.value_objects.deployment_status import DeploymentStatus


@dataclass(frozen=True)
class HostEntry:
    status: DeploymentStatus = DeploymentStatus.PENDING
    version: Optional[str] = None
    health_check: Optional[bool] = None
    error: Optional[str] = None


class HostSlot:
    """Write handle for a single host; only the owning task holds one."""

    def __init__(self, registry: "StatusRegistry", host: str) -> None:
        self._registry = registry
        self.host = host

    def mark_deploying(self) -> None:
        self._registry._transition(self.host, DeploymentStatus.DEPLOYING)

    def mark_success(self) -> None:
        self._registry._transition(self.host, DeploymentStatus.SUCCESS)

    def mark_failed(self, error: str = "") -> None:
        self._registry._transition(
            self.host, DeploymentStatus.FAILED, error=error or None
        )

    def record_version(self, version: str) -> None:
        self._registry._annotate(self.host, version=version)

    def record_health_check(self, passed: bool) -> None:
        self._registry._annotate(self.host, health_check=passed)

    @property
    def status(self) -> DeploymentStatus:
        return self._registry.status(self.host)


class StatusRegistry:
    def __init__(self, hosts: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, HostEntry] = {}
        self._claimed: set[str] = set()
        self._peak_deploying = 0
        self.register(hosts)

    def register(self, hosts: Iterable[str]) -> None:
        with self._lock:
            for host in hosts:
                if host in self._entries:
                    raise ValueError(f"Host already registered: {host}")
                self._entries[host] = HostEntry()

    def claim(self, host: str) -> HostSlot:
        with self._lock:
            if host not in self._entries:
                raise KeyError(host)
            if host in self._claimed:
                raise HostAlreadyClaimed(f"Host already has an owner: {host}")
            self._claimed.add(host)
        return HostSlot(self, host)

    def _transition(
        self, host: str, new: DeploymentStatus, error: Optional[str] = None
    ) -> None:
        with self._lock:
            entry = self._entries[host]
            if not entry.status.can_transition_to(new):
                raise InvalidTransition(
                    f"{host}: {entry.status.value} -> {new.value} is not allowed"
                )
            self._entries[host] = replace(entry, status=new, error=error)
            if new is DeploymentStatus.DEPLOYING:
                deploying = sum(
                    1
                    for e in self._entries.values()
                    if e.status is DeploymentStatus.DEPLOYING
                )
                self._peak_deploying = max(self._peak_deploying, deploying)

    def _annotate(self, host: str, **changes) -> None:
        with self._lock:
            self._entries[host] = replace(self._entries[host], **changes)

    def hosts(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def status(self, host: str) -> DeploymentStatus:
        with self._lock:
            return self._entries[host].status

    def entry(self, host: str) -> HostEntry:
        with self._lock:
            return self._entries[host]

    def snapshot(self) -> dict[str, DeploymentStatus]:
        with self._lock:
            return {host: e.status for host, e in self._entries.items()}

    def counts_by_status(self) -> dict[DeploymentStatus, int]:
        counts = {status: 0 for status in DeploymentStatus}
        for status in self.snapshot().values():
            counts[status] += 1
        return counts

    def failed_hosts(self) -> list[str]:
        return [
            host
            for host, status in self.snapshot().items()
            if status is DeploymentStatus.FAILED
        ]

    def attempted_hosts(self) -> list[str]:
        return [
            host
            for host, status in self.snapshot().items()
            if status is not DeploymentStatus.PENDING
        ]

    def all_attempted_succeeded(self) -> bool:
        attempted = [
            s for s in self.snapshot().values() if s is not DeploymentStatus.PENDING
        ]
        return bool(attempted) and all(
            s is DeploymentStatus.SUCCESS for s in attempted
        )

    @property
    def peak_deploying(self) -> int:
        with self._lock:
            return self._peak_deploying

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
