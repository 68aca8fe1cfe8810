"""
Deployment Run Module

Architectural Intent:
- DeploymentRun is the consistency boundary for one orchestrator invocation
- Host set, mode and action are fixed at creation; the status registry is the
  only part that changes while the run is in progress
- Status transitions are enforced by DeploymentStatus.can_transition_to
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Optional
from nixfleet.domain.value_objects.host import HostRecord
from nixfleet.domain.value_objects.deployment_status import DeploymentStatus
from nixfleet.domain.services.status_registry import StatusRegistry

__all__ = [
    "DeploymentStatus",
    "DeploymentMode",
    "DeployAction",
    "RunPhase",
    "DeploymentRun",
    "new_run_id",
]


class DeploymentMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    ROLLING = "rolling"


class DeployAction(str, Enum):
    SWITCH = "switch"
    TEST = "test"
    BOOT = "boot"
    BUILD = "build"


class RunPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE_SUCCESS = "done_success"
    DONE_WITH_FAILURES = "done_with_failures"

    @property
    def is_done(self) -> bool:
        return self in (RunPhase.DONE_SUCCESS, RunPhase.DONE_WITH_FAILURES)


def new_run_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(UTC)
    return f"{now:%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class DeploymentRun:
    """One invocation of the orchestrator across a host set."""
    id: str
    mode: DeploymentMode
    action: DeployAction
    records: tuple[HostRecord, ...]
    log_dir: Path
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    registry: StatusRegistry = field(default_factory=StatusRegistry)

    def __post_init__(self) -> None:
        ids = [r.id for r in self.records]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate host in deployment run")
        if not self.registry.hosts():
            self.registry.register(ids)

    @classmethod
    def create(
        cls,
        mode: DeploymentMode,
        action: DeployAction,
        records: list[HostRecord],
        log_root: Path,
        now: Optional[datetime] = None,
    ) -> "DeploymentRun":
        now = now or datetime.now(UTC)
        run_id = new_run_id(now)
        return cls(
            id=run_id,
            mode=mode,
            action=action,
            records=tuple(records),
            log_dir=Path(log_root) / run_id,
            started_at=now,
        )

    @property
    def hosts(self) -> list[str]:
        return [r.id for r in self.records]

    def record(self, host: str) -> HostRecord:
        for r in self.records:
            if r.id == host:
                return r
        raise KeyError(host)

    def log_path(self, phase: str, host: str) -> Path:
        """Per-host, per-phase log file; phases never share a file."""
        return self.log_dir / f"{phase}-{host}.log"

    def __repr__(self) -> str:
        return (
            f"DeploymentRun(id={self.id}, mode={self.mode.value}, "
            f"action={self.action.value}, hosts={len(self.records)})"
        )
