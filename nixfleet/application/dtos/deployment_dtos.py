"""
Deployment DTOs

Architectural Intent:
- Data Transfer Objects for deployment use case boundaries
- Input validation at the application boundary
- Decouples CLI/config representation from the domain model
"""

from dataclasses import dataclass, field
from typing import Optional
from nixfleet.application.use_cases.render_report import DeploymentReport
from nixfleet.domain.entities.deployment_run import (
    DeployAction,
    DeploymentMode,
    RunPhase,
)


@dataclass(frozen=True)
class DeployFleetRequest:
    mode: DeploymentMode = DeploymentMode.SEQUENTIAL
    action: DeployAction = DeployAction.SWITCH
    hosts: tuple[str, ...] = ()
    host_filter: Optional[str] = None
    batch_size: int = 2
    batch_delay: float = 0.0
    max_parallel: int = 5
    rollback_on_failure: bool = False
    build_first: bool = False
    log_dir: str = "./logs"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")
        if self.batch_delay < 0:
            raise ValueError("batch_delay cannot be negative")
        if not self.log_dir:
            raise ValueError("log_dir cannot be empty")


@dataclass(frozen=True)
class DeployFleetResponse:
    run_id: str
    phase: RunPhase
    report: DeploymentReport
    rollbacks: dict[str, bool] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.phase is RunPhase.DONE_SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


@dataclass(frozen=True)
class RollbackRequest:
    targets: list[str]
    log_dir: str = "./logs"

    def __post_init__(self) -> None:
        if not self.targets:
            raise ValueError("targets cannot be empty")
