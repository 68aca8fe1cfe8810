from enum import Enum


class DeploymentStatus(str, Enum):
    """Per-host state within a run: pending -> deploying -> success | failed."""
    PENDING = "pending"
    DEPLOYING = "deploying"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED)

    def can_transition_to(self, new: "DeploymentStatus") -> bool:
        if self is DeploymentStatus.PENDING:
            return new is DeploymentStatus.DEPLOYING
        if self is DeploymentStatus.DEPLOYING:
            return new.is_terminal
        return False
