"""
Deploy and Rollback Action Ports

Architectural Intent:
- Port interfaces for the per-host state-changing actions
- Both return the process exit code; interpretation is left to the caller
"""

from abc import ABC, abstractmethod
from pathlib import Path
from nixfleet.domain.entities.deployment_run import DeployAction


class DeployActionPort(ABC):
    @abstractmethod
    async def apply(
        self, host: str, action: DeployAction, target: str, log_path: Path
    ) -> int:
        """
        Activates the host's configuration on `target` with the given action.
        An empty target means the local machine.
        """
        pass


class RollbackActionPort(ABC):
    @abstractmethod
    async def rollback(self, address: str, log_path: Path) -> int:
        """
        Switches the host back to its previous system generation.
        """
        pass
