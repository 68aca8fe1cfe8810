"""
Remote Executor Port

Architectural Intent:
- Port interface for running commands on a host
- Defines contract for remote (SSH) and local execution
- Implemented by adapters (Fabric, etc.)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RemoteExecutorPort(ABC):
    """
    Port interface for executing commands on fleet hosts.
    """

    @abstractmethod
    async def execute(
        self, address: str, command: str, connect_timeout: float
    ) -> CommandResult:
        """
        Runs a command on the host at `address`.
        Connection problems are reported as a non-zero exit code, not raised.
        """
        pass

    @abstractmethod
    def is_local(self, address: str) -> bool:
        """
        True when `address` names the machine the orchestrator runs on.
        """
        pass
