"""
Build Backend Port

Architectural Intent:
- Port interface for the opaque configuration builder
- The backend streams its output into the log file it is handed
"""

from abc import ABC, abstractmethod
from pathlib import Path


class BuildBackendPort(ABC):
    @abstractmethod
    async def build(self, host: str, log_path: Path) -> bool:
        """
        Builds the host's declared system configuration.
        Returns True if the build succeeded.
        """
        pass
