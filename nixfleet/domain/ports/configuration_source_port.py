"""
Configuration Source Port

Architectural Intent:
- Port interface for the external source of deployable hosts
- Implemented by NixAdapter (flake nixosConfigurations)
"""

from abc import ABC, abstractmethod
from typing import List


class ConfigurationSourcePort(ABC):
    @abstractmethod
    async def list_hosts(self) -> List[str]:
        """
        Returns host ids in the source's declared order.
        Raises InventoryUnavailable if the source cannot be queried.
        """
        pass

    @abstractmethod
    async def check(self) -> bool:
        """
        Evaluates the configuration; False means it reported problems.
        """
        pass
