"""
Resolve Inventory Use Case

Architectural Intent:
- Produces the ordered list of hosts a run will consider
- Explicit host lists bypass the configuration source
- Glob filtering uses fnmatch, matching the shell-style patterns operators type
"""

import fnmatch
import logging
from typing import List, Optional, Sequence
from nixfleet.domain.errors import InventoryUnavailable
from nixfleet.domain.ports.configuration_source_port import ConfigurationSourcePort

logger = logging.getLogger(__name__)


class HostInventoryResolver:
    def __init__(self, source: ConfigurationSourcePort):
        self.source = source

    async def resolve(
        self,
        pattern: Optional[str] = None,
        explicit: Optional[Sequence[str]] = None,
    ) -> List[str]:
        if explicit:
            return list(dict.fromkeys(explicit))

        try:
            hosts = await self.source.list_hosts()
        except InventoryUnavailable:
            raise
        except Exception as e:
            raise InventoryUnavailable(f"Configuration source failed: {e}") from e

        if pattern:
            hosts = [h for h in hosts if fnmatch.fnmatchcase(h, pattern)]
            logger.info("%d hosts match %r", len(hosts), pattern)
        return hosts
