"""
Pre-flight Health Checks

Architectural Intent:
- Decides which hosts a run may touch before any of them is deployed
- Every probe is time-bounded so a fleet-wide scan cannot hang
- A host answers on its plain id or, failing that, on its .local mDNS name

Design Decisions:
- Probes for all hosts run concurrently; results keep inventory order
- Disk pressure is advisory: it is logged, never used to exclude a host
"""

import asyncio
import logging
from typing import List, Optional
from nixfleet.application.confirm import Confirm
from nixfleet.domain.errors import HostUnreachable, PreflightAborted
from nixfleet.domain.ports.remote_executor_port import RemoteExecutorPort
from nixfleet.domain.value_objects.host import HostRecord, fallback_address

logger = logging.getLogger(__name__)

DISK_USAGE_COMMAND = "df / | tail -1 | awk '{print $5}' | sed 's/%//'"

# Slack on top of the SSH connect timeout for the command round trip
PROBE_GRACE_SECONDS = 1.0


def parse_disk_usage(output: str) -> Optional[int]:
    value = output.strip().rstrip("%")
    if not value.isdigit():
        return None
    percent = int(value)
    return percent if 0 <= percent <= 100 else None


class HealthProber:
    def __init__(
        self,
        remote: RemoteExecutorPort,
        connect_timeout: float = 2.0,
        disk_warning_percent: int = 90,
    ):
        self.remote = remote
        self.connect_timeout = connect_timeout
        self.disk_warning_percent = disk_warning_percent

    async def _bounded(self, address: str, command: str):
        try:
            return await asyncio.wait_for(
                self.remote.execute(address, command, self.connect_timeout),
                timeout=self.connect_timeout + PROBE_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.debug("Probe of %s timed out", address)
            return None

    async def _handshake(self, address: str) -> bool:
        result = await self._bounded(address, "true")
        return result is not None and result.ok

    async def probe(self, host: str) -> HostRecord:
        address: Optional[str] = None
        if self.remote.is_local(host) or await self._handshake(host):
            address = host
        else:
            alt = fallback_address(host)
            if alt != host and await self._handshake(alt):
                address = alt

        if address is None:
            logger.warning("%s", HostUnreachable(host))
            return HostRecord(id=host, reachable=False)

        disk = None
        result = await self._bounded(address, DISK_USAGE_COMMAND)
        if result is not None and result.ok:
            disk = parse_disk_usage(result.stdout)
        if disk is not None and disk > self.disk_warning_percent:
            logger.warning("Low disk space on %s (%d%% used)", host, disk)

        return HostRecord(
            id=host, reachable=True, disk_pressure_percent=disk, address=address
        )

    async def probe_all(self, hosts: List[str]) -> List[HostRecord]:
        return list(await asyncio.gather(*(self.probe(h) for h in hosts)))

    async def preflight(self, hosts: List[str], confirm: Confirm) -> List[HostRecord]:
        """Probe hosts and return the reachable ones, in inventory order.

        Raises PreflightAborted if some hosts are unreachable and the
        operator does not want to continue without them.
        """
        records = await self.probe_all(hosts)
        unreachable = [r.id for r in records if not r.reachable]
        if unreachable:
            question = (
                f"Unreachable hosts: {', '.join(unreachable)}. "
                "Continue without these hosts?"
            )
            if not confirm(question):
                raise PreflightAborted(
                    f"{len(unreachable)} unreachable host(s): {', '.join(unreachable)}"
                )
        return [r for r in records if r.reachable]
