"""
Fabric Adapter

Architectural Intent:
- Infrastructure adapter implementing RemoteExecutorPort and RollbackActionPort
  via Fabric/SSH
- Commands for the machine running nixfleet go through Connection.local, so
  local hosts need no SSH daemon
- Blocking Fabric calls run in the default executor

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Connection failures become exit code 255 (ssh's own convention), never raised
"""

import asyncio
import logging
import socket
from pathlib import Path
from fabric import Connection
from nixfleet.domain.ports.remote_executor_port import CommandResult, RemoteExecutorPort
from nixfleet.domain.ports.deploy_action_port import RollbackActionPort

logger = logging.getLogger(__name__)

SSH_ERROR = 255
ROLLBACK_COMMAND = "nixos-rebuild --rollback switch"

_LOCAL_ADDRESSES = ("localhost", "127.0.0.1", "::1")


class FabricAdapter(RemoteExecutorPort, RollbackActionPort):
    """Adapter implementing remote execution via Fabric/SSH."""

    def __init__(self, user: str = "root", rollback_timeout: float = 30.0):
        self.user = user
        self.rollback_timeout = rollback_timeout

    def _get_connection(self, address: str, connect_timeout: float) -> Connection:
        return Connection(
            host=address,
            user=self.user,
            connect_timeout=connect_timeout,
            connect_kwargs={
                "allow_agent": True,
                "look_for_keys": True,
            },
        )

    def is_local(self, address: str) -> bool:
        hostname = socket.gethostname()
        return address in _LOCAL_ADDRESSES or address in (
            hostname,
            f"{hostname}.local",
        )

    def _run(self, address: str, command: str, connect_timeout: float) -> CommandResult:
        try:
            with self._get_connection(address, connect_timeout) as conn:
                if self.is_local(address):
                    result = conn.local(command, hide=True, warn=True)
                else:
                    result = conn.run(command, hide=True, warn=True)
            return CommandResult(result.exited, result.stdout, result.stderr)
        except Exception as e:
            logger.debug("Execution on %s failed: %s", address, e)
            return CommandResult(SSH_ERROR, "", str(e))

    async def execute(
        self, address: str, command: str, connect_timeout: float
    ) -> CommandResult:
        return await asyncio.get_event_loop().run_in_executor(
            None, self._run, address, command, connect_timeout
        )

    async def rollback(self, address: str, log_path: Path) -> int:
        result = await self.execute(address, ROLLBACK_COMMAND, self.rollback_timeout)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as log:
            log.write(f"$ {ROLLBACK_COMMAND}\n{result.stdout}{result.stderr}")
        if not result.ok:
            logger.warning("Rollback failed on %s: %s", address, result.stderr.strip())
        return result.exit_code
