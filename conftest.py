"""Global test configuration.

In-memory stand-ins for the external collaborators (flake, nixos-rebuild,
SSH) so orchestration can be exercised without a real fleet.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional

import pytest

from nixfleet.domain.entities.deployment_run import (
    DeployAction,
    DeploymentMode,
    DeploymentRun,
)
from nixfleet.domain.ports.build_backend_port import BuildBackendPort
from nixfleet.domain.ports.configuration_source_port import ConfigurationSourcePort
from nixfleet.domain.ports.deploy_action_port import DeployActionPort, RollbackActionPort
from nixfleet.domain.ports.remote_executor_port import CommandResult, RemoteExecutorPort
from nixfleet.domain.value_objects.host import HostRecord


class FakeSource(ConfigurationSourcePort):
    def __init__(self, hosts=(), healthy=True, error: Optional[Exception] = None):
        self.hosts = list(hosts)
        self.healthy = healthy
        self.error = error

    async def list_hosts(self):
        if self.error:
            raise self.error
        return list(self.hosts)

    async def check(self):
        return self.healthy


class FakeBuilder(BuildBackendPort):
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.built = []

    async def build(self, host, log_path):
        self.built.append(host)
        return host not in self.fail


class FakeDeployAction(DeployActionPort):
    """Records apply() calls; hosts in `fail` exit 1, `delays` slow hosts down."""

    def __init__(
        self,
        fail=(),
        delays: Optional[dict] = None,
        default_delay: float = 0.0,
        on_apply: Optional[Callable[[str], None]] = None,
        raise_for=(),
    ):
        self.fail = set(fail)
        self.delays = delays or {}
        self.default_delay = default_delay
        self.on_apply = on_apply
        self.raise_for = set(raise_for)
        self.calls = []
        self.targets = {}

    async def apply(self, host, action, target, log_path):
        self.calls.append(host)
        self.targets[host] = target
        if self.on_apply:
            self.on_apply(host)
        await asyncio.sleep(self.delays.get(host, self.default_delay))
        if host in self.raise_for:
            raise RuntimeError(f"channel broke for {host}")
        return 1 if host in self.fail else 0


class FakeRemote(RemoteExecutorPort):
    """Answers probes and post-deploy queries from fixed tables."""

    def __init__(
        self,
        unreachable=(),
        disk: Optional[dict] = None,
        version: str = "24.05.20240601.abcdef (Uakari)",
        local=("localhost",),
    ):
        self.unreachable = set(unreachable)
        self.disk = disk or {}
        self.version = version
        self.local = set(local)
        self.commands = []

    def is_local(self, address):
        return address in self.local

    async def execute(self, address, command, connect_timeout):
        self.commands.append((address, command))
        if address in self.unreachable:
            return CommandResult(255, "", "ssh: connect to host timed out")
        if command == "true":
            return CommandResult(0)
        if command.startswith("df"):
            return CommandResult(0, f"{self.disk.get(address, 40)}\n")
        if command == "nixos-version":
            return CommandResult(0, f"{self.version}\n")
        return CommandResult(0)


class FakeRollback(RollbackActionPort):
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    async def rollback(self, address, log_path):
        self.calls.append(address)
        return 1 if address in self.fail else 0


def make_run(
    hosts,
    tmp_path: Path,
    mode: DeploymentMode = DeploymentMode.SEQUENTIAL,
    action: DeployAction = DeployAction.SWITCH,
) -> DeploymentRun:
    records = [HostRecord(id=h, reachable=True) for h in hosts]
    return DeploymentRun.create(mode, action, records, tmp_path)


@pytest.fixture
def remote():
    return FakeRemote()
