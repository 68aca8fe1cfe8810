"""
Nix Adapter

Architectural Intent:
- Infrastructure adapter implementing the configuration-facing ports
  (ConfigurationSourcePort, BuildBackendPort, DeployActionPort)
- Drives the nix and nixos-rebuild CLIs through subprocess wrapped in async
- Command output is streamed into the per-host log file handed in by the caller
"""

import asyncio
import json
import logging
import subprocess
from pathlib import Path
from typing import List
from nixfleet.domain.errors import InventoryUnavailable
from nixfleet.domain.entities.deployment_run import DeployAction
from nixfleet.domain.ports.configuration_source_port import ConfigurationSourcePort
from nixfleet.domain.ports.build_backend_port import BuildBackendPort
from nixfleet.domain.ports.deploy_action_port import DeployActionPort

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127


def _run_logged(cmd: List[str], log_path: Path) -> int:
    """Run cmd with stdout and stderr appended to log_path; return its exit code."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "a") as log:
        log.write(f"$ {' '.join(cmd)}\n")
        log.flush()
        try:
            result = subprocess.run(cmd, stdout=log, stderr=subprocess.STDOUT)
        except FileNotFoundError:
            log.write(f"{cmd[0]}: command not found\n")
            return COMMAND_NOT_FOUND
    return result.returncode


class NixAdapter(ConfigurationSourcePort, BuildBackendPort, DeployActionPort):
    def __init__(
        self,
        flake_path: str = ".",
        build_host: str = "localhost",
        ssh_user: str = "root",
    ):
        self.flake_path = flake_path
        self.build_host = build_host
        self.ssh_user = ssh_user

    async def list_hosts(self) -> List[str]:
        def _show():
            try:
                result = subprocess.run(
                    ["nix", "flake", "show", self.flake_path, "--json"],
                    capture_output=True,
                    text=True,
                    check=True,
                )
            except FileNotFoundError:
                raise InventoryUnavailable("'nix' not found on PATH")
            except subprocess.CalledProcessError as e:
                raise InventoryUnavailable(f"nix flake show failed: {e.stderr}")

            try:
                data = json.loads(result.stdout)
            except json.JSONDecodeError as e:
                raise InventoryUnavailable(f"Unreadable flake metadata: {e}")
            configurations = data.get("nixosConfigurations")
            if not isinstance(configurations, dict):
                raise InventoryUnavailable(
                    f"No nixosConfigurations in flake {self.flake_path}"
                )
            return list(configurations)

        return await asyncio.get_event_loop().run_in_executor(None, _show)

    async def check(self) -> bool:
        def _check():
            try:
                result = subprocess.run(
                    ["nix", "flake", "check", self.flake_path],
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError:
                return False
            if result.returncode != 0:
                logger.debug("nix flake check: %s", result.stderr)
            return result.returncode == 0

        return await asyncio.get_event_loop().run_in_executor(None, _check)

    def toplevel_attr(self, host: str) -> str:
        return (
            f"{self.flake_path}#nixosConfigurations.{host}"
            ".config.system.build.toplevel"
        )

    async def build(self, host: str, log_path: Path) -> bool:
        cmd = ["nix", "build", "--no-link", self.toplevel_attr(host)]
        code = await asyncio.get_event_loop().run_in_executor(
            None, _run_logged, cmd, log_path
        )
        return code == 0

    def rebuild_command(self, host: str, action: DeployAction, target: str) -> List[str]:
        cmd = ["nixos-rebuild", action.value, "--flake", f"{self.flake_path}#{host}"]
        if target:
            cmd += ["--target-host", f"{self.ssh_user}@{target}"]
        if self.build_host and self.build_host != "localhost":
            cmd += ["--build-host", self.build_host]
        return cmd

    async def apply(
        self, host: str, action: DeployAction, target: str, log_path: Path
    ) -> int:
        cmd = self.rebuild_command(host, action, target)
        return await asyncio.get_event_loop().run_in_executor(
            None, _run_logged, cmd, log_path
        )
