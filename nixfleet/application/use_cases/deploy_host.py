"""
Deploy Host Use Case

Architectural Intent:
- Performs the deploy action for exactly one host and records the outcome
- The registry shows `deploying` before the action starts and a terminal
  status once it ends
- Per-host failures stop here: deploy() returns FAILED instead of raising,
  so sibling hosts are never interrupted

Post-deploy verification (version query, optional health-check script) is
for the report only and never changes the recorded status.
"""

import asyncio
import logging
import shlex
import time
from pathlib import Path
from typing import Optional
from nixfleet.application.use_cases.build_hosts import BuildCoordinator
from nixfleet.domain.entities.deployment_run import DeploymentRun, DeploymentStatus
from nixfleet.domain.errors import DeployFailure
from nixfleet.domain.ports.deploy_action_port import DeployActionPort
from nixfleet.domain.ports.remote_executor_port import RemoteExecutorPort
from nixfleet.domain.services.status_registry import HostSlot
from nixfleet.domain.value_objects.host import HostRecord
from nixfleet.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)

VERSION_COMMAND = "nixos-version"
VERIFY_TIMEOUT_SECONDS = 10.0


class DeployExecutor:
    def __init__(
        self,
        deploy_action: DeployActionPort,
        remote: RemoteExecutorPort,
        builder: Optional[BuildCoordinator] = None,
        connect_timeout: float = 2.0,
        health_check_script: str = "",
        telemetry: Optional[OTELExporter] = None,
    ):
        self.deploy_action = deploy_action
        self.remote = remote
        self.builder = builder
        self.connect_timeout = connect_timeout
        self.health_check_script = health_check_script
        self.telemetry = telemetry

    async def deploy(self, run: DeploymentRun, record: HostRecord) -> DeploymentStatus:
        host = record.id
        slot = run.registry.claim(host)
        slot.mark_deploying()
        started = time.monotonic()
        extra = {"host": host, "run_id": run.id}
        logger.info(
            "[%s] Deploying with action: %s...", host, run.action.value, extra=extra
        )

        status = await self._deploy(run, record, slot, extra)

        if self.telemetry is not None:
            try:
                self.telemetry.record_host_outcome(
                    run.id, host, status.value, time.monotonic() - started
                )
            except Exception as e:
                logger.warning("[%s] Telemetry error: %s", host, e, extra=extra)
        return status

    async def _deploy(
        self, run: DeploymentRun, record: HostRecord, slot: HostSlot, extra: dict
    ) -> DeploymentStatus:
        host = record.id
        log_path = run.log_path("deploy", host)
        try:
            if self.builder is not None:
                build = await self.builder.build(host, run.log_path("build", host))
                if not build.success:
                    slot.mark_failed(str(build.error))
                    return DeploymentStatus.FAILED

            target = "" if self.remote.is_local(record.address) else record.address
            exit_code = await self.deploy_action.apply(host, run.action, target, log_path)
        except Exception as e:
            logger.error(
                "[%s] Deployment error: %s (see %s)", host, e, log_path, extra=extra
            )
            slot.mark_failed(str(e))
            return DeploymentStatus.FAILED

        if exit_code != 0:
            failure = DeployFailure(host, exit_code)
            logger.error("[%s] %s (see %s)", host, failure, log_path, extra=extra)
            slot.mark_failed(str(failure))
            return DeploymentStatus.FAILED

        slot.mark_success()
        logger.info("[%s] Deployed successfully", host, extra=extra)
        await self._verify(record, slot, extra)
        return DeploymentStatus.SUCCESS

    async def _verify(self, record: HostRecord, slot: HostSlot, extra: dict) -> None:
        try:
            result = await asyncio.wait_for(
                self.remote.execute(record.address, VERSION_COMMAND, self.connect_timeout),
                timeout=VERIFY_TIMEOUT_SECONDS,
            )
            if result.ok and result.stdout.strip():
                slot.record_version(result.stdout.strip())
                logger.info(
                    "[%s] Running version: %s", record.id, result.stdout.strip(),
                    extra=extra,
                )
        except Exception as e:
            logger.warning("[%s] Version query failed: %s", record.id, e, extra=extra)

        if not self.health_check_script:
            return
        try:
            script = Path(self.health_check_script).read_text()
            result = await asyncio.wait_for(
                self.remote.execute(
                    record.address, f"bash -c {shlex.quote(script)}", self.connect_timeout
                ),
                timeout=VERIFY_TIMEOUT_SECONDS,
            )
            slot.record_health_check(result.ok)
            if result.ok:
                logger.info("[%s] Health check passed", record.id, extra=extra)
            else:
                logger.warning("[%s] Health check failed", record.id, extra=extra)
        except Exception as e:
            slot.record_health_check(False)
            logger.warning(
                "[%s] Health check could not run: %s", record.id, e, extra=extra
            )
