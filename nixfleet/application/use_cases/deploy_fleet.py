"""
Deploy Fleet Use Case

Architectural Intent:
- Orchestrates a complete deployment run across the fleet
- Inventory -> plan confirmation -> flake check -> pre-flight -> strategy
  engine -> optional rollback -> report
- Only inventory and pre-flight problems abort the whole run; per-host
  failures end up in the report
"""

import logging
from pathlib import Path
from typing import Optional
from nixfleet.application.confirm import Confirm
from nixfleet.application.dtos.deployment_dtos import (
    DeployFleetRequest,
    DeployFleetResponse,
)
from nixfleet.application.orchestration.strategy_engine import StrategyEngine
from nixfleet.application.use_cases.build_hosts import BuildCoordinator
from nixfleet.application.use_cases.deploy_host import DeployExecutor
from nixfleet.application.use_cases.preflight import HealthProber
from nixfleet.application.use_cases.render_report import ReportGenerator
from nixfleet.application.use_cases.resolve_inventory import HostInventoryResolver
from nixfleet.application.use_cases.rollback_deployment import RollbackDeployment
from nixfleet.domain.entities.deployment_run import DeploymentRun
from nixfleet.domain.errors import NoHostsSelected
from nixfleet.domain.ports.configuration_source_port import ConfigurationSourcePort
from nixfleet.domain.ports.deploy_action_port import DeployActionPort
from nixfleet.domain.ports.remote_executor_port import RemoteExecutorPort
from nixfleet.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


def format_plan(request: DeployFleetRequest, hosts: list[str]) -> str:
    lines = [
        "Deployment Plan:",
        f"  Mode: {request.mode.value}",
        f"  Action: {request.action.value}",
        f"  Hosts: {len(hosts)}",
    ]
    lines += [f"  • {h}" for h in hosts]
    lines.append("Proceed with deployment?")
    return "\n".join(lines)


class DeployFleet:
    def __init__(
        self,
        source: ConfigurationSourcePort,
        resolver: HostInventoryResolver,
        prober: HealthProber,
        deploy_action: DeployActionPort,
        remote: RemoteExecutorPort,
        builder: BuildCoordinator,
        rollback: RollbackDeployment,
        reports: ReportGenerator,
        health_check_script: str = "",
        telemetry: Optional[OTELExporter] = None,
    ):
        self.source = source
        self.resolver = resolver
        self.prober = prober
        self.deploy_action = deploy_action
        self.remote = remote
        self.builder = builder
        self.rollback = rollback
        self.reports = reports
        self.health_check_script = health_check_script
        self.telemetry = telemetry

    def _executor(self, request: DeployFleetRequest) -> DeployExecutor:
        return DeployExecutor(
            self.deploy_action,
            self.remote,
            builder=self.builder if request.build_first else None,
            connect_timeout=self.prober.connect_timeout,
            health_check_script=self.health_check_script,
            telemetry=self.telemetry,
        )

    async def execute(
        self,
        request: DeployFleetRequest,
        confirm: Confirm,
        confirm_plan: Optional[Confirm] = None,
    ) -> Optional[DeployFleetResponse]:
        """Run a deployment. Returns None if the operator cancels at the plan.

        `confirm` answers the policy questions (unreachable hosts, failures,
        canary); `confirm_plan` answers the plan question and defaults to it.
        """
        hosts = await self.resolver.resolve(request.host_filter, request.hosts)
        if not hosts:
            raise NoHostsSelected("No hosts to deploy")

        confirm_plan = confirm_plan or confirm
        if not confirm_plan(format_plan(request, hosts)):
            logger.info("Deployment cancelled by operator")
            return None

        if not await self.source.check():
            logger.warning("Flake check reported issues")

        records = await self.prober.preflight(hosts, confirm)
        if not records:
            raise NoHostsSelected("No reachable hosts to deploy")

        run = DeploymentRun.create(
            request.mode, request.action, records, Path(request.log_dir)
        )
        run.log_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Deployment ID: %s, logs: %s", run.id, run.log_dir)

        span = None
        if self.telemetry is not None:
            span = self.telemetry.start_span(
                "nixfleet.deploy",
                {"run_id": run.id, "mode": run.mode.value, "action": run.action.value},
            )

        engine = StrategyEngine(
            self._executor(request),
            confirm,
            max_parallel=request.max_parallel,
            batch_size=request.batch_size,
            batch_delay=request.batch_delay,
        )
        phase = await engine.run(run)

        rollbacks: dict[str, bool] = {}
        if request.rollback_on_failure and run.registry.failed_hosts():
            rollbacks = await self.rollback.rollback_failed(run)

        report = self.reports.write(run)

        if self.telemetry is not None:
            counts = {s.value: n for s, n in run.registry.counts_by_status().items()}
            self.telemetry.record_run_summary(run.id, run.mode.value, counts)
            self.telemetry.end_span(span)
            await self.telemetry.export()

        return DeployFleetResponse(
            run_id=run.id, phase=phase, report=report, rollbacks=rollbacks
        )
