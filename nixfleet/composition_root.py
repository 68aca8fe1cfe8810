"""
Composition Root

Architectural Intent:
- Dependency injection composition root for nixfleet
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from NixfleetConfig
"""

from dataclasses import dataclass
from typing import Optional
from nixfleet.infrastructure.config import NixfleetConfig
from nixfleet.infrastructure.adapters.nix_adapter import NixAdapter
from nixfleet.infrastructure.adapters.fabric_adapter import FabricAdapter
from nixfleet.infrastructure.telemetry.otel_exporter import OTELExporter
from nixfleet.application.use_cases.build_hosts import BuildCoordinator
from nixfleet.application.use_cases.deploy_fleet import DeployFleet
from nixfleet.application.use_cases.preflight import HealthProber
from nixfleet.application.use_cases.render_report import ReportGenerator
from nixfleet.application.use_cases.resolve_inventory import HostInventoryResolver
from nixfleet.application.use_cases.rollback_deployment import RollbackDeployment


@dataclass
class NixfleetContainer:
    """DI container holding all wired dependencies."""

    config: NixfleetConfig
    nix_adapter: NixAdapter
    fabric_adapter: FabricAdapter
    resolver: HostInventoryResolver
    prober: HealthProber
    builder: BuildCoordinator
    rollback: RollbackDeployment
    reports: ReportGenerator
    deploy_fleet: DeployFleet
    telemetry: Optional[OTELExporter] = None


def create_container(
    config: Optional[NixfleetConfig] = None,
    telemetry: Optional[OTELExporter] = None,
) -> NixfleetContainer:
    """Create and wire all dependencies."""
    config = config or NixfleetConfig()

    nix_adapter = NixAdapter(
        flake_path=config.flake.path,
        build_host=config.flake.build_host,
        ssh_user=config.ssh.user,
    )
    fabric_adapter = FabricAdapter(user=config.ssh.user)

    resolver = HostInventoryResolver(nix_adapter)
    prober = HealthProber(
        fabric_adapter,
        connect_timeout=config.ssh.connect_timeout,
        disk_warning_percent=config.deploy.disk_warning_percent,
    )
    builder = BuildCoordinator(nix_adapter, max_parallel=config.deploy.max_parallel)
    rollback = RollbackDeployment(fabric_adapter)
    reports = ReportGenerator()

    deploy_fleet = DeployFleet(
        source=nix_adapter,
        resolver=resolver,
        prober=prober,
        deploy_action=nix_adapter,
        remote=fabric_adapter,
        builder=builder,
        rollback=rollback,
        reports=reports,
        health_check_script=config.deploy.health_check_script,
        telemetry=telemetry,
    )

    return NixfleetContainer(
        config=config,
        nix_adapter=nix_adapter,
        fabric_adapter=fabric_adapter,
        resolver=resolver,
        prober=prober,
        builder=builder,
        rollback=rollback,
        reports=reports,
        deploy_fleet=deploy_fleet,
        telemetry=telemetry,
    )
