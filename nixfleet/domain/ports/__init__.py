from nixfleet.domain.ports.configuration_source_port import ConfigurationSourcePort
from nixfleet.domain.ports.build_backend_port import BuildBackendPort
from nixfleet.domain.ports.remote_executor_port import CommandResult, RemoteExecutorPort
from nixfleet.domain.ports.deploy_action_port import DeployActionPort, RollbackActionPort

__all__ = [
    "ConfigurationSourcePort",
    "BuildBackendPort",
    "CommandResult",
    "RemoteExecutorPort",
    "DeployActionPort",
    "RollbackActionPort",
]
