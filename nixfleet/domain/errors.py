"""
Domain Errors

Architectural Intent:
- Single error taxonomy for the deployment domain
- Run-level errors (inventory, pre-flight) abort before any host is touched
- Per-host errors are recorded as status by the Deploy Executor, never raised past it
"""


class NixfleetError(Exception):
    """Base class for all nixfleet errors."""


class InventoryUnavailable(NixfleetError):
    """The configuration source could not be queried or parsed."""


class HostUnreachable(NixfleetError):
    def __init__(self, host: str) -> None:
        super().__init__(f"Host unreachable: {host}")
        self.host = host


class PreflightAborted(NixfleetError):
    """Operator declined to continue after pre-flight checks."""


class BuildFailure(NixfleetError):
    def __init__(self, host: str, log_path: str = "") -> None:
        super().__init__(f"Build failed for {host}")
        self.host = host
        self.log_path = log_path


class DeployFailure(NixfleetError):
    def __init__(self, host: str, exit_code: int) -> None:
        super().__init__(f"Deploy failed for {host} (exit {exit_code})")
        self.host = host
        self.exit_code = exit_code


class RollbackFailure(NixfleetError):
    def __init__(self, host: str, exit_code: int) -> None:
        super().__init__(f"Rollback failed for {host} (exit {exit_code})")
        self.host = host
        self.exit_code = exit_code


class InvalidTransition(NixfleetError):
    """A host status change that would violate pending -> deploying -> terminal."""


class HostAlreadyClaimed(NixfleetError):
    """A second writer tried to take ownership of a host in the same run."""


class NoHostsSelected(NixfleetError):
    """Inventory resolution or pre-flight left nothing to deploy."""
