"""
Rollback Deployment Use Case

Architectural Intent:
- Switches hosts back to their previous system generation
- Only ever invoked on request; a failed deploy never triggers it implicitly
- Outcomes are logged and returned; the run's recorded statuses stay untouched
"""

import logging
from pathlib import Path
from typing import Dict, List
from nixfleet.domain.entities.deployment_run import DeploymentRun
from nixfleet.domain.errors import RollbackFailure
from nixfleet.domain.ports.deploy_action_port import RollbackActionPort

logger = logging.getLogger(__name__)


class RollbackDeployment:
    def __init__(self, rollback_action: RollbackActionPort):
        self.rollback_action = rollback_action

    async def _rollback_one(self, host: str, address: str, log_path: Path) -> bool:
        logger.info("[%s] Rolling back...", host)
        try:
            exit_code = await self.rollback_action.rollback(address, log_path)
        except Exception as e:
            logger.error("[%s] Rollback error: %s", host, e)
            return False
        if exit_code != 0:
            logger.error("%s", RollbackFailure(host, exit_code))
            return False
        logger.info("[%s] Rolled back", host)
        return True

    async def rollback_failed(self, run: DeploymentRun) -> Dict[str, bool]:
        """Roll back every host the run left in `failed`."""
        failed = run.registry.failed_hosts()
        if failed:
            logger.warning("Rolling back deployment on %d failed host(s)", len(failed))
        results: Dict[str, bool] = {}
        for host in failed:
            results[host] = await self._rollback_one(
                host, run.record(host).address, run.log_path("rollback", host)
            )
        return results

    async def execute(self, hosts: List[str], log_dir: Path) -> Dict[str, bool]:
        """Roll back an explicit list of hosts outside of any deployment run."""
        results: Dict[str, bool] = {}
        for host in hosts:
            results[host] = await self._rollback_one(
                host, host, Path(log_dir) / f"rollback-{host}.log"
            )
        return results
