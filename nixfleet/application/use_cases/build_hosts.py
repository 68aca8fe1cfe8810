"""
Build Hosts Use Case

Architectural Intent:
- Builds host system closures independently of deployment
- One log file per host; no automatic retries
- Used standalone (build command) and as the optional gate in front of a deploy
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from nixfleet.domain.errors import BuildFailure
from nixfleet.domain.ports.build_backend_port import BuildBackendPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    host: str
    success: bool
    log_path: Path
    error: Optional[BuildFailure] = None


class BuildCoordinator:
    def __init__(self, backend: BuildBackendPort, max_parallel: int = 5):
        if max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")
        self.backend = backend
        self.max_parallel = max_parallel

    async def build(self, host: str, log_path: Path) -> BuildResult:
        logger.info("[%s] Building configuration...", host)
        try:
            ok = await self.backend.build(host, log_path)
        except Exception as e:
            logger.error("[%s] Build backend error: %s", host, e)
            ok = False

        if ok:
            logger.info("[%s] Build successful", host)
            return BuildResult(host=host, success=True, log_path=log_path)

        failure = BuildFailure(host, str(log_path))
        logger.error("[%s] Build failed (see %s)", host, log_path)
        return BuildResult(host=host, success=False, log_path=log_path, error=failure)

    async def build_all(self, hosts: List[str], log_dir: Path) -> List[BuildResult]:
        """Build every host, at most max_parallel at a time; results keep host order."""
        limit = asyncio.Semaphore(self.max_parallel)

        async def _one(host: str) -> BuildResult:
            async with limit:
                return await self.build(host, Path(log_dir) / f"build-{host}.log")

        return list(await asyncio.gather(*(_one(h) for h in hosts)))
