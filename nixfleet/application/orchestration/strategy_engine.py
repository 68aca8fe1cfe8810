"""
Deployment Strategy Engine

Architectural Intent:
- Drives the Deploy Executor over a run's hosts under one of three strategies
- Sequential: one host at a time, operator decides whether to go on after a failure
- Parallel: bounded worker pool, every host is attempted
- Rolling: canary alone first, then fixed-size batches separated by barriers

Concurrency Model:
- Every task the engine starts is awaited before it advances (no task
  outlives its wave)
- Parallel mode starts exactly max_parallel workers that pull from a queue,
  so the number of hosts deploying at once can never exceed the bound
- Host order is inventory order; order inside a batch is unspecified

Run-level aborts are policy decisions made here; the engine never retries.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar
from nixfleet.application.confirm import Confirm
from nixfleet.application.use_cases.deploy_host import DeployExecutor
from nixfleet.domain.entities.deployment_run import (
    DeploymentMode,
    DeploymentRun,
    DeploymentStatus,
    RunPhase,
)
from nixfleet.domain.value_objects.host import HostRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_PARALLEL = 5
DEFAULT_BATCH_SIZE = 2


def plan_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split items into consecutive batches of batch_size (last may be short)."""
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")
    items = list(items)
    return [items[i:i + batch_size] for i in range(0, len(items), batch_size)]


class StrategyEngine:
    def __init__(
        self,
        executor: DeployExecutor,
        confirm: Confirm,
        max_parallel: int = DEFAULT_MAX_PARALLEL,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_delay < 0:
            raise ValueError("batch_delay cannot be negative")
        self.executor = executor
        self.confirm = confirm
        self.max_parallel = max_parallel
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep
        self.phase = RunPhase.IDLE

    async def run(self, run: DeploymentRun) -> RunPhase:
        if self.phase is not RunPhase.IDLE:
            raise RuntimeError(f"Strategy engine already used (phase={self.phase.value})")
        self.phase = RunPhase.RUNNING
        records = list(run.records)
        logger.info(
            "Starting %s deployment of %d host(s), run %s",
            run.mode.value, len(records), run.id,
        )

        if records:
            if run.mode is DeploymentMode.SEQUENTIAL:
                await self._sequential(run, records)
            elif run.mode is DeploymentMode.PARALLEL:
                await self._parallel(run, records)
            elif run.mode is DeploymentMode.ROLLING:
                await self._rolling(run, records)
            else:
                raise ValueError(f"Unknown deployment mode: {run.mode}")

        if run.registry.failed_hosts():
            self.phase = RunPhase.DONE_WITH_FAILURES
        else:
            self.phase = RunPhase.DONE_SUCCESS
        logger.info("Run %s finished: %s", run.id, self.phase.value)
        return self.phase

    async def _sequential(self, run: DeploymentRun, records: List[HostRecord]) -> None:
        for index, record in enumerate(records):
            status = await self.executor.deploy(run, record)
            remaining = len(records) - index - 1
            if status is DeploymentStatus.FAILED and remaining:
                logger.error("Deployment to %s failed", record.id)
                if not self.confirm(
                    f"Deployment to {record.id} failed. "
                    f"Continue with remaining {remaining} host(s)?"
                ):
                    logger.warning("Stopping; %d host(s) left pending", remaining)
                    return

    async def _parallel(self, run: DeploymentRun, records: List[HostRecord]) -> None:
        queue: asyncio.Queue[HostRecord] = asyncio.Queue()
        for record in records:
            queue.put_nowait(record)

        async def worker() -> None:
            while True:
                try:
                    record = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                await self.executor.deploy(run, record)

        workers = min(self.max_parallel, len(records))
        logger.info(
            "Deploying to %d hosts in parallel (max %d)...",
            len(records), self.max_parallel,
        )
        await asyncio.gather(*(worker() for _ in range(workers)))

    async def _deploy_wave(
        self, run: DeploymentRun, wave: List[HostRecord]
    ) -> List[DeploymentStatus]:
        """Deploy every host of a wave concurrently and wait for all of them."""
        return list(
            await asyncio.gather(*(self.executor.deploy(run, r) for r in wave))
        )

    async def _rolling(self, run: DeploymentRun, records: List[HostRecord]) -> None:
        canary, rest = records[0], records[1:]

        logger.info("Deploying to canary host: %s", canary.id)
        if await self.executor.deploy(run, canary) is DeploymentStatus.FAILED:
            logger.error("Canary deployment failed, aborting")
            return
        logger.info("Canary deployment successful")

        if not rest:
            return
        if not self.confirm(
            f"Canary {canary.id} deployed successfully. "
            f"Continue with rolling deployment of {len(rest)} host(s)?"
        ):
            logger.warning("Rolling deployment stopped after canary")
            return

        batches = plan_batches(rest, self.batch_size)
        for batch_num, batch in enumerate(batches, start=1):
            remaining = sum(len(b) for b in batches[batch_num - 1:])
            logger.info(
                "Deploying batch %d/%d (%d hosts remaining)...",
                batch_num, len(batches), remaining,
            )
            statuses = await self._deploy_wave(run, batch)

            is_last = batch_num == len(batches)
            failed = statuses.count(DeploymentStatus.FAILED)
            if failed:
                logger.warning("Batch %d had %d failure(s)", batch_num, failed)
                if not is_last and not self.confirm(
                    f"Batch {batch_num} had {failed} failure(s). Continue deployment?"
                ):
                    logger.warning("Rolling deployment halted after batch %d", batch_num)
                    return

            if not is_last and self.batch_delay > 0:
                logger.info(
                    "Waiting %s seconds before next batch...", self.batch_delay
                )
                await self._sleep(self.batch_delay)
