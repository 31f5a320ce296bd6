"""Periodic background jobs.

Each registered job runs in its own asyncio task on a fixed period. A job
that raises is logged and retried on the next period; it never takes the
loop down with it.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettingsStore, Settings
from app.config import game_settings as default_game_settings
from app.config import settings as default_settings
from app.services.ai_service import run_ai_cycle
from app.services.combat_service import run_deployment_sweep
from app.services.lifecycle_service import run_lifecycle_sweep
from app.services.resource_service import run_economy_tick, run_population_tick
from app.services.trade_service import expire_trades
from app.services.upkeep_service import run_upkeep_tick

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


@dataclass
class ScheduledJob:
    name: str
    period: float
    job: Job
    task: asyncio.Task | None = None


class Scheduler:
    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}

    @property
    def running(self) -> bool:
        return any(job.task is not None and not job.task.done() for job in self._jobs.values())

    def register(self, name: str, period: float, job: Job) -> None:
        if name in self._jobs:
            raise ValueError(f"Job {name!r} already registered")
        if period <= 0:
            raise ValueError("Job period must be positive")
        self._jobs[name] = ScheduledJob(name=name, period=period, job=job)

    def job_names(self) -> list[str]:
        return list(self._jobs)

    async def run_once(self, name: str) -> object:
        """Run a single job invocation inline; errors propagate to the caller."""
        scheduled = self._jobs.get(name)
        if scheduled is None:
            raise KeyError(name)
        return await scheduled.job()

    async def _loop(self, scheduled: ScheduledJob) -> None:
        while True:
            try:
                await scheduled.job()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled job %s failed", scheduled.name)
            await asyncio.sleep(scheduled.period)

    def start(self) -> None:
        for scheduled in self._jobs.values():
            if scheduled.task is None or scheduled.task.done():
                scheduled.task = asyncio.create_task(self._loop(scheduled), name=f"job:{scheduled.name}")
        logger.info("Scheduler started with jobs: %s", ", ".join(self._jobs))

    async def stop(self) -> None:
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for job in self._jobs.values():
            job.task = None
        logger.info("Scheduler stopped")


def build_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    store: GameSettingsStore | None = None,
    config: Settings | None = None,
    rng: random.Random | None = None,
) -> Scheduler:
    """Wire the game's sweeps into a scheduler.

    Every invocation takes the settings snapshot current at that moment.
    """
    store = store or default_game_settings
    config = config or default_settings
    scheduler = Scheduler()

    async def economy_job():
        snapshot = store.current
        generated = await run_economy_tick(session_factory, snapshot)
        grown = await run_population_tick(session_factory, snapshot)
        upkeep = await run_upkeep_tick(session_factory, snapshot, rng=rng)
        return {"generated": generated, "grown": grown, "upkeep": len(upkeep)}

    async def lifecycle_job():
        return await run_lifecycle_sweep(session_factory)

    async def deployments_job():
        return await run_deployment_sweep(session_factory, rng=rng)

    async def trades_job():
        return await expire_trades(session_factory)

    async def ai_job():
        return await run_ai_cycle(session_factory, store.current, rng=rng)

    scheduler.register("economy", config.economy_tick_seconds, economy_job)
    scheduler.register("lifecycle", config.lifecycle_tick_seconds, lifecycle_job)
    scheduler.register("deployments", config.deployment_tick_seconds, deployments_job)
    scheduler.register("trades", config.lifecycle_tick_seconds, trades_job)
    scheduler.register("ai", config.ai_tick_seconds, ai_job)
    return scheduler
