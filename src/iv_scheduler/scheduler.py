"""MaturityScheduler: periodic settlement of matured investment contracts.

One background loop per process. Every ``interval_seconds`` it starts a
sweep cycle unless the previous one is still running. A cycle lists the
ACTIVE contracts whose end_time has passed, batch by batch until none are
left, and completes each one in its own DB session, at most ``concurrency``
at a time. A contract that fails stays ACTIVE and is picked up again by the
next cycle.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.iv_common.datetime_utils import utc_now
from src.iv_common.enums import SettledBy
from src.iv_common.errors import AlreadyProcessedError
from src.iv_investment.application.service import InvestmentService

logger = logging.getLogger(__name__)


class CycleLease(Protocol):
    async def acquire(self) -> bool: ...

    async def release(self) -> None: ...


class _Outcome(str, Enum):
    COMPLETED = "COMPLETED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    FAILED = "FAILED"


@dataclass
class CycleSummary:
    attempted: int = 0
    completed: int = 0
    already_processed: int = 0
    failed: int = 0


class MaturityScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        investment_service: InvestmentService,
        interval_seconds: float,
        concurrency: int = 10,
        batch_limit: int = 500,
        clock: Callable[[], datetime] = utc_now,
        lease: CycleLease | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if batch_limit < 1:
            raise ValueError("batch_limit must be at least 1")
        self._session_factory = session_factory
        self._service = investment_service
        self._interval = interval_seconds
        self._concurrency = concurrency
        self._batch_limit = batch_limit
        self._clock = clock
        self._lease = lease
        self._cycle_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run_loop(), name="maturity-scheduler")
        logger.info(
            "Maturity scheduler started: interval=%ss concurrency=%d",
            self._interval,
            self._concurrency,
        )

    async def stop(self) -> None:
        """Stop ticking and let an in-flight cycle finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        if self._cycle_task is not None:
            await self._cycle_task
            self._cycle_task = None
        logger.info("Maturity scheduler stopped")

    async def run_cycle(self) -> CycleSummary | None:
        """Run one sweep now. Returns None if a sweep is already in progress."""
        if self._cycle_lock.locked():
            logger.info("Maturity sweep already in progress; skipped")
            return None
        async with self._cycle_lock:
            if self._lease is not None and not await self._lease.acquire():
                logger.info("Maturity sweep lease held by another worker; skipped")
                return None
            try:
                return await self._sweep()
            finally:
                if self._lease is not None:
                    await self._lease.release()

    async def _run_loop(self) -> None:
        while True:
            if self._cycle_task is not None and not self._cycle_task.done():
                logger.warning("Previous maturity sweep still running; tick skipped")
            else:
                self._cycle_task = asyncio.create_task(self._guarded_cycle())
            await asyncio.sleep(self._interval)

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            # Listing failed (DB down); the next tick retries
            logger.exception("Maturity sweep cycle failed")

    async def _sweep(self) -> CycleSummary:
        """Drain every contract matured as of cycle start, ``batch_limit`` ids at a time.

        Ids attempted earlier in the cycle are excluded from later batches, so
        contracts that keep failing cannot starve the ones behind them.
        """
        now = self._clock()
        summary = CycleSummary()
        attempted: set[str] = set()
        semaphore = asyncio.Semaphore(self._concurrency)
        while True:
            async with self._session_factory() as db:
                batch = await self._service.list_matured_contract_ids(
                    db, self._batch_limit, now, sorted(attempted)
                )
            batch = [contract_id for contract_id in batch if contract_id not in attempted]
            if not batch:
                break
            attempted.update(batch)
            summary.attempted += len(batch)
            outcomes = await asyncio.gather(
                *(self._complete_one(contract_id, semaphore) for contract_id in batch)
            )
            for outcome in outcomes:
                if outcome == _Outcome.COMPLETED:
                    summary.completed += 1
                elif outcome == _Outcome.ALREADY_PROCESSED:
                    summary.already_processed += 1
                else:
                    summary.failed += 1

        logger.info(
            "Maturity sweep: attempted=%d completed=%d already_processed=%d failed=%d",
            summary.attempted,
            summary.completed,
            summary.already_processed,
            summary.failed,
        )
        return summary

    async def _complete_one(self, contract_id: str, semaphore: asyncio.Semaphore) -> _Outcome:
        async with semaphore:
            try:
                async with self._session_factory() as db:
                    await self._service.complete(db, contract_id, SettledBy.SCHEDULER)
            except AlreadyProcessedError:
                return _Outcome.ALREADY_PROCESSED
            except Exception:
                logger.exception("Failed to complete contract %s; retrying next cycle", contract_id)
                return _Outcome.FAILED
            return _Outcome.COMPLETED
