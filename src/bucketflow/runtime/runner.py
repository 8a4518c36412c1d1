"""
Reference runtime.

Drives one or more PollOrchestrators: each poll runs in a worker thread,
the batch is delivered to a MessageAdapter sink, and offsets are
committed only after delivery succeeded.

Example:
    runner = PipelineRunner(config, sink=KafkaAdapter(...), offset_store=JsonFileOffsetStore("offsets.json"))

    async with runner:
        await runner.run_forever()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.core.orchestrator import PollOrchestrator
from bucketflow.core.types import OutputRecord
from bucketflow.runtime.offset_store import InMemoryOffsetStore, OffsetStore
from bucketflow.runtime.tasks import task_configs
from bucketflow.streaming.adapters.base import MessageAdapter
from bucketflow.streaming.adapters.memory import InMemoryAdapter
from bucketflow.utils.logging import get_logger

logger = get_logger("bucketflow.runtime.runner")


@dataclass
class DeliveryStats:
    """Totals across every poll delivered by one runner."""

    polls: int = 0
    records: int = 0
    dead_letters: int = 0
    committed: int = 0


class PipelineRunner:
    """
    Runs pipeline tasks against a sink and an offset store.

    Args:
        config: Validated pipeline configuration
        sink: Where output records are delivered (in-memory by default)
        offset_store: Where offsets are read and committed (in-memory by default)
        max_tasks: Upper bound on parallel tasks (static key split)
        orchestrators: Pre-built orchestrators (tests); skips building from config
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        sink: Optional[MessageAdapter] = None,
        offset_store: Optional[OffsetStore] = None,
        max_tasks: int = 1,
        orchestrators: Optional[List[PollOrchestrator]] = None,
    ):
        self.config = config
        # An empty store is falsy, so test against None
        self.sink = sink if sink is not None else InMemoryAdapter()
        self.offset_store = offset_store if offset_store is not None else InMemoryOffsetStore()
        self.max_tasks = max_tasks
        self.orchestrators: List[PollOrchestrator] = list(orchestrators or [])
        self.stats = DeliveryStats()
        self._running = False
        self._connected = False

    async def start(self) -> None:
        """Build one orchestrator per task and connect the sink."""
        if not self.orchestrators:
            self.orchestrators = [
                PollOrchestrator(task_config, offset_lookup=self.offset_store.get)
                for task_config in task_configs(self.config, self.max_tasks)
            ]
        await self.sink.connect()
        self._connected = True
        self._running = True
        logger.info(
            f"Pipeline started for bucket {self.config.bucket} -> topic {self.config.topic} "
            f"with {len(self.orchestrators)} task(s)"
        )

    async def run_once(self, orchestrator: Optional[PollOrchestrator] = None) -> List[OutputRecord]:
        """
        Run one poll, deliver the batch and commit its offsets.

        Returns:
            The delivered batch (possibly empty)
        """
        orchestrator = orchestrator or self.orchestrators[0]
        batch = await asyncio.to_thread(orchestrator.poll)
        self.stats.polls += 1
        if not batch:
            return batch

        await self.sink.produce_records(batch)
        self.stats.records += len(batch)
        self.stats.dead_letters += sum(1 for record in batch if record.dead_letter)
        # The file store writes synchronously
        self.stats.committed += await asyncio.to_thread(self.offset_store.commit, batch)
        logger.debug(f"Delivered {len(batch)} records, {orchestrator.pending} pending")
        return batch

    async def _run_task(self, orchestrator: PollOrchestrator, max_polls: Optional[int]) -> None:
        polls = 0
        while self._running and not orchestrator.stop_event.is_set():
            await self.run_once(orchestrator)
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
        if orchestrator.stop_event.is_set():
            await self.drain(orchestrator)

    async def drain(self, orchestrator: PollOrchestrator) -> int:
        """
        Deliver every carried-over record of a stopped orchestrator.

        Records from a partly delivered object share its offset, so they
        must all reach the sink before the runner lets go of them.

        Returns:
            Number of records delivered
        """
        delivered = 0
        while orchestrator.pending:
            batch = await self.run_once(orchestrator)
            if not batch:
                break
            delivered += len(batch)
        if delivered:
            logger.info(f"Delivered {delivered} carried-over records before stopping")
        return delivered

    async def run_forever(self, max_polls: Optional[int] = None) -> None:
        """
        Poll every task until stopped.

        A failure in any task (listing exhausted, or an object failure
        under the 'fail' policy) stops the other tasks and propagates.

        Args:
            max_polls: Stop each task after this many polls (None = until stopped)
        """
        if not self._running:
            await self.start()

        tasks = [
            asyncio.create_task(self._run_task(orch, max_polls), name=f"bucketflow-task-{orch.config.task_id}")
            for orch in self.orchestrators
        ]
        try:
            await asyncio.gather(*tasks)
        except Exception as e:
            logger.error(f"Pipeline task failed: {e}")
            self.request_stop()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def request_stop(self) -> None:
        """Signal every task to stop (safe to call from a signal handler)."""
        self._running = False
        for orchestrator in self.orchestrators:
            orchestrator.stop()

    async def stop(self, *, drain: bool = True) -> None:
        """
        Stop every task and disconnect the sink.

        Args:
            drain: Deliver pending carry-over records first (skipped when
                leaving on an error)
        """
        self.request_stop()
        if self._connected and drain:
            for orchestrator in self.orchestrators:
                await self.drain(orchestrator)
        if self._connected:
            await self.sink.disconnect()
            self._connected = False
        logger.info(
            f"Pipeline stopped: {self.stats.polls} polls, {self.stats.records} records delivered, "
            f"{self.stats.dead_letters} dead letters"
        )

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "PipelineRunner":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop(drain=exc_type is None)
