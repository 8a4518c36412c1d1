"""
Poll orchestrator.

Drives one pipeline instance through its cycle:

    Idle -> Listing -> Processing -> Batching -> Idle

with Stopped reachable from any state. The orchestrator owns the
continuation token, the carry-over buffer and the pacing timestamp; the
runtime must not call poll() concurrently on the same instance.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bucketflow.config.pipeline import ErrorPolicy, PipelineConfig
from bucketflow.connections.s3 import S3ObjectClient
from bucketflow.core.context import PipelineContext
from bucketflow.core.retry import RetryExecutor, RetryPolicy
from bucketflow.core.types import ObjectDescriptor, ObjectOffset, OutputRecord
from bucketflow.exceptions import PipelineStopped, error_kind
from bucketflow.utils.redaction import redact

# Looks up the last committed offset for a partition key (None if never committed)
OffsetLookup = Callable[[dict[str, str]], "ObjectOffset | Mapping[str, Any] | None"]


class PipelineState(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    LISTING = "listing"
    PROCESSING = "processing"
    BATCHING = "batching"
    STOPPED = "stopped"


@dataclass
class CycleSummary:
    """Counters for the most recent poll cycle."""

    listed: int = 0
    processed: int = 0
    unchanged: int = 0
    failed: int = 0
    dead_lettered: int = 0
    records: int = 0
    carried_over: int = 0
    listed_remotely: bool = False


def _no_offsets(partition_key: dict[str, str]) -> None:
    return None


class PollOrchestrator:
    """
    Control loop for one pipeline instance.

    Args:
        config: Validated pipeline configuration
        offset_lookup: Returns the last committed offset for a partition key
        client: Remote object client (built from config when omitted)
        context: Per-instance collaborators (built from config when omitted)
        clock: Monotonic clock in seconds, used for pacing

    Examples:
        >>> orchestrator = PollOrchestrator(config, offset_lookup=store.get)
        >>> batch = orchestrator.poll()
        >>> store.commit(batch)
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        offset_lookup: OffsetLookup | None = None,
        client: S3ObjectClient | None = None,
        context: PipelineContext | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.context = context or PipelineContext.create(config)
        self.logger = self.context.logger
        self.offset_lookup = offset_lookup or _no_offsets
        self.client = client or S3ObjectClient(
            config,
            executor=RetryExecutor(
                RetryPolicy.from_millis(config.max_retries, config.retry_backoff_ms),
                stop_event=self.context.stop_event,
                secrets=config.secrets,
            ),
        )
        self._clock = clock

        self.state = PipelineState.IDLE
        self.continuation_token: str | None = None
        self._carry_over: deque[OutputRecord] = deque()
        self._last_cycle_end: float | None = None
        self._in_poll = False
        self.last_cycle = CycleSummary()

    @property
    def stop_event(self):
        return self.context.stop_event

    @property
    def pending(self) -> int:
        """Records waiting in the carry-over buffer."""
        return len(self._carry_over)

    # --- Public API -----------------------------------------------------------

    def poll(self) -> list[OutputRecord]:
        """
        Run one poll invocation.

        Carry-over records from the previous cycle come first. If they fill
        a whole batch no listing happens; otherwise a new cycle runs and its
        records follow. Records beyond the batch size are carried over.

        Returns:
            Ordered batch of at most ``batch_size`` records (possibly empty). After stop,
            only the remaining carry-over records are returned.

        Raises:
            RemoteOperationFailed: Listing failed after all retries
            BucketflowError: A per-object failure under the 'fail' policy
        """
        if self.state is PipelineState.STOPPED or self.stop_event.is_set():
            # No new listing once stopped, but carried records are still handed out
            self._enter_stopped()
            return self._take_carry_over()

        self._in_poll = True
        summary = CycleSummary()
        self.last_cycle = summary
        try:
            batch = self._take_carry_over()
            summary.carried_over = len(batch)
            if len(batch) >= self.config.batch_size:
                return batch

            try:
                self._wait_for_interval()
                fresh = self._run_cycle(summary)
            except PipelineStopped:
                self.logger.info("Stop requested, abandoning poll cycle")
                self._enter_stopped()
                return batch
            except Exception:
                # Carried records stay first in line for the next poll
                self._carry_over.extendleft(reversed(batch))
                raise

            self.state = PipelineState.BATCHING
            return self._fill_batch(batch, fresh)
        finally:
            self._in_poll = False
            if self.state is not PipelineState.STOPPED:
                self.state = PipelineState.IDLE
            if self.stop_event.is_set():
                self._enter_stopped()

    def stop(self) -> None:
        """
        Request shutdown.

        Interrupts any pacing or backoff wait. The client connection is
        released now, or when the in-flight poll returns.
        """
        self.stop_event.set()
        if not self._in_poll:
            self._enter_stopped()

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> "PollOrchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Cycle ----------------------------------------------------------------

    def _wait_for_interval(self) -> None:
        if self._last_cycle_end is None:
            return
        remaining = self.config.poll_interval_ms / 1000.0 - (self._clock() - self._last_cycle_end)
        if remaining > 0:
            self.logger.debug(f"Waiting {remaining:.2f}s before next listing")
            if self.stop_event.wait(remaining):
                raise PipelineStopped("Stopped while waiting for the next poll")

    def _run_cycle(self, summary: CycleSummary) -> list[OutputRecord]:
        self.state = PipelineState.LISTING
        summary.listed_remotely = True
        try:
            page = self.client.list(self.continuation_token)
        finally:
            self._last_cycle_end = self._clock()

        self.continuation_token = None if self.config.reset_token_each_cycle else page.next_token
        summary.listed = len(page.objects)

        if not page.objects:
            self.logger.debug("No objects to process this cycle")
            return []

        self.state = PipelineState.PROCESSING
        records: list[OutputRecord] = []
        for obj in page.objects[: self.config.max_objects_per_poll]:
            try:
                produced = self._process_object(obj, summary)
            except PipelineStopped:
                raise
            except Exception as e:
                self._route_failure(obj, e, records, summary)
                continue
            records.extend(produced)

        self._last_cycle_end = self._clock()
        summary.records = len(records)
        self.logger.info(
            f"Poll cycle: {summary.listed} listed, {summary.processed} processed, "
            f"{summary.unchanged} unchanged, {summary.failed} failed, {summary.records} records"
        )
        return records

    def _process_object(self, obj: ObjectDescriptor, summary: CycleSummary) -> list[OutputRecord]:
        ctx = self.context
        self.logger.debug(f"Processing object: {obj.key}")

        if self.config.incremental:
            last_offset = self.offset_lookup(ctx.tracker.partition_key_for(obj.key))
            if ctx.tracker.is_already_processed(last_offset, obj.key, obj.last_modified):
                self.logger.debug(f"Object {obj.key} already processed, skipping")
                summary.unchanged += 1
                return []

        content = self.client.fetch(obj.key)
        result = ctx.decoder.decode(content, key=obj.key)
        if result.skipped:
            self.logger.info(f"Object {obj.key}: {len(result.skipped)} lines skipped during decoding")

        records = [ctx.assembler.assemble(record, obj) for record in result.records]
        summary.processed += 1
        self.logger.info(f"Processed object {obj.key}: {len(records)} records created")
        return records

    def _route_failure(
        self,
        obj: ObjectDescriptor,
        exc: Exception,
        records: list[OutputRecord],
        summary: CycleSummary,
    ) -> None:
        summary.failed += 1
        message = redact(f"Error processing object {obj.key} ({error_kind(exc)}): {exc}", self.config.secrets)

        if self.config.error_policy is ErrorPolicy.FAIL:
            self.logger.error(message)
            raise exc

        self.logger.warning(f"Skipping object after failure. {message}")
        if self.config.dead_letter_topic:
            records.append(self.context.assembler.dead_letter(exc, obj))
            summary.dead_lettered += 1

    # --- Batching -------------------------------------------------------------

    def _take_carry_over(self) -> list[OutputRecord]:
        batch: list[OutputRecord] = []
        while self._carry_over and len(batch) < self.config.batch_size:
            batch.append(self._carry_over.popleft())
        return batch

    def _fill_batch(self, batch: list[OutputRecord], fresh: list[OutputRecord]) -> list[OutputRecord]:
        room = self.config.batch_size - len(batch)
        batch.extend(fresh[:room])
        overflow = fresh[room:]
        if overflow:
            self._carry_over.extend(overflow)
            self.logger.debug(f"Holding {len(overflow)} records for the next poll")
        return batch

    # --- Shutdown -------------------------------------------------------------

    def _enter_stopped(self) -> None:
        self.state = PipelineState.STOPPED
        # close() is idempotent
        self.client.close()
