"""
Bounded retry executor for remote calls.

Wraps any callable with linear-backoff retries. Backoff waits on a stop
event so that a shutdown interrupts them immediately.
"""

import threading
from collections.abc import Callable
from typing import Optional, TypeVar

from bucketflow.core.retry.policy import DEFAULT_RETRY_POLICY, RetryPolicy, RetryState
from bucketflow.exceptions import PipelineStopped, RemoteOperationFailed
from bucketflow.utils.logging import get_logger
from bucketflow.utils.redaction import redact

logger = get_logger("bucketflow.retry.manager")

T = TypeVar("T")


class RetryExecutor:
    """
    Executes remote operations with bounded, linear-backoff retries.

    Examples:
        >>> executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0.5))
        >>> body = executor.execute(lambda: client.get_object(...), operation="fetch", key="a.json")
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        stop_event: threading.Event | None = None,
        secrets: tuple[str, ...] = (),
    ):
        """
        Initialize RetryExecutor.

        Args:
            policy: Retry policy (defaults to DEFAULT_RETRY_POLICY)
            stop_event: Event that aborts backoff waits when set
            secrets: Credential values masked in log messages
        """
        self.policy = policy or DEFAULT_RETRY_POLICY
        self.stop_event = stop_event or threading.Event()
        self.secrets = secrets
        self.last_state: Optional[RetryState] = None

    def execute(
        self,
        func: Callable[..., T],
        *args,
        operation: str,
        key: str | None = None,
        **kwargs,
    ) -> T:
        """
        Execute func with retry logic.

        Args:
            func: Callable performing one remote call
            *args: Positional arguments to pass to func
            operation: Operation name for logs and errors (e.g. "list", "fetch")
            key: Object key the operation targets, if any
            **kwargs: Keyword arguments to pass to func

        Returns:
            Result of the first successful attempt

        Raises:
            RemoteOperationFailed: Retries exhausted, or a non-retryable failure
            PipelineStopped: The stop event was set before or during a backoff wait
        """
        policy = self.policy
        state = RetryState(operation=operation, key=key)
        self.last_state = state
        target = f"{operation} ({key})" if key else operation

        while True:
            if self.stop_event.is_set():
                raise PipelineStopped(f"Stopped before {target}")

            try:
                logger.debug(f"Executing {target} (attempt {state.total_attempts + 1}/{policy.max_retries + 1})")
                result = func(*args, **kwargs)
            except PipelineStopped:
                raise
            except Exception as e:
                state.record_attempt(exception=e)
                retries_done = state.total_attempts - 1

                if not policy.should_retry(e, retries_done):
                    logger.error(
                        redact(f"{target} failed after {state.total_attempts} attempts: {e}", self.secrets)
                    )
                    raise RemoteOperationFailed(operation, key=key, attempts=state.total_attempts, cause=e) from e

                delay = policy.get_delay(retries_done + 1)
                state.record_delay(delay)
                logger.warning(
                    redact(
                        f"Retry attempt {retries_done + 1}/{policy.max_retries} for {target}: {e}. "
                        f"Retrying in {delay:.2f}s...",
                        self.secrets,
                    )
                )

                # Event.wait returns True as soon as the event is set
                if self.stop_event.wait(delay):
                    raise PipelineStopped(f"Stopped while backing off {target}") from e
                continue

            state.record_attempt()
            state.mark_success(result)
            if state.total_attempts > 1:
                logger.info(f"{target} succeeded after {state.total_attempts} attempts")
            return result
