"""
Tests for the retry framework.

Covers retry policy classification, the bounded retry executor and
dead-letter envelopes.
"""

import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError, ReadTimeoutError

from bucketflow.core.retry import (
    DEFAULT_RETRY_POLICY,
    NO_RETRY_POLICY,
    DeadLetterEnvelope,
    RetryExecutor,
    RetryPolicy,
    RetryState,
    is_retryable_transport_error,
)
from bucketflow.exceptions import DecodeFailed, PipelineStopped, RemoteOperationFailed


def _connection_error():
    return EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")


class TestRetryPolicy:
    """Tests for RetryPolicy configuration."""

    def test_default_values(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.backoff_base == 1.0
        assert DEFAULT_RETRY_POLICY.max_retries == 3
        assert NO_RETRY_POLICY.max_retries == 0

    def test_from_millis(self):
        policy = RetryPolicy.from_millis(5, 250)
        assert policy.max_retries == 5
        assert policy.backoff_base == 0.25

    def test_validation(self):
        with pytest.raises(ValueError, match="max_retries must be >= 0"):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError, match="backoff_base must be >= 0"):
            RetryPolicy(backoff_base=-0.5)

    def test_linear_delay(self):
        """The n-th retry waits backoff_base * n."""
        policy = RetryPolicy(backoff_base=1.5)
        assert [policy.get_delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 4.5]

    def test_should_retry_within_budget(self):
        policy = RetryPolicy(max_retries=2)
        error = _connection_error()
        assert policy.should_retry(error, retries_done=0) is True
        assert policy.should_retry(error, retries_done=1) is True
        assert policy.should_retry(error, retries_done=2) is False

    def test_explicit_exception_filter(self):
        policy = RetryPolicy(retryable_exceptions=(ValueError,))
        assert policy.should_retry(ValueError("x"), retries_done=0) is True
        assert policy.should_retry(_connection_error(), retries_done=0) is False


class TestTransportClassification:
    """Tests for is_retryable_transport_error."""

    def test_connection_and_timeouts_are_retryable(self):
        assert is_retryable_transport_error(_connection_error())
        assert is_retryable_transport_error(ReadTimeoutError(endpoint_url="https://s3.amazonaws.com"))
        assert is_retryable_transport_error(ConnectionResetError())
        assert is_retryable_transport_error(TimeoutError())

    @pytest.mark.parametrize("code,status", [("SlowDown", 503), ("InternalError", 500), ("RequestTimeout", 400)])
    def test_throttling_and_server_errors_are_retryable(self, client_error, code, status):
        assert is_retryable_transport_error(client_error(code, status))

    @pytest.mark.parametrize("code,status", [("NoSuchKey", 404), ("AccessDenied", 403), ("InvalidRequest", 400)])
    def test_client_errors_are_not_retryable(self, client_error, code, status):
        assert not is_retryable_transport_error(client_error(code, status))

    def test_programming_errors_are_not_retryable(self):
        assert not is_retryable_transport_error(KeyError("Body"))


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    def test_success_first_attempt(self):
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0))
        func = MagicMock(return_value="ok")

        assert executor.execute(func, "a", operation="fetch", key="k", extra=1) == "ok"
        func.assert_called_once_with("a", extra=1)
        assert executor.last_state.total_attempts == 1
        assert executor.last_state.succeeded is True

    def test_success_after_transient_failures(self):
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0))
        func = MagicMock(side_effect=[_connection_error(), _connection_error(), "ok"])

        assert executor.execute(func, operation="list") == "ok"
        assert func.call_count == 3
        assert len(executor.last_state.exceptions) == 2

    def test_permanent_failure_attempted_max_retries_plus_one(self):
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0))
        func = MagicMock(side_effect=_connection_error())

        with pytest.raises(RemoteOperationFailed) as exc_info:
            executor.execute(func, operation="fetch", key="data.json")

        assert func.call_count == 4
        error = exc_info.value
        assert error.attempts == 4
        assert error.operation == "fetch"
        assert error.key == "data.json"
        assert "after 4 attempts for key: data.json" in str(error)
        assert isinstance(error.__cause__, EndpointConnectionError)

    def test_zero_retries(self):
        executor = RetryExecutor(NO_RETRY_POLICY)
        func = MagicMock(side_effect=_connection_error())
        with pytest.raises(RemoteOperationFailed):
            executor.execute(func, operation="list")
        assert func.call_count == 1

    def test_non_retryable_fails_immediately(self, client_error):
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0))
        func = MagicMock(side_effect=client_error("AccessDenied", 403))

        with pytest.raises(RemoteOperationFailed) as exc_info:
            executor.execute(func, operation="fetch", key="k")
        assert func.call_count == 1
        assert exc_info.value.attempts == 1

    def test_linear_delays_are_recorded(self):
        stop_event = MagicMock()
        stop_event.is_set.return_value = False
        stop_event.wait.return_value = False
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=0.5), stop_event=stop_event)

        with pytest.raises(RemoteOperationFailed):
            executor.execute(MagicMock(side_effect=_connection_error()), operation="list")

        assert executor.last_state.delays == [0.5, 1.0, 1.5]
        assert [c.args[0] for c in stop_event.wait.call_args_list] == [0.5, 1.0, 1.5]

    def test_stop_interrupts_backoff(self):
        stop_event = threading.Event()
        executor = RetryExecutor(RetryPolicy(max_retries=3, backoff_base=60), stop_event=stop_event)

        def failing():
            stop_event.set()
            raise _connection_error()

        with pytest.raises(PipelineStopped):
            executor.execute(failing, operation="fetch", key="k")
        assert executor.last_state.total_attempts == 1

    def test_stop_before_first_attempt(self):
        stop_event = threading.Event()
        stop_event.set()
        func = MagicMock()
        with pytest.raises(PipelineStopped):
            RetryExecutor(stop_event=stop_event).execute(func, operation="list")
        func.assert_not_called()

    def test_secrets_redacted_in_logs(self, caplog):
        executor = RetryExecutor(RetryPolicy(max_retries=0), secrets=("s3cr3tvalue",))
        func = MagicMock(side_effect=ConnectionError("auth failed with s3cr3tvalue"))

        with pytest.raises(RemoteOperationFailed):
            executor.execute(func, operation="list")
        assert "s3cr3tvalue" not in caplog.text


class TestRetryState:
    """Tests for RetryState bookkeeping."""

    def test_record_attempts(self):
        state = RetryState(operation="fetch", key="k")
        state.record_attempt(exception=ValueError("boom"))
        state.record_delay(1.0)
        state.record_attempt()
        state.mark_success()

        assert state.total_attempts == 2
        assert state.exceptions[0]["exception_type"] == "ValueError"
        assert state.delays == [1.0]
        assert state.succeeded is True


class TestDeadLetterEnvelope:
    """Tests for dead-letter envelopes."""

    def test_from_exception(self):
        error = DecodeFailed("json", "bad document", key="a.json")
        envelope = DeadLetterEnvelope.from_exception(error, "a.json", bucket="b")

        assert envelope.error_kind == "decode_failed"
        assert envelope.object_key == "a.json"
        assert envelope.exception_type == "DecodeFailed"
        assert envelope.bucket == "b"
        assert isinstance(envelope.timestamp, int)

    def test_unexpected_kind(self):
        envelope = DeadLetterEnvelope.from_exception(KeyError("x"), "a.json")
        assert envelope.error_kind == "unexpected"

    def test_message_is_redacted(self):
        error = RuntimeError("request failed: aws_secret_access_key=abcdef123 token=xyz")
        envelope = DeadLetterEnvelope.from_exception(error, "a.json")
        assert "abcdef123" not in envelope.error
        assert "xyz" not in envelope.error

    def test_to_json(self):
        import json

        envelope = DeadLetterEnvelope(error="boom", error_kind="unexpected", object_key="a.json", timestamp=1)
        assert json.loads(envelope.to_json()) == {
            "error": "boom",
            "error_kind": "unexpected",
            "object_key": "a.json",
            "exception_type": "",
            "timestamp": 1,
            "bucket": None,
        }
