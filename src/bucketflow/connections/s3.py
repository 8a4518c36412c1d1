"""
S3 object client for the ingestion pipeline.

Provides a lazily created boto3 client plus paginated listing, content
fetch, metadata lookup and existence checks. Every network call goes
through the pipeline's RetryExecutor.
"""

from __future__ import annotations

from typing import Any

from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.connections.filters import ObjectFilter
from bucketflow.core.retry import RetryExecutor, RetryPolicy
from bucketflow.core.types import ListingPage, ObjectDescriptor
from bucketflow.exceptions import InvalidKeyError, PipelineStopped, RemoteOperationFailed
from bucketflow.utils.logging import get_logger
from bucketflow.utils.redaction import redact

logger = get_logger("bucketflow.connections.s3")

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def validate_object_key(key: str | None) -> str:
    """
    Reject keys that could address something outside the bucket namespace.

    Raises:
        InvalidKeyError: For empty keys, a leading path separator, or any ``..`` segment
    """
    if not key:
        raise InvalidKeyError(key, "object key cannot be empty")
    if key.startswith(("/", "\\")):
        raise InvalidKeyError(key, "leading path separator")
    if ".." in key.replace("\\", "/").split("/"):
        raise InvalidKeyError(key, "potential path traversal detected")
    return key


def is_not_found(exc: BaseException) -> bool:
    """True for a 404 / NoSuchKey response from the store."""
    if not isinstance(exc, ClientError):
        return False
    error_code = exc.response.get("Error", {}).get("Code")
    http_status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return error_code in NOT_FOUND_CODES or http_status == 404


class S3ObjectClient:
    """
    S3 wrapper used by the poll orchestrator.

    Supports AWS credentials from config or the ambient credential chain
    (environment, profile, instance role), custom endpoints for
    S3-compatible stores and path-style addressing.

    The client holds no state besides the boto3 client itself.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        executor: RetryExecutor | None = None,
        client: Any | None = None,
    ):
        self.config = config
        self.executor = executor or RetryExecutor(
            RetryPolicy.from_millis(config.max_retries, config.retry_backoff_ms), secrets=config.secrets
        )
        self.object_filter = ObjectFilter.from_config(config)
        self._client = client

    @property
    def bucket(self) -> str:
        return self.config.bucket

    def _get_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for boto3 client initialization."""
        cfg = self.config
        s3_options: dict[str, Any] = {}
        if cfg.path_style_access:
            s3_options["addressing_style"] = "path"

        kwargs: dict[str, Any] = {
            "region_name": cfg.region,
            "config": BotoConfig(
                connect_timeout=cfg.connect_timeout_ms / 1000.0,
                read_timeout=cfg.read_timeout_ms / 1000.0,
                # Retries are owned by RetryExecutor
                retries={"total_max_attempts": 1, "mode": "standard"},
                s3=s3_options or None,
            ),
        }

        if cfg.endpoint_url:
            kwargs["endpoint_url"] = cfg.endpoint_url

        # Explicit credentials override env/IAM
        if cfg.uses_static_credentials:
            kwargs["aws_access_key_id"] = cfg.access_key_id
            kwargs["aws_secret_access_key"] = cfg.secret_access_key
            if cfg.session_token:
                kwargs["aws_session_token"] = cfg.session_token

        return kwargs

    @property
    def client(self):
        """
        Get boto3 S3 client (lazy initialization).

        Returns:
            boto3.client('s3') instance
        """
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", **self._get_client_kwargs())
            logger.info(
                f"S3 client initialized for bucket: {self.bucket}, region: {self.config.region}"
                + (f", endpoint: {self.config.endpoint_url}" if self.config.endpoint_url else "")
            )
        return self._client

    def list(self, continuation_token: str | None = None) -> ListingPage:
        """
        List one page of objects and apply the client-side filters.

        Args:
            continuation_token: Cursor returned by the previous page (None = first page)

        Returns:
            ListingPage with the filtered descriptors and the next-page cursor

        Raises:
            RemoteOperationFailed: When listing keeps failing after all retries
        """
        # One page never holds more objects than a single poll may process
        max_keys = min(self.config.page_size, self.config.max_objects_per_poll)
        request: dict[str, Any] = {"Bucket": self.bucket, "MaxKeys": max_keys}
        if self.config.prefix:
            request["Prefix"] = self.config.prefix
        if continuation_token:
            request["ContinuationToken"] = continuation_token

        response = self.executor.execute(self.client.list_objects_v2, operation="list", **request)

        listed = [ObjectDescriptor.from_listing(entry) for entry in response.get("Contents", [])]
        objects = self.object_filter.apply(listed)
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None

        logger.debug(f"Listed {len(listed)} objects from bucket {self.bucket}, {len(objects)} after filters")
        return ListingPage(objects=tuple(objects), next_token=next_token, listed_count=len(listed))

    def fetch(self, key: str) -> bytes:
        """
        Get object content as bytes.

        Raises:
            InvalidKeyError: Unsafe key (raised before any network call)
            RemoteOperationFailed: When the download keeps failing after all retries
        """
        validate_object_key(key)

        def _download() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        return self.executor.execute(_download, operation="fetch", key=key)

    def head(self, key: str) -> ObjectDescriptor:
        """
        Get object metadata.

        Raises:
            InvalidKeyError: Unsafe key
            RemoteOperationFailed: When the lookup keeps failing after all retries
        """
        validate_object_key(key)
        response = self.executor.execute(self.client.head_object, operation="head", key=key, Bucket=self.bucket, Key=key)
        return ObjectDescriptor.from_listing({**response, "Key": key})

    def exists(self, key: str) -> bool:
        """
        Check if an object exists.

        Best effort: "not found" is False, and so is any other failure
        (logged, never raised). A stop signal still propagates.
        """
        try:
            self.head(key)
            return True
        except PipelineStopped:
            raise
        except RemoteOperationFailed as e:
            if is_not_found(e.__cause__):
                return False
            logger.warning(redact(f"Error checking if object exists: {key}: {e}", self.config.secrets))
            return False
        except InvalidKeyError as e:
            logger.warning(f"Error checking if object exists: {e}")
            return False

    def close(self) -> None:
        """Close the underlying HTTP connections."""
        if self._client is not None:
            close = getattr(self._client, "close", None)
            if callable(close):
                close()
            self._client = None
            logger.info("S3 client closed")

    def __enter__(self) -> "S3ObjectClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(bucket='{self.bucket}')"
