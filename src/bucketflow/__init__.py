"""
Bucketflow - Stream objects from S3-compatible buckets into topics.

Lists a bucket on a fixed cadence, decodes each object (JSON / JSON Lines,
CSV, text, binary) into records and hands ordered batches to a sink.
"""

__version__ = "0.1.0"

# Configuration
from bucketflow.config import Config, ErrorPolicy, PipelineConfig, ReadMode, load_config

# Remote access
from bucketflow.connections import S3ObjectClient

# Pipeline
from bucketflow.core.orchestrator import PipelineState, PollOrchestrator
from bucketflow.core.types import ObjectDescriptor, ObjectOffset, OutputRecord

# Exceptions
from bucketflow.exceptions import (
    BucketflowError,
    ConfigurationError,
    DecodeFailed,
    InvalidKey,
    InvalidKeyError,
    PipelineStopped,
    RemoteOperationFailed,
    SerializationDegraded,
)

# Runtime
from bucketflow.runtime import InMemoryOffsetStore, JsonFileOffsetStore, PipelineRunner, task_configs

# Logging utilities
from bucketflow.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    "__version__",
    # Configuration
    "Config",
    "load_config",
    "PipelineConfig",
    "ReadMode",
    "ErrorPolicy",
    # Remote access
    "S3ObjectClient",
    # Pipeline
    "PollOrchestrator",
    "PipelineState",
    "ObjectDescriptor",
    "ObjectOffset",
    "OutputRecord",
    # Runtime
    "PipelineRunner",
    "InMemoryOffsetStore",
    "JsonFileOffsetStore",
    "task_configs",
    # Exceptions
    "BucketflowError",
    "ConfigurationError",
    "InvalidKeyError",
    "InvalidKey",
    "RemoteOperationFailed",
    "DecodeFailed",
    "PipelineStopped",
    "SerializationDegraded",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
]
