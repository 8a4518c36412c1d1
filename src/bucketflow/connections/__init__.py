"""
Remote object store access.
"""

from bucketflow.connections.filters import ObjectFilter, task_slot
from bucketflow.connections.s3 import S3ObjectClient, is_not_found, validate_object_key

__all__ = [
    "ObjectFilter",
    "S3ObjectClient",
    "is_not_found",
    "task_slot",
    "validate_object_key",
]
