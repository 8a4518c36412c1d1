"""
Message adapters for delivering pipeline output.
"""

from bucketflow.streaming.adapters.base import AdapterConfig, Message, MessageAdapter
from bucketflow.streaming.adapters.kafka import KafkaAdapter
from bucketflow.streaming.adapters.memory import InMemoryAdapter

__all__ = [
    "AdapterConfig",
    "Message",
    "MessageAdapter",
    "KafkaAdapter",
    "InMemoryAdapter",
]
