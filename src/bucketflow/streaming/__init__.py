"""
Streaming module for Bucketflow.

Provides the output sinks the runtime hands each batch to.

Usage:
    from bucketflow.streaming import InMemoryAdapter, KafkaAdapter

    sink = KafkaAdapter(bootstrap_servers="localhost:9092")
    async with sink:
        await sink.produce_records(batch)
"""

from bucketflow.streaming.adapters import (
    AdapterConfig,
    InMemoryAdapter,
    KafkaAdapter,
    Message,
    MessageAdapter,
)

__all__ = [
    "MessageAdapter",
    "Message",
    "AdapterConfig",
    "KafkaAdapter",
    "InMemoryAdapter",
]
