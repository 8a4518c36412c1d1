"""
Base message adapter interface.

Sinks that receive the pipeline's output records (Kafka, in-memory)
implement this interface so the runtime can deliver a batch without
knowing which messaging system is behind it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from bucketflow.core.types import OutputRecord


@dataclass
class Message:
    """
    A message bound for an external messaging system.

    ``value`` is the already serialized payload text.
    """
    key: Optional[str] = None
    value: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    topic: Optional[str] = None
    partition: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def from_record(cls, record: OutputRecord) -> "Message":
        """Build a message from an assembled output record."""
        return cls(
            key=record.key,
            value=record.value,
            headers=dict(record.headers),
            topic=record.topic,
            partition=record.partition,
        )


@dataclass
class AdapterConfig:
    """
    Configuration shared by every adapter.
    """
    # Delivery
    acks: str = "all"
    linger_ms: int = 0

    # Additional adapter-specific config
    extra: Dict[str, Any] = field(default_factory=dict)


class MessageAdapter(ABC):
    """
    Abstract base class for output sinks.

    Implementations provided:
    - KafkaAdapter: Apache Kafka (requires aiokafka)
    - InMemoryAdapter: In-process testing adapter

    Example:
        async with KafkaAdapter(bootstrap_servers="localhost:9092") as sink:
            await sink.produce_records(batch)
    """

    def __init__(self, config: Optional[AdapterConfig] = None):
        self.config = config or AdapterConfig()

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the messaging system."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Gracefully disconnect from the messaging system."""
        ...

    @abstractmethod
    async def produce(
        self,
        topic: str,
        message: Message,
    ) -> None:
        """
        Produce a message to an external topic.

        Args:
            topic: Target topic name
            message: Message to send
        """
        ...

    async def produce_batch(
        self,
        topic: str,
        messages: List[Message],
    ) -> int:
        """
        Produce a batch of messages.

        Default implementation sends one at a time, in order.

        Returns:
            Number of messages sent
        """
        count = 0
        for msg in messages:
            await self.produce(topic, msg)
            count += 1
        return count

    async def produce_records(self, records: List[OutputRecord]) -> int:
        """
        Deliver assembled records, grouped by destination topic.

        Order within each topic follows the batch order.

        Returns:
            Number of records sent
        """
        by_topic: Dict[str, List[Message]] = {}
        for record in records:
            by_topic.setdefault(record.topic, []).append(Message.from_record(record))

        sent = 0
        for topic, messages in by_topic.items():
            sent += await self.produce_batch(topic, messages)
        return sent

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc):
        await self.disconnect()
