"""
In-memory message adapter for testing.

Example:
    from bucketflow.streaming import InMemoryAdapter

    adapter = InMemoryAdapter()

    async with adapter:
        await adapter.produce_records(batch)
        messages = adapter.get_topic_messages("events")
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bucketflow.streaming.adapters.base import (
    AdapterConfig,
    Message,
    MessageAdapter,
)


class InMemoryAdapter(MessageAdapter):
    """
    In-memory sink for tests and dry runs.

    Messages are kept per topic for the lifetime of the adapter and
    numbered with a per-topic offset.
    """

    def __init__(self, config: Optional[AdapterConfig] = None):
        super().__init__(config)
        self._topics: Dict[str, List[Message]] = defaultdict(list)
        self._connected = False

    async def connect(self) -> None:
        """No-op for in-memory adapter."""
        self._connected = True

    async def disconnect(self) -> None:
        """Messages are kept so tests can inspect them after the run."""
        self._connected = False

    async def produce(self, topic: str, message: Message) -> None:
        """Produce a message to in-memory topic."""
        message.topic = topic
        if message.timestamp is None:
            message.timestamp = datetime.now(timezone.utc)
        message.offset = len(self._topics[topic])
        self._topics[topic].append(message)

    def get_topic_messages(self, topic: str) -> List[Message]:
        """Get all messages in a topic (for testing)."""
        return list(self._topics.get(topic, []))

    def clear_topic(self, topic: str) -> None:
        """Clear all messages in a topic (for testing)."""
        self._topics[topic] = []

    @property
    def topics(self) -> List[str]:
        return [name for name, messages in self._topics.items() if messages]

    @property
    def is_connected(self) -> bool:
        return self._connected
