"""
Kafka message adapter.

Delivers pipeline output records to Apache Kafka topics.
Requires: pip install bucketflow[kafka]

Example:
    from bucketflow.streaming import KafkaAdapter

    async with KafkaAdapter(bootstrap_servers="localhost:9092") as sink:
        await sink.produce_records(batch)
"""

from __future__ import annotations

from typing import Any

from bucketflow.streaming.adapters.base import (
    AdapterConfig,
    Message,
    MessageAdapter,
)
from bucketflow.utils.logging import get_logger

logger = get_logger("bucketflow.streaming.kafka")


class KafkaAdapter(MessageAdapter):
    """
    Apache Kafka sink.

    Sends each message with its key, explicit partition (when the record
    has one) and string payload, waiting for the broker acknowledgement.

    Args:
        bootstrap_servers: Kafka broker addresses (comma-separated or list)
        client_id: Client identifier
        security_protocol: Security protocol (PLAINTEXT, SSL, SASL_PLAINTEXT, SASL_SSL)
        sasl_mechanism: SASL mechanism (PLAIN, SCRAM-SHA-256, SCRAM-SHA-512)
        sasl_username: SASL username
        sasl_password: SASL password
        ssl_context: SSL context for secure connections
        config: Adapter configuration
        **kafka_config: Additional aiokafka producer configuration
    """

    def __init__(
        self,
        bootstrap_servers: str = "localhost:9092",
        client_id: str = "bucketflow",
        security_protocol: str = "PLAINTEXT",
        sasl_mechanism: str | None = None,
        sasl_username: str | None = None,
        sasl_password: str | None = None,
        ssl_context: Any | None = None,
        config: AdapterConfig | None = None,
        **kafka_config: Any,
    ) -> None:
        super().__init__(config)
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.security_protocol = security_protocol
        self.sasl_mechanism = sasl_mechanism
        self.sasl_username = sasl_username
        self.sasl_password = sasl_password
        self.ssl_context = ssl_context
        self.kafka_config = kafka_config

        self._producer = None

    def _producer_config(self) -> dict[str, Any]:
        producer_config: dict[str, Any] = {
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": self.client_id,
            "security_protocol": self.security_protocol,
            "acks": self.config.acks,
            "linger_ms": self.config.linger_ms,
        }
        if self.sasl_mechanism:
            producer_config["sasl_mechanism"] = self.sasl_mechanism
        if self.sasl_username:
            producer_config["sasl_plain_username"] = self.sasl_username
        if self.sasl_password:
            producer_config["sasl_plain_password"] = self.sasl_password
        if self.ssl_context:
            producer_config["ssl_context"] = self.ssl_context
        producer_config.update(self.config.extra)
        producer_config.update(self.kafka_config)
        return producer_config

    async def connect(self) -> None:
        """Connect to Kafka."""
        try:
            from aiokafka import AIOKafkaProducer
        except ImportError as e:
            raise ImportError(
                "aiokafka is required for Kafka integration. " "Install it with: pip install bucketflow[kafka]"
            ) from e

        self._producer = AIOKafkaProducer(**self._producer_config())
        await self._producer.start()  # type: ignore[attr-defined]
        logger.info(f"Connected Kafka producer to {self.bootstrap_servers}")

    async def disconnect(self) -> None:
        """Disconnect from Kafka."""
        if self._producer:
            await self._producer.stop()
            self._producer = None
            logger.info("Disconnected from Kafka")

    async def produce(self, topic: str, message: Message) -> None:
        """Produce a message to a Kafka topic."""
        if not self._producer:
            raise RuntimeError("Kafka producer not connected. Call connect() first.")

        key = message.key.encode("utf-8") if message.key is not None else None
        value = message.value.encode("utf-8") if isinstance(message.value, str) else message.value
        headers = [(k, v.encode("utf-8")) for k, v in message.headers.items()] if message.headers else None

        await self._producer.send_and_wait(
            topic,
            value=value,
            key=key,
            partition=message.partition,
            headers=headers,
        )

    async def produce_batch(self, topic: str, messages: list[Message]) -> int:
        """
        Produce a batch of messages to Kafka.

        Sends are pipelined; the call returns once every message in the
        batch is acknowledged, and fails on the first rejected one.
        """
        if not self._producer:
            raise RuntimeError("Kafka producer not connected. Call connect() first.")

        pending = []
        for msg in messages:
            key = msg.key.encode("utf-8") if msg.key is not None else None
            value = msg.value.encode("utf-8") if isinstance(msg.value, str) else msg.value
            headers = [(k, v.encode("utf-8")) for k, v in msg.headers.items()] if msg.headers else None
            pending.append(
                await self._producer.send(topic, value=value, key=key, partition=msg.partition, headers=headers)
            )

        for delivery in pending:
            await delivery
        return len(pending)
