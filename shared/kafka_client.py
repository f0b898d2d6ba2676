"""
kafka_client.py - Kafka Producer Client Wrapper

PURPOSE:
    Provides the Kafka producer used by the inventory service to publish
    stock and alert events, with JSON serialization and delivery guarantees.

PRODUCER FEATURES:
    - JSON serialization of Pydantic events (or plain dicts)
    - Delivery callbacks for tracking
    - Automatic retries on failure (3 attempts)
    - Message compression (snappy)
    - All replicas acknowledgment (acks=all)
    - Events keyed by stock record id so one record's events stay ordered

USAGE:
    producer = BaseKafkaProducer("localhost:9092", "inventory-producer")
    producer.publish("inventory.low", event, key="STK-1A2B3C4D5E6F")
    producer.flush()

ERROR HANDLING:
    - Delivery failures are logged from the delivery callback
    - Errors raised while producing are logged and re-raised to the caller
"""

import json  # For event serialization
import logging  # For error and info logging
from typing import Optional, Union  # Type hints

from confluent_kafka import Producer  # Kafka client library
from confluent_kafka.error import KafkaError  # Kafka error types

from shared.events import BaseEvent

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """
    Base Kafka producer with JSON serialization and delivery callbacks.

    Features:
        - Automatic JSON serialization of events
        - Delivery acknowledgment from all replicas (acks=all)
        - 3 retry attempts on failure
        - Snappy compression for efficiency
        - Synchronous send with callback tracking
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "producer", producer: Optional[Producer] = None):
        """
        Initialize Kafka producer.

        Args:
            bootstrap_servers: Comma-separated Kafka broker addresses
            client_id: Unique identifier for this producer instance
            producer: Pre-built confluent_kafka Producer (used by tests)
        """
        self.config = {
            "bootstrap.servers": bootstrap_servers,  # Kafka broker addresses
            "client.id": client_id,  # Producer identifier
            "acks": "all",  # Wait for all replicas to acknowledge
            "retries": 3,  # Retry failed sends 3 times
            "compression.type": "snappy",  # Compress before sending
        }
        self.producer = producer if producer is not None else Producer(self.config)

    def _delivery_report(self, err: Optional[KafkaError], msg) -> None:
        """Delivery report handler called by producer on message delivery."""
        if err is not None:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.info(
                f"Message delivered to topic={msg.topic()}, "
                f"partition={msg.partition()}, offset={msg.offset()}"
            )

    def publish(self, topic: str, event: Union[BaseEvent, dict], key: Optional[str] = None) -> None:
        """Publish event to Kafka topic."""
        try:
            if isinstance(event, dict):
                message = json.dumps(event, default=str)
                event_type = event.get("event_type", "unknown")
                correlation_id = event.get("correlation_id", "unknown")
            else:
                message = event.model_dump_json()
                event_type = event.event_type
                correlation_id = event.correlation_id

            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=message.encode("utf-8"),
                callback=self._delivery_report,
            )
            self.producer.flush()
            logger.info(
                f"Published event to {topic}",
                extra={"event_type": event_type, "correlation_id": correlation_id},
            )
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")
            raise

    def flush(self) -> None:
        """Flush any pending messages."""
        self.producer.flush()
