"""
topic_initializer.py - Kafka Topic Auto-Creation Utility

PURPOSE:
    Creates the inventory service's Kafka topics on application startup
    with proper partitioning and replication configuration.

TOPICS CREATED:
    - inventory.stock_changed
    - inventory.low
    - inventory.depleted
    - inventory.overstock

CONFIGURATION:
    - Default partitions: 3 (enables parallel processing)
    - Default replication factor: 1 (single-broker deployments; raise for HA)
    - Idempotent: Safe to call multiple times

RETRY LOGIC:
    - Retries topic creation if Kafka brokers are not ready
    - Logs all creation attempts and failures

USAGE:
    Called by the inventory service on startup:
        create_topics("kafka-broker-1:9092")
"""

import logging  # For status and error logging
import time  # For retry delays
from typing import Iterable, List, Optional  # Type hints

from confluent_kafka.admin import AdminClient, NewTopic  # Kafka admin operations

from shared.events import ALL_TOPICS

logger = logging.getLogger(__name__)


def create_topics(
    bootstrap_servers: str,
    num_partitions: int = 3,
    replication_factor: int = 1,
    topics: Optional[Iterable[str]] = None,
    max_retries: int = 10,
    retry_delay: float = 3,
) -> None:
    """
    Create Kafka topics with specified partitions and replication factor.

    Args:
        bootstrap_servers: Comma-separated Kafka broker addresses
        num_partitions: Number of partitions per topic (default: 3)
        replication_factor: Number of replicas per partition (default: 1)
        topics: Topic names to create (default: every inventory topic)

    Note:
        - Idempotent: Safe to call multiple times
        - Existing topics are ignored
    """
    admin_client = AdminClient({"bootstrap.servers": bootstrap_servers})

    topics_to_create: List[NewTopic] = [
        NewTopic(topic, num_partitions=num_partitions, replication_factor=replication_factor)
        for topic in (topics or ALL_TOPICS)
    ]

    for attempt in range(max_retries):
        try:
            logger.info(f"Creating topics (attempt {attempt + 1}/{max_retries})...")

            fs = admin_client.create_topics(topics_to_create, validate_only=False)

            for topic, future in fs.items():
                try:
                    future.result(timeout=10)
                    logger.info(f"Topic '{topic}' created successfully")
                except Exception as e:
                    # Topic may already exist
                    if "already exists" in str(e) or "TOPIC_ALREADY_EXISTS" in str(e):
                        logger.info(f"Topic '{topic}' already exists")
                    else:
                        logger.warning(f"Error creating topic '{topic}': {e}")

            logger.info("All topics processed successfully")
            break

        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(f"Failed to create topics (attempt {attempt + 1}): {e}. Retrying in {retry_delay}s...")
                time.sleep(retry_delay)
            else:
                logger.error(f"Failed to create topics after {max_retries} attempts: {e}")
                raise
