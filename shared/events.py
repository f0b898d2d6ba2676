"""
events.py - Kafka Event Schema Definitions

PURPOSE:
    Defines the event schemas published by the inventory ledger service.
    Uses Pydantic for data validation and serialization.

EVENT CATEGORIES:
    1. Stock Events: Ledger mutations
       - inventory.stock_changed (every successful add/remove/reserve/release/settings change)

    2. Alert Events: Alert flags turning on after a mutation
       - inventory.low
       - inventory.depleted
       - inventory.overstock

COMMON FIELDS (BaseEvent):
    - event_id: Unique identifier (UUID)
    - event_type: Event category and action
    - timestamp: Timezone-aware timestamp of event creation
    - correlation_id: Links the events emitted by one mutation

SERIALIZATION:
    - Pydantic models auto-serialize to JSON
    - DateTime fields converted to ISO format
    - Validation on construction

USAGE:
    Creating an event:
        event = InventoryLowEvent(
            correlation_id="mut-123",
            record_id="STK-1A2B3C4D5E6F",
            product_id="PROD-0A1B2C3D4E5F",
            sku="PHONE-001",
            current_stock=4,
            threshold=10,
        )

    Serializing to JSON:
        json_data = event.model_dump_json()

    Deserializing from JSON:
        event = InventoryLowEvent.model_validate_json(json_string)
"""

from datetime import datetime  # For event timestamps with timezone
from zoneinfo import ZoneInfo  # For timezone support
from typing import Dict, Optional  # Type hints
from uuid import uuid4  # For unique event IDs

from pydantic import BaseModel, Field  # Data validation and serialization


class BaseEvent(BaseModel):
    """
    Base event model for all Kafka events.

    All events inherit from this class and include:
    - Unique event ID
    - Event type identifier
    - Los Angeles timezone-aware timestamp
    - Correlation ID tying together the events of one mutation
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))  # Auto-generated unique ID
    event_type: str  # Event category (e.g., "inventory.low")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(ZoneInfo("America/Los_Angeles")))
    correlation_id: str

    model_config = {"json_encoders": {datetime: lambda v: v.isoformat()}}  # ISO datetime format


# ============================================================================
# STOCK EVENTS - Ledger mutations
# ============================================================================

class StockChangedEvent(BaseEvent):
    """
    Event published after a stock record mutation has been committed.
    Triggers: Allocation Engine / Reservation Manager on success
    Consumers: Analytics (stock movement tracking), audit trail
    """

    event_type: str = "inventory.stock_changed"
    record_id: str
    product_id: str
    sku: str
    operation: str  # add_stock, remove_stock, remove_warehouse, update_settings, reserve, release
    warehouse_name: Optional[str] = None
    quantity: Optional[int] = None
    reason: Optional[str] = None  # Audit note, only set by remove_stock
    total_stock: int
    total_available: int
    stock_alerts: Dict[str, bool]
    version: int


# ============================================================================
# ALERT EVENTS - Alert flags turning on
# ============================================================================

class InventoryLowEvent(BaseEvent):
    """
    Event published when a record enters the low-stock state.
    Triggers: total_available drops to or below reorder_point (and above zero)
    Consumers: Notification Service (send restock alert)
    """

    event_type: str = "inventory.low"
    record_id: str
    product_id: str
    sku: str
    current_stock: int
    threshold: int = 10


class InventoryDepletedEvent(BaseEvent):
    """
    Event published when a record runs out of available stock.
    Triggers: total_available reaches zero
    Consumers: Notification Service (send out-of-stock alert)
    """

    event_type: str = "inventory.depleted"
    record_id: str
    product_id: str
    sku: str


class InventoryOverstockEvent(BaseEvent):
    """
    Event published when a record exceeds its max_stock.
    Triggers: total_stock rises above max_stock
    Consumers: Purchasing dashboards
    """

    event_type: str = "inventory.overstock"
    record_id: str
    product_id: str
    sku: str
    current_stock: int
    max_stock: int


# Event mapping for deserialization
EVENT_TYPE_MAP = {
    "inventory.stock_changed": StockChangedEvent,
    "inventory.low": InventoryLowEvent,
    "inventory.depleted": InventoryDepletedEvent,
    "inventory.overstock": InventoryOverstockEvent,
}

ALL_TOPICS = list(EVENT_TYPE_MAP)
