"""
allocation.py - Warehouse Allocation Engine

Every mutation is scoped to one stock record and runs the same cycle:

    load (fresh read) -> apply transition to the working copy -> finalize
    (recompute available/totals/alerts, verify invariants) -> conditional
    UPDATE on the version seen at load time -> commit -> publish events

A zero-row UPDATE means a concurrent writer got there first: the
transaction is rolled back and the whole cycle is retried from a fresh
read, up to ``max_retries`` times, after which ConflictError is raised.
Any failure before the commit rolls back, so a record is never partially
written.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from shared.events import (
    InventoryDepletedEvent,
    InventoryLowEvent,
    InventoryOverstockEvent,
    StockChangedEvent,
)
from services.inventory_service.alerts import (
    require_name,
    require_non_negative_int,
    require_positive_int,
)
from services.inventory_service.exceptions import (
    ConflictError,
    InsufficientStockError,
    InventoryError,
    NotFoundError,
    ValidationError,
)
from services.inventory_service.ledger import StockLedger, WarehouseAllocation
from services.inventory_service.repository import InventoryRepository
from services.inventory_service.schemas import WarehouseUpdate

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class LedgerMutator:
    """Optimistic read-modify-write cycle shared by the allocation and reservation engines."""

    def __init__(self, repository: InventoryRepository, publisher=None, max_retries: int = DEFAULT_MAX_RETRIES):
        self.repository = repository
        self.publisher = publisher
        self.max_retries = max(1, max_retries)

    def _mutate(
        self,
        record_id: str,
        operation: str,
        apply: Callable[[StockLedger], None],
        warehouse_name: Optional[str] = None,
        quantity: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> StockLedger:
        correlation_id = str(uuid4())
        extra = {"record_id": record_id, "operation": operation, "correlation_id": correlation_id}

        for attempt in range(self.max_retries):
            try:
                ledger = self.repository.load_stock_record(record_id)
                alerts_before = ledger.alerts_dict()
                seen_version = ledger.version

                apply(ledger)
                ledger.finalize()

                saved = self.repository.save_stock_record(ledger, seen_version)
                if saved:
                    self.repository.commit()
            except InventoryError as e:
                self.repository.rollback()
                logger.warning(f"{operation} rejected on {record_id}: {e}", extra=extra)
                raise
            except Exception:
                self.repository.rollback()
                logger.exception(f"{operation} failed on {record_id}", extra=extra)
                raise

            if saved:
                break

            self.repository.rollback()
            if attempt < self.max_retries - 1:
                logger.warning(
                    f"Concurrent conflict on {record_id}, retry {attempt + 1}/{self.max_retries}",
                    extra=extra,
                )
                continue

            logger.error(f"{operation} on {record_id} failed after {self.max_retries} retries", extra=extra)
            raise ConflictError(
                f"Stock record {record_id} was modified concurrently",
                details={"record_id": record_id, "attempts": self.max_retries},
            )

        logger.info(f"{operation} committed on {record_id} (version {ledger.version})", extra=extra)
        self._publish_events(ledger, alerts_before, operation, correlation_id, warehouse_name, quantity, reason)
        return ledger

    def _publish_events(
        self,
        ledger: StockLedger,
        alerts_before: dict,
        operation: str,
        correlation_id: str,
        warehouse_name: Optional[str],
        quantity: Optional[int],
        reason: Optional[str],
    ) -> None:
        if self.publisher is None:
            return

        events = [
            (
                "inventory.stock_changed",
                StockChangedEvent(
                    correlation_id=correlation_id,
                    record_id=ledger.record_id,
                    product_id=ledger.product_id,
                    sku=ledger.sku,
                    operation=operation,
                    warehouse_name=warehouse_name,
                    quantity=quantity,
                    reason=reason,
                    total_stock=ledger.total_stock,
                    total_available=ledger.total_available,
                    stock_alerts=ledger.alerts_dict(),
                    version=ledger.version,
                ),
            )
        ]
        alerts = ledger.stock_alerts
        ids = {"correlation_id": correlation_id, "record_id": ledger.record_id, "product_id": ledger.product_id, "sku": ledger.sku}
        if alerts.low_stock and not alerts_before["low_stock"]:
            events.append(
                ("inventory.low", InventoryLowEvent(current_stock=ledger.total_available, threshold=ledger.reorder_point, **ids))
            )
        if alerts.out_of_stock and not alerts_before["out_of_stock"]:
            events.append(("inventory.depleted", InventoryDepletedEvent(**ids)))
        if alerts.overstock and not alerts_before["overstock"]:
            events.append(
                ("inventory.overstock", InventoryOverstockEvent(current_stock=ledger.total_stock, max_stock=ledger.max_stock, **ids))
            )

        # Already committed: publish failures are only logged.
        for topic, event in events:
            try:
                self.publisher.publish(topic, event, key=ledger.record_id)
            except Exception as e:
                logger.error(
                    f"Failed to publish {topic} for {ledger.record_id}: {e}",
                    extra={"correlation_id": correlation_id, "event_type": topic},
                )


class AllocationEngine(LedgerMutator):
    """Adds, removes and re-counts stock per warehouse."""

    def add_stock(
        self,
        record_id: str,
        warehouse_name: str,
        quantity: int,
        location: Optional[str] = None,
    ) -> StockLedger:
        """Receive units into a warehouse, creating the allocation on first use."""
        quantity = require_positive_int(quantity)
        require_name(warehouse_name)

        def apply(ledger: StockLedger) -> None:
            warehouse = ledger.find_warehouse(warehouse_name)
            if warehouse is not None:
                warehouse.quantity += quantity
                warehouse.available += quantity
                if location is not None:
                    warehouse.location = location
            else:
                ledger.warehouses.append(
                    WarehouseAllocation(
                        warehouse_name=warehouse_name,
                        location=location or "",
                        quantity=quantity,
                        reserved=0,
                        available=quantity,
                    )
                )
            ledger.last_restock = datetime.now(timezone.utc)

        return self._mutate(record_id, "add_stock", apply, warehouse_name=warehouse_name, quantity=quantity)

    def remove_stock(
        self,
        record_id: str,
        warehouse_name: str,
        quantity: int,
        reason: str = "Manual adjustment",
    ) -> StockLedger:
        """Take units out of a warehouse; only unreserved units can leave."""
        quantity = require_positive_int(quantity)
        require_name(warehouse_name)

        def apply(ledger: StockLedger) -> None:
            warehouse = ledger.find_warehouse(warehouse_name)
            if warehouse is None or warehouse.available < quantity:
                raise InsufficientStockError(
                    "Insufficient stock available",
                    details={
                        "warehouse_name": warehouse_name,
                        "requested": quantity,
                        "available": warehouse.available if warehouse else 0,
                    },
                )
            warehouse.quantity -= quantity
            warehouse.available -= quantity

        logger.info(
            f"Remove {quantity} from {warehouse_name} on {record_id} requested: {reason}",
            extra={"record_id": record_id, "operation": "remove_stock"},
        )
        return self._mutate(
            record_id, "remove_stock", apply, warehouse_name=warehouse_name, quantity=quantity, reason=reason
        )

    def remove_warehouse(self, record_id: str, warehouse_name: str) -> StockLedger:
        """Drop a warehouse allocation entirely, reserved units included."""
        require_name(warehouse_name)

        def apply(ledger: StockLedger) -> None:
            index = ledger.warehouse_index(warehouse_name)
            if index == -1:
                raise NotFoundError(
                    f"Warehouse {warehouse_name} not found", details={"warehouse_name": warehouse_name}
                )
            del ledger.warehouses[index]

        return self._mutate(record_id, "remove_warehouse", apply, warehouse_name=warehouse_name)

    def update_settings(
        self,
        record_id: str,
        reorder_point: Optional[int] = None,
        max_stock: Optional[int] = None,
        warehouse_updates: Optional[Iterable[Union[WarehouseUpdate, dict]]] = None,
    ) -> StockLedger:
        """
        Change thresholds and/or re-count warehouses to absolute quantities.

        Every warehouse named in warehouse_updates must exist on the record;
        an unknown name fails the whole update with NotFoundError.
        """
        if reorder_point is not None:
            reorder_point = require_non_negative_int(reorder_point, "reorder_point")
        if max_stock is not None:
            max_stock = require_non_negative_int(max_stock, "max_stock")
        updates = self._normalize_updates(warehouse_updates)

        def apply(ledger: StockLedger) -> None:
            if reorder_point is not None:
                ledger.reorder_point = reorder_point
            if max_stock is not None:
                ledger.max_stock = max_stock

            for update in updates:
                warehouse = ledger.find_warehouse(update.warehouse_name)
                if warehouse is None:
                    raise NotFoundError(
                        f"Warehouse {update.warehouse_name} not found",
                        details={"warehouse_name": update.warehouse_name},
                    )
                if update.quantity is not None:
                    if update.quantity < warehouse.reserved:
                        raise ValidationError(
                            f"Quantity for {update.warehouse_name} cannot drop below its {warehouse.reserved} reserved units",
                            details={"warehouse_name": update.warehouse_name, "quantity": update.quantity},
                        )
                    delta = update.quantity - warehouse.quantity
                    warehouse.quantity = update.quantity
                    warehouse.available += delta
                    if delta > 0:
                        ledger.last_restock = datetime.now(timezone.utc)
                if update.location is not None:
                    warehouse.location = update.location

        return self._mutate(record_id, "update_settings", apply)

    @staticmethod
    def _normalize_updates(warehouse_updates) -> List[WarehouseUpdate]:
        if warehouse_updates is None:
            return []
        updates = []
        for raw in warehouse_updates:
            try:
                update = raw if isinstance(raw, WarehouseUpdate) else WarehouseUpdate.model_validate(raw)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid warehouse update: {raw}", details={"errors": e.errors()}) from e
            require_name(update.warehouse_name)
            if update.quantity is not None:
                require_non_negative_int(update.quantity, "quantity")
            updates.append(update)
        names = [update.warehouse_name for update in updates]
        if len(names) != len(set(names)):
            raise ValidationError("warehouse_updates names each warehouse at most once", details={"warehouses": names})
        return updates
