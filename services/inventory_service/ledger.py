"""
ledger.py - Stock Record domain model

A stock record is the per-product inventory ledger entry: an ordered list of
warehouse allocations plus cached totals and alert flags. The warehouse list
is the single source of truth; ``finalize`` recomputes everything derived
from it and checks the record's invariants before it may be persisted:

    1. per warehouse: available == quantity - reserved, all non-negative
    2. total_stock / total_available equal the sums over warehouses
    3. warehouse names are unique within the record
    4. stock_alerts == derive_alerts(totals, thresholds)
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from services.inventory_service.alerts import derive_alerts
from services.inventory_service.exceptions import InsufficientStockError, ValidationError


class WarehouseAllocation(BaseModel):
    """Quantity / reserved / available figures for one product at one warehouse."""

    warehouse_name: str
    location: str = ""
    quantity: int = Field(0, ge=0)
    reserved: int = Field(0, ge=0)
    available: int = Field(0, ge=0)


class StockAlerts(BaseModel):
    low_stock: bool = False
    out_of_stock: bool = False
    overstock: bool = False


class StockLedger(BaseModel):
    """In-memory working copy of one stock record."""

    record_id: str
    product_id: str
    sku: str
    warehouses: List[WarehouseAllocation] = Field(default_factory=list)
    total_stock: int = 0
    total_available: int = 0
    reorder_point: int = Field(10, ge=0)
    max_stock: int = Field(1000, ge=0)
    last_restock: Optional[datetime] = None
    stock_alerts: StockAlerts = Field(default_factory=StockAlerts)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def find_warehouse(self, warehouse_name: str) -> Optional[WarehouseAllocation]:
        for warehouse in self.warehouses:
            if warehouse.warehouse_name == warehouse_name:
                return warehouse
        return None

    def warehouse_index(self, warehouse_name: str) -> int:
        for index, warehouse in enumerate(self.warehouses):
            if warehouse.warehouse_name == warehouse_name:
                return index
        return -1

    def alerts_dict(self) -> Dict[str, bool]:
        return self.stock_alerts.model_dump()

    def finalize(self) -> "StockLedger":
        """Recompute derived fields from the warehouse list and verify invariants."""
        seen = set()
        total_stock = 0
        total_available = 0

        for warehouse in self.warehouses:
            if warehouse.warehouse_name in seen:
                raise ValidationError(
                    f"Duplicate warehouse '{warehouse.warehouse_name}' in record {self.record_id}"
                )
            seen.add(warehouse.warehouse_name)

            if warehouse.quantity < 0 or warehouse.reserved < 0:
                raise ValidationError(
                    f"Negative figures for warehouse '{warehouse.warehouse_name}'",
                    details=warehouse.model_dump(),
                )
            if warehouse.reserved > warehouse.quantity:
                raise InsufficientStockError(
                    f"Warehouse '{warehouse.warehouse_name}' would reserve more than it holds",
                    details=warehouse.model_dump(),
                )

            warehouse.available = warehouse.quantity - warehouse.reserved
            total_stock += warehouse.quantity
            total_available += warehouse.available

        if self.reorder_point < 0 or self.max_stock < 0:
            raise ValidationError("reorder_point and max_stock must be non-negative")

        self.total_stock = total_stock
        self.total_available = total_available
        self.stock_alerts = StockAlerts(
            **derive_alerts(total_available, total_stock, self.reorder_point, self.max_stock)
        )
        return self

    def to_response(self) -> dict:
        return self.model_dump(mode="json")
