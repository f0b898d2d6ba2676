import logging

from services.inventory_service.alerts import require_name, require_positive_int
from services.inventory_service.allocation import LedgerMutator
from services.inventory_service.exceptions import InsufficientStockError, NotFoundError
from services.inventory_service.ledger import StockLedger

logger = logging.getLogger(__name__)


class ReservationManager(LedgerMutator):
    """
    Earmarks available units for future fulfilment without moving them.

    Reserving shifts units from available to reserved inside one warehouse;
    total_stock never changes. Release is the exact inverse.
    """

    def reserve(self, record_id: str, warehouse_name: str, quantity: int) -> StockLedger:
        quantity = require_positive_int(quantity)
        require_name(warehouse_name)

        def apply(ledger: StockLedger) -> None:
            warehouse = ledger.find_warehouse(warehouse_name)
            if warehouse is None:
                raise NotFoundError(f"Warehouse {warehouse_name} not found", details={"warehouse_name": warehouse_name})
            if warehouse.available < quantity:
                raise InsufficientStockError(
                    "Insufficient stock available",
                    details={"warehouse_name": warehouse_name, "requested": quantity, "available": warehouse.available},
                )
            warehouse.reserved += quantity
            warehouse.available -= quantity

        return self._mutate(record_id, "reserve", apply, warehouse_name=warehouse_name, quantity=quantity)

    def release(self, record_id: str, warehouse_name: str, quantity: int) -> StockLedger:
        quantity = require_positive_int(quantity)
        require_name(warehouse_name)

        def apply(ledger: StockLedger) -> None:
            warehouse = ledger.find_warehouse(warehouse_name)
            if warehouse is None:
                raise NotFoundError(f"Warehouse {warehouse_name} not found", details={"warehouse_name": warehouse_name})
            if warehouse.reserved < quantity:
                raise InsufficientStockError(
                    "Insufficient reserved stock to release",
                    details={"warehouse_name": warehouse_name, "requested": quantity, "reserved": warehouse.reserved},
                )
            warehouse.reserved -= quantity
            warehouse.available += quantity

        return self._mutate(record_id, "release", apply, warehouse_name=warehouse_name, quantity=quantity)
