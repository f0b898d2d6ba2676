from services.inventory_service.exceptions import NotFoundError
from services.inventory_service.ledger import StockLedger
from services.inventory_service.schemas import ProductCreate


class InMemoryRepository:
    """Stock record store with the same load/save/commit contract as InventoryRepository."""

    def __init__(self):
        self.records = {}
        self.commits = 0
        self.rollbacks = 0

    def put(self, ledger: StockLedger) -> StockLedger:
        self.records[ledger.record_id] = ledger.model_copy(deep=True)
        return ledger

    def load_stock_record(self, record_id: str) -> StockLedger:
        if record_id not in self.records:
            raise NotFoundError(f"Stock record {record_id} not found")
        return self.records[record_id].model_copy(deep=True)

    def save_stock_record(self, ledger: StockLedger, expected_version: int) -> bool:
        current = self.records[ledger.record_id]
        if current.version != expected_version:
            return False
        ledger.version = expected_version + 1
        self.records[ledger.record_id] = ledger.model_copy(deep=True)
        return True

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class FakePublisher:
    def __init__(self, fail: bool = False):
        self.published = []
        self.fail = fail

    def publish(self, topic, event, key=None):
        if self.fail:
            raise RuntimeError("broker down")
        self.published.append((topic, event, key))

    def topics(self):
        return [topic for topic, _, _ in self.published]


def make_ledger(record_id="STK-TEST", warehouses=None, reorder_point=10, max_stock=1000) -> StockLedger:
    return StockLedger(
        record_id=record_id,
        product_id="PROD-TEST",
        sku="TEST-001",
        warehouses=warehouses or [],
        reorder_point=reorder_point,
        max_stock=max_stock,
    ).finalize()


def product_payload(sku="PHONE-001", main="Electronics", sub="Phones", cost=5.0, retail=10.0, **extra) -> ProductCreate:
    data = {
        "sku": sku,
        "name": extra.pop("name", f"Product {sku}"),
        "category": {"main": main, "sub": sub},
        "pricing": {"cost": cost, "retail": retail},
    }
    data.update(extra)
    return ProductCreate(**data)


