import logging

import pytest

from services.inventory_service.allocation import AllocationEngine
from services.inventory_service.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from tests.helpers import FakePublisher, make_ledger


@pytest.fixture
def allocation(memory_repo, publisher):
    memory_repo.put(make_ledger("STK-1"))
    return AllocationEngine(memory_repo, publisher)


def _stored(memory_repo, record_id="STK-1"):
    return memory_repo.records[record_id]


class TestAddStock:
    def test_creates_warehouse_on_first_add(self, allocation, memory_repo):
        ledger = allocation.add_stock("STK-1", "WH1", 100, location="A1")

        assert ledger.total_stock == 100
        assert ledger.total_available == 100
        assert ledger.stock_alerts.low_stock is False
        assert ledger.stock_alerts.out_of_stock is False
        assert ledger.last_restock is not None
        assert ledger.version == 1
        warehouse = _stored(memory_repo).find_warehouse("WH1")
        assert (warehouse.quantity, warehouse.reserved, warehouse.available, warehouse.location) == (100, 0, 100, "A1")

    def test_increments_existing_warehouse(self, allocation):
        allocation.add_stock("STK-1", "WH1", 100)
        ledger = allocation.add_stock("STK-1", "WH1", 25)

        assert len(ledger.warehouses) == 1
        assert ledger.warehouses[0].quantity == 125
        assert ledger.total_available == 125

    def test_keeps_warehouse_order(self, allocation):
        allocation.add_stock("STK-1", "WH2", 5)
        allocation.add_stock("STK-1", "WH1", 5)
        ledger = allocation.add_stock("STK-1", "WH2", 5)

        assert [w.warehouse_name for w in ledger.warehouses] == ["WH2", "WH1"]

    @pytest.mark.parametrize("quantity", [0, -5, 2.5])
    def test_rejects_non_positive_quantity_before_loading(self, allocation, memory_repo, quantity):
        with pytest.raises(ValidationError):
            allocation.add_stock("STK-1", "WH1", quantity)

        assert memory_repo.rollbacks == 0
        assert _stored(memory_repo).version == 0

    def test_unknown_record(self, allocation):
        with pytest.raises(NotFoundError):
            allocation.add_stock("STK-MISSING", "WH1", 1)

    def test_overstock_flag(self, memory_repo, publisher):
        memory_repo.put(make_ledger("STK-2", max_stock=50))
        ledger = AllocationEngine(memory_repo, publisher).add_stock("STK-2", "WH1", 51)

        assert ledger.stock_alerts.overstock is True
        assert "inventory.overstock" in publisher.topics()


class TestRemoveStock:
    def test_add_then_remove_scenario(self, allocation):
        allocation.add_stock("STK-1", "WH1", 100)
        ledger = allocation.remove_stock("STK-1", "WH1", 95, reason="test")

        assert ledger.total_stock == 5
        assert ledger.total_available == 5
        assert ledger.stock_alerts.low_stock is True

    def test_missing_warehouse_is_insufficient_stock(self, allocation):
        with pytest.raises(InsufficientStockError):
            allocation.remove_stock("STK-1", "WH9", 1)

    def test_cannot_remove_reserved_units(self, memory_repo, publisher):
        memory_repo.put(
            make_ledger("STK-2", warehouses=[{"warehouse_name": "WH1", "quantity": 10, "reserved": 8, "available": 2}])
        )
        engine = AllocationEngine(memory_repo, publisher)

        with pytest.raises(InsufficientStockError) as excinfo:
            engine.remove_stock("STK-2", "WH1", 3)

        assert excinfo.value.details["available"] == 2
        stored = memory_repo.records["STK-2"]
        assert (stored.total_stock, stored.total_available, stored.version) == (10, 2, 0)
        assert publisher.published == []

    def test_remove_to_zero_publishes_depleted(self, allocation, publisher):
        allocation.add_stock("STK-1", "WH1", 4)
        ledger = allocation.remove_stock("STK-1", "WH1", 4)

        assert ledger.stock_alerts.out_of_stock is True
        assert ledger.warehouses[0].quantity == 0
        assert publisher.topics()[-1] == "inventory.depleted"


class TestRemoveWarehouse:
    def test_drops_allocation_and_totals(self, allocation):
        allocation.add_stock("STK-1", "WH1", 10)
        allocation.add_stock("STK-1", "WH2", 30)
        ledger = allocation.remove_warehouse("STK-1", "WH2")

        assert [w.warehouse_name for w in ledger.warehouses] == ["WH1"]
        assert ledger.total_stock == 10
        assert ledger.total_available == 10

    def test_unknown_warehouse(self, allocation):
        with pytest.raises(NotFoundError):
            allocation.remove_warehouse("STK-1", "WH1")


class TestUpdateSettings:
    def test_thresholds_recompute_alerts(self, allocation):
        allocation.add_stock("STK-1", "WH1", 20)
        ledger = allocation.update_settings("STK-1", reorder_point=25, max_stock=15)

        assert ledger.reorder_point == 25
        assert ledger.max_stock == 15
        assert ledger.stock_alerts.low_stock is True
        assert ledger.stock_alerts.overstock is True

    def test_absolute_quantity_propagates_delta(self, memory_repo, publisher):
        memory_repo.put(
            make_ledger("STK-2", warehouses=[{"warehouse_name": "WH1", "quantity": 10, "reserved": 4, "available": 6}])
        )
        engine = AllocationEngine(memory_repo, publisher)

        ledger = engine.update_settings("STK-2", warehouse_updates=[{"warehouse_name": "WH1", "quantity": 30, "location": "B2"}])

        warehouse = ledger.warehouses[0]
        assert (warehouse.quantity, warehouse.reserved, warehouse.available, warehouse.location) == (30, 4, 26, "B2")
        assert ledger.total_stock == 30
        assert ledger.total_available == 26
        assert ledger.last_restock is not None

    def test_quantity_below_reserved_is_rejected(self, memory_repo, publisher):
        memory_repo.put(
            make_ledger("STK-2", warehouses=[{"warehouse_name": "WH1", "quantity": 10, "reserved": 4, "available": 6}])
        )
        engine = AllocationEngine(memory_repo, publisher)

        with pytest.raises(ValidationError):
            engine.update_settings("STK-2", warehouse_updates=[{"warehouse_name": "WH1", "quantity": 3}])
        assert memory_repo.records["STK-2"].warehouses[0].quantity == 10

    def test_unknown_warehouse_fails_whole_update(self, allocation, memory_repo):
        allocation.add_stock("STK-1", "WH1", 10)

        with pytest.raises(NotFoundError):
            allocation.update_settings(
                "STK-1",
                reorder_point=3,
                warehouse_updates=[
                    {"warehouse_name": "WH1", "quantity": 50},
                    {"warehouse_name": "WH-GHOST", "quantity": 5},
                ],
            )

        stored = _stored(memory_repo)
        assert stored.reorder_point == 10
        assert stored.total_stock == 10

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"reorder_point": -1},
            {"max_stock": -3},
            {"warehouse_updates": [{"warehouse_name": "WH1", "quantity": -1}]},
            {"warehouse_updates": [{"warehouse_name": "WH1"}, {"warehouse_name": "WH1"}]},
            {"warehouse_updates": [{"warehouse_name": "WH1", "quantity": "lots"}]},
        ],
    )
    def test_invalid_arguments(self, allocation, kwargs):
        with pytest.raises(ValidationError):
            allocation.update_settings("STK-1", **kwargs)


class TestOptimisticConcurrency:
    def test_retries_after_a_concurrent_write(self, memory_repo, publisher):
        memory_repo.put(make_ledger("STK-1"))
        original_save = memory_repo.save_stock_record
        calls = {"n": 0}

        def racing_save(ledger, expected_version):
            calls["n"] += 1
            if calls["n"] == 1:
                # Another writer lands between our load and our save
                other = memory_repo.records["STK-1"].model_copy(deep=True)
                other.version += 1
                memory_repo.records["STK-1"] = other
            return original_save(ledger, expected_version)

        memory_repo.save_stock_record = racing_save
        ledger = AllocationEngine(memory_repo, publisher).add_stock("STK-1", "WH1", 5)

        assert calls["n"] == 2
        assert ledger.version == 2
        assert memory_repo.rollbacks == 1
        assert memory_repo.commits == 1

    def test_gives_up_with_conflict_error(self, memory_repo, publisher):
        memory_repo.put(make_ledger("STK-1"))
        memory_repo.save_stock_record = lambda ledger, expected_version: False

        with pytest.raises(ConflictError) as excinfo:
            AllocationEngine(memory_repo, publisher, max_retries=3).add_stock("STK-1", "WH1", 5)

        assert excinfo.value.retryable is True
        assert memory_repo.rollbacks == 3
        assert publisher.published == []


class TestEvents:
    def test_stock_changed_event_carries_totals(self, allocation, publisher):
        allocation.add_stock("STK-1", "WH1", 100)

        topic, event, key = publisher.published[0]
        assert topic == "inventory.stock_changed"
        assert key == "STK-1"
        assert event.operation == "add_stock"
        assert event.total_stock == 100
        assert event.version == 1

    def test_alert_events_only_on_transition(self, allocation, publisher):
        allocation.add_stock("STK-1", "WH1", 100)
        allocation.remove_stock("STK-1", "WH1", 95)
        allocation.remove_stock("STK-1", "WH1", 1)

        assert publisher.topics().count("inventory.low") == 1
        low = next(event for topic, event, _ in publisher.published if topic == "inventory.low")
        assert low.current_stock == 5
        assert low.threshold == 10

    def test_publish_failure_does_not_undo_mutation(self, memory_repo):
        memory_repo.put(make_ledger("STK-1"))
        engine = AllocationEngine(memory_repo, FakePublisher(fail=True))

        ledger = engine.add_stock("STK-1", "WH1", 10)

        assert ledger.total_stock == 10
        assert memory_repo.records["STK-1"].total_stock == 10

    def test_works_without_publisher(self, memory_repo):
        memory_repo.put(make_ledger("STK-1"))
        assert AllocationEngine(memory_repo).add_stock("STK-1", "WH1", 1).total_stock == 1


def test_remove_reason_is_logged_with_record_context(allocation, caplog):
    allocation.add_stock("STK-1", "WH1", 10)

    with caplog.at_level(logging.INFO, logger="services.inventory_service.allocation"):
        allocation.remove_stock("STK-1", "WH1", 2, reason="damaged")

    [record] = [r for r in caplog.records if "damaged" in r.getMessage()]
    assert record.record_id == "STK-1"
    assert record.operation == "remove_stock"
