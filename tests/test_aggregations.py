import pytest

from services.inventory_service.aggregations import (
    AggregationEngine,
    alerts_summary,
    inventory_value_by_category,
    top_products_analysis,
    warehouse_dashboard,
)
from services.inventory_service.exceptions import ValidationError
from services.inventory_service.schemas import CatalogProduct
from tests.helpers import make_ledger


def product(sku, main="Electronics", sub="Phones", cost=5.0, retail=10.0):
    return CatalogProduct(
        product_id=f"PROD-{sku}",
        sku=sku,
        name=f"Product {sku}",
        category={"main": main, "sub": sub},
        pricing={"cost": cost, "retail": retail},
    )


def stocked(record_id, *warehouses, reorder_point=10, max_stock=1000):
    return make_ledger(
        record_id,
        warehouses=[
            {"warehouse_name": name, "quantity": quantity, "reserved": reserved}
            for name, quantity, reserved in warehouses
        ],
        reorder_point=reorder_point,
        max_stock=max_stock,
    )


class TestInventoryValueByCategory:
    def test_sums_cost_and_retail_value(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 100, 0)), product("A", cost=5.0, retail=10.0)),
            (stocked("STK-B", ("WH1", 50, 0)), product("B", cost=10.0, retail=20.0)),
        ]

        [row] = inventory_value_by_category(snapshot)

        assert row["category"] == {"main_category": "Electronics", "sub_category": "Phones"}
        assert row["total_products"] == 2
        assert row["total_stock"] == 150
        assert row["total_value_cost"] == 1000.0
        assert row["total_value_retail"] == 2000.0
        assert row["potential_profit"] == 1000.0
        assert row["avg_stock_per_product"] == 75.0
        assert row["stock_turnover_potential"] == 1.0

    def test_orders_by_retail_value_and_filters_by_main_category(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 1, 0)), product("A", main="Books", sub="Novels", retail=10.0)),
            (stocked("STK-B", ("WH1", 10, 0)), product("B", main="Electronics", sub="Audio", retail=50.0)),
            (stocked("STK-C", ("WH1", 10, 0)), product("C", main="Electronics", sub="Phones", retail=100.0)),
        ]

        report = inventory_value_by_category(snapshot)
        assert [r["category"]["sub_category"] for r in report] == ["Phones", "Audio", "Novels"]

        filtered = inventory_value_by_category(snapshot, main_category="Books")
        assert [r["category"]["main_category"] for r in filtered] == ["Books"]

    def test_skips_orphaned_stock_records(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 10, 0)), product("A")),
            (stocked("STK-ORPHAN", ("WH1", 500, 0)), None),
        ]

        [row] = inventory_value_by_category(snapshot)
        assert row["total_products"] == 1
        assert row["total_stock"] == 10

    def test_turnover_is_zero_when_nothing_available(self):
        snapshot = [(stocked("STK-A", ("WH1", 10, 10)), product("A"))]

        [row] = inventory_value_by_category(snapshot)
        assert row["stock_turnover_potential"] == 0
        assert row["out_of_stock_products"] == 1

    def test_counts_alerts(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 5, 0)), product("A")),
            (stocked("STK-B"), product("B")),
            (stocked("STK-C", ("WH1", 50, 0)), product("C")),
        ]

        [row] = inventory_value_by_category(snapshot)
        assert row["low_stock_products"] == 1
        assert row["out_of_stock_products"] == 1


class TestTopProducts:
    def test_ranks_by_performance_score(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 10, 0)), product("A", cost=5.0, retail=10.0)),
            (stocked("STK-B", ("WH1", 100, 0)), product("B", cost=5.0, retail=10.0)),
        ]

        report = top_products_analysis(snapshot)

        assert [row["sku"] for row in report] == ["B", "A"]
        best = report[0]
        assert best["inventory_value"] == 1000.0
        assert best["profit_margin"] == 50.0
        assert best["stock_efficiency"] == 100.0
        # 0.4 * 1000 + 0.3 * 50 + 0.3 * 100
        assert best["performance_score"] == 445.0

    def test_limit(self):
        snapshot = [(stocked(f"STK-{i}", ("WH1", i + 1, 0)), product(str(i))) for i in range(5)]

        assert len(top_products_analysis(snapshot, limit=2)) == 2
        assert len(top_products_analysis(snapshot)) == 5

    @pytest.mark.parametrize("limit", [0, -1, "ten"])
    def test_invalid_limit(self, limit):
        with pytest.raises(ValidationError):
            top_products_analysis([], limit=limit)

    def test_zero_retail_price_has_zero_margin(self):
        snapshot = [(stocked("STK-A", ("WH1", 10, 0)), product("FREE", cost=0.0, retail=0.0))]

        [row] = top_products_analysis(snapshot)
        assert row["profit_margin"] == 0.0
        assert row["inventory_value"] == 0.0

    def test_empty_record_has_zero_efficiency(self):
        [row] = top_products_analysis([(stocked("STK-A"), product("A"))])
        assert row["stock_efficiency"] == 0.0


class TestWarehouseDashboard:
    def test_groups_by_warehouse(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 100, 25), ("WH2", 10, 0)), product("A", retail=10.0)),
            (stocked("STK-B", ("WH1", 100, 25)), product("B", main="Books", sub="Novels", retail=1.0)),
        ]

        dashboard = warehouse_dashboard(snapshot)
        wh1, wh2 = dashboard["warehouses"]

        assert wh1["warehouse_name"] == "WH1"
        assert wh1["total_products"] == 2
        assert wh1["total_quantity"] == 200
        assert wh1["total_reserved"] == 50
        assert wh1["total_available"] == 150
        assert wh1["total_value"] == 1100.0
        assert wh1["utilization_rate"] == 25.0
        assert wh1["categories"] == ["Books", "Electronics"]
        assert wh1["categories_count"] == 2
        assert [p["sku"] for p in wh1["top_value_products"]] == ["A", "B"]
        assert wh2["total_value"] == 100.0

    def test_top_value_products_capped_at_five(self):
        snapshot = [(stocked(f"STK-{i}", ("WH1", i + 1, 0)), product(str(i))) for i in range(8)]

        [wh1] = warehouse_dashboard(snapshot)["warehouses"]
        assert [p["quantity"] for p in wh1["top_value_products"]] == [8, 7, 6, 5, 4]

    def test_alert_summary_counts_orphans(self):
        snapshot = [
            (stocked("STK-A", ("WH1", 5, 0)), product("A")),
            (stocked("STK-ORPHAN"), None),
            (stocked("STK-C", ("WH1", 50, 0), max_stock=10), product("C")),
        ]

        dashboard = warehouse_dashboard(snapshot)

        assert dashboard["alerts_summary"] == {
            "total_products": 3,
            "low_stock_count": 1,
            "out_of_stock_count": 1,
            "overstock_count": 1,
        }
        assert dashboard["warehouses"][0]["total_products"] == 2

    def test_empty_snapshot(self):
        assert warehouse_dashboard([]) == {"warehouses": [], "alerts_summary": alerts_summary([])}


class StaticSnapshotRepository:
    def __init__(self, snapshot):
        self.rows = snapshot
        self.reads = 0

    def snapshot(self):
        self.reads += 1
        return list(self.rows)


def test_engine_reads_a_fresh_snapshot_per_report():
    repository = StaticSnapshotRepository([(stocked("STK-A", ("WH1", 3, 0)), product("A"))])
    engine = AggregationEngine(repository)

    engine.inventory_value_by_category()
    engine.top_products_analysis(limit=3)
    engine.warehouse_dashboard()

    assert repository.reads == 3


def test_engine_validates_limit_before_reading():
    repository = StaticSnapshotRepository([])

    with pytest.raises(ValidationError):
        AggregationEngine(repository).top_products_analysis(limit=0)
    assert repository.reads == 0


def test_top_value_products_rank_on_unrounded_value():
    snapshot = [
        (stocked("STK-B", ("WH1", 1, 0)), product("B", retail=10.001)),
        (stocked("STK-A", ("WH1", 1, 0)), product("A", retail=10.004)),
    ]

    [wh1] = warehouse_dashboard(snapshot)["warehouses"]

    assert [p["value"] for p in wh1["top_value_products"]] == [10.0, 10.0]
    assert [p["sku"] for p in wh1["top_value_products"]] == ["A", "B"]
