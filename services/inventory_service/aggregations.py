"""
aggregations.py - Inventory analytics

Read-only reports recomputed from scratch on every call over a snapshot join
of stock records and products. Nothing is cached or incrementally
maintained, so a report reflects whatever the snapshot read returned.

REPORTS:
    - inventory_value_by_category: cost/retail valuation per (main, sub) category
    - top_products_analysis: products ranked by a weighted performance score
    - warehouse_dashboard: per-warehouse totals, utilization and top products,
      plus a global alert summary

A stock record whose product is missing (the two are stored separately and
can briefly diverge) is skipped by every grouping. The alert summary counts
all stock records regardless.
"""

import logging
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from services.inventory_service.alerts import percentage, require_positive_int, round_money, safe_ratio
from services.inventory_service.ledger import StockLedger
from services.inventory_service.repository import InventoryRepository, Snapshot
from services.inventory_service.schemas import CatalogProduct

logger = logging.getLogger(__name__)

DEFAULT_TOP_PRODUCTS = 10
TOP_WAREHOUSE_PRODUCTS = 5

# performance_score weights
VALUE_WEIGHT = 0.4
MARGIN_WEIGHT = 0.3
EFFICIENCY_WEIGHT = 0.3


def _joined(snapshot: Iterable[Tuple[StockLedger, Optional[CatalogProduct]]], main_category: Optional[str] = None):
    for ledger, product in snapshot:
        if product is None:
            continue
        if main_category and product.category.main != main_category:
            continue
        yield ledger, product


def inventory_value_by_category(snapshot: Snapshot, main_category: Optional[str] = None) -> List[dict]:
    """Valuation and alert counts per (main, sub) category, highest retail value first."""
    groups = OrderedDict()
    for ledger, product in _joined(snapshot, main_category):
        key = (product.category.main, product.category.sub)
        group = groups.setdefault(
            key,
            {
                "total_products": 0,
                "total_stock": 0,
                "total_available": 0,
                "value_cost": 0.0,
                "value_retail": 0.0,
                "low_stock_products": 0,
                "out_of_stock_products": 0,
            },
        )
        group["total_products"] += 1
        group["total_stock"] += ledger.total_stock
        group["total_available"] += ledger.total_available
        group["value_cost"] += ledger.total_stock * product.pricing.cost
        group["value_retail"] += ledger.total_stock * product.pricing.retail
        group["low_stock_products"] += int(ledger.stock_alerts.low_stock)
        group["out_of_stock_products"] += int(ledger.stock_alerts.out_of_stock)

    report = []
    for (main, sub), group in groups.items():
        report.append(
            {
                "category": {"main_category": main, "sub_category": sub},
                "total_products": group["total_products"],
                "total_stock": group["total_stock"],
                "total_available": group["total_available"],
                "total_value_cost": round_money(group["value_cost"]),
                "total_value_retail": round_money(group["value_retail"]),
                "potential_profit": round_money(group["value_retail"] - group["value_cost"]),
                "avg_stock_per_product": round_money(group["total_stock"] / group["total_products"]),
                "low_stock_products": group["low_stock_products"],
                "out_of_stock_products": group["out_of_stock_products"],
                "stock_turnover_potential": safe_ratio(group["total_stock"], group["total_available"]),
            }
        )

    report.sort(key=lambda row: row["total_value_retail"], reverse=True)
    return report


def top_products_analysis(
    snapshot: Snapshot,
    limit: int = DEFAULT_TOP_PRODUCTS,
    main_category: Optional[str] = None,
) -> List[dict]:
    """Products ranked by performance_score, best first, at most ``limit`` rows."""
    limit = require_positive_int(limit, "limit")

    scored = []
    for ledger, product in _joined(snapshot, main_category):
        retail = product.pricing.retail
        cost = product.pricing.cost
        inventory_value = ledger.total_stock * retail
        profit_margin = percentage(retail - cost, retail)
        stock_efficiency = percentage(ledger.total_available, ledger.total_stock)
        score = (
            VALUE_WEIGHT * inventory_value
            + MARGIN_WEIGHT * profit_margin
            + EFFICIENCY_WEIGHT * stock_efficiency
        )
        scored.append(
            (
                score,
                {
                    "product_id": product.product_id,
                    "record_id": ledger.record_id,
                    "sku": product.sku,
                    "name": product.name,
                    "category": product.category.model_dump(),
                    "pricing": product.pricing.model_dump(),
                    "inventory_value": round_money(inventory_value),
                    "profit_margin": round_money(profit_margin),
                    "stock_efficiency": round_money(stock_efficiency),
                    "total_stock": ledger.total_stock,
                    "total_available": ledger.total_available,
                    "stock_alerts": ledger.alerts_dict(),
                    "performance_score": round_money(score),
                },
            )
        )

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [row for _, row in scored[:limit]]


def alerts_summary(snapshot: Snapshot) -> dict:
    summary = {"total_products": 0, "low_stock_count": 0, "out_of_stock_count": 0, "overstock_count": 0}
    for ledger, _ in snapshot:
        summary["total_products"] += 1
        summary["low_stock_count"] += int(ledger.stock_alerts.low_stock)
        summary["out_of_stock_count"] += int(ledger.stock_alerts.out_of_stock)
        summary["overstock_count"] += int(ledger.stock_alerts.overstock)
    return summary


def warehouse_dashboard(snapshot: Snapshot) -> dict:
    """Per-warehouse distribution (highest value first) and the global alert summary."""
    groups = OrderedDict()
    for ledger, product in _joined(snapshot):
        retail = product.pricing.retail
        for warehouse in ledger.warehouses:
            group = groups.setdefault(
                warehouse.warehouse_name,
                {
                    "total_products": 0,
                    "total_quantity": 0,
                    "total_available": 0,
                    "total_reserved": 0,
                    "value": 0.0,
                    "categories": set(),
                    "products": [],
                },
            )
            value = warehouse.quantity * retail
            group["total_products"] += 1
            group["total_quantity"] += warehouse.quantity
            group["total_available"] += warehouse.available
            group["total_reserved"] += warehouse.reserved
            group["value"] += value
            group["categories"].add(product.category.main)
            group["products"].append(
                (
                    value,
                    {
                        "category": product.category.main,
                        "sku": product.sku,
                        "name": product.name,
                        "quantity": warehouse.quantity,
                        "value": round_money(value),
                    },
                )
            )

    warehouses = []
    for name, group in groups.items():
        ranked = sorted(group["products"], key=lambda pair: pair[0], reverse=True)
        top_products = [row for _, row in ranked[:TOP_WAREHOUSE_PRODUCTS]]
        warehouses.append(
            {
                "warehouse_name": name,
                "total_products": group["total_products"],
                "total_quantity": group["total_quantity"],
                "total_available": group["total_available"],
                "total_reserved": group["total_reserved"],
                "total_value": round_money(group["value"]),
                "utilization_rate": round_money(percentage(group["total_reserved"], group["total_quantity"])),
                "categories": sorted(group["categories"]),
                "categories_count": len(group["categories"]),
                "top_value_products": top_products,
            }
        )
    warehouses.sort(key=lambda row: row["total_value"], reverse=True)

    return {"warehouses": warehouses, "alerts_summary": alerts_summary(snapshot)}


class AggregationEngine:
    """Runs the reports against a fresh snapshot from the repository."""

    def __init__(self, repository: InventoryRepository):
        self.repository = repository

    def inventory_value_by_category(self, main_category: Optional[str] = None) -> List[dict]:
        snapshot = self.repository.snapshot()
        report = inventory_value_by_category(snapshot, main_category)
        logger.info(f"Inventory value report: {len(report)} categories from {len(snapshot)} stock records")
        return report

    def top_products_analysis(self, limit: int = DEFAULT_TOP_PRODUCTS, main_category: Optional[str] = None) -> List[dict]:
        limit = require_positive_int(limit, "limit")
        snapshot = self.repository.snapshot()
        return top_products_analysis(snapshot, limit, main_category)

    def warehouse_dashboard(self) -> dict:
        snapshot = self.repository.snapshot()
        dashboard = warehouse_dashboard(snapshot)
        logger.info(f"Warehouse dashboard: {len(dashboard['warehouses'])} warehouses")
        return dashboard
