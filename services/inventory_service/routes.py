from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, sessionmaker

from shared.database import session_scope
from services.inventory_service.aggregations import DEFAULT_TOP_PRODUCTS, AggregationEngine
from services.inventory_service.allocation import AllocationEngine
from services.inventory_service.catalog import CatalogService
from services.inventory_service.config import settings
from services.inventory_service.exceptions import ValidationError
from services.inventory_service.repository import InventoryRepository
from services.inventory_service.reservation import ReservationManager
from services.inventory_service.schemas import (
    AddStockRequest,
    ProductCreate,
    ProductUpdate,
    RemoveStockRequest,
    ReservationRequest,
    UpdateSettingsRequest,
)

# Will be injected by main.py
session_factory: sessionmaker = None
producer = None

products_router = APIRouter(prefix="/products", tags=["products"])
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])
aggregations_router = APIRouter(prefix="/aggregations", tags=["aggregations"])


def get_db():
    """Get database session."""
    yield from session_scope(session_factory)


def get_repository(db: Session = Depends(get_db)) -> InventoryRepository:
    return InventoryRepository(db)


def get_catalog(repo: InventoryRepository = Depends(get_repository)) -> CatalogService:
    return CatalogService(repo, settings.default_reorder_point, settings.default_max_stock)


def get_allocation_engine(repo: InventoryRepository = Depends(get_repository)) -> AllocationEngine:
    return AllocationEngine(repo, producer, settings.max_update_retries)


def get_reservation_manager(repo: InventoryRepository = Depends(get_repository)) -> ReservationManager:
    return ReservationManager(repo, producer, settings.max_update_retries)


def get_aggregation_engine(repo: InventoryRepository = Depends(get_repository)) -> AggregationEngine:
    return AggregationEngine(repo)


def _ok(data, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


# ----------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------

@products_router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(payload: ProductCreate, catalog: CatalogService = Depends(get_catalog)) -> dict:
    """Create a product together with its empty stock record."""
    created = catalog.create_product(payload)
    return _ok(
        {"product": created["product"].model_dump(mode="json"), "inventory": created["inventory"].to_response()},
        "Product created successfully",
    )


@products_router.get("")
async def list_products(
    page: int = 1,
    limit: int = 10,
    category: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    """List products, newest first."""
    result = catalog.list_products(page, limit, category, status_filter, search)
    return {
        "success": True,
        "data": [p.model_dump(mode="json") for p in result["data"]],
        "pagination": result["pagination"],
    }


@products_router.get("/{product_id}")
async def get_product(product_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    """Get product details with its stock record."""
    found = catalog.get_product(product_id)
    inventory = found["inventory"]
    return _ok(
        {
            "product": found["product"].model_dump(mode="json"),
            "inventory": inventory.to_response() if inventory is not None else None,
        }
    )


@products_router.put("/{product_id}")
async def update_product(product_id: str, payload: ProductUpdate, catalog: CatalogService = Depends(get_catalog)) -> dict:
    """Partially update a product; SKU changes reach the stock record too."""
    updated = catalog.update_product(product_id, payload)
    return _ok(updated["product"].model_dump(mode="json"), "Product updated successfully")


@products_router.delete("/{product_id}")
async def delete_product(product_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    """Delete a product and its stock record."""
    catalog.delete_product(product_id)
    return {"success": True, "message": "Product and inventory deleted successfully"}


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------

@inventory_router.get("")
async def list_inventory(
    page: int = 1,
    limit: int = 10,
    low_stock: Optional[bool] = None,
    out_of_stock: Optional[bool] = None,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    """List stock records with product summaries, most recently updated first."""
    result = catalog.list_stock_records(page, limit, low_stock, out_of_stock)
    return {"success": True, "data": result["data"], "pagination": result["pagination"]}


@inventory_router.get("/{record_id}")
async def get_inventory(record_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    return _ok(catalog.get_stock_record(record_id).to_response())


@inventory_router.post("/{record_id}/add-stock")
async def add_stock(
    record_id: str, payload: AddStockRequest, engine: AllocationEngine = Depends(get_allocation_engine)
) -> dict:
    ledger = engine.add_stock(record_id, payload.warehouse_name, payload.quantity, payload.location)
    return _ok(ledger.to_response(), "Stock added successfully")


@inventory_router.post("/{record_id}/remove-stock")
async def remove_stock(
    record_id: str, payload: RemoveStockRequest, engine: AllocationEngine = Depends(get_allocation_engine)
) -> dict:
    ledger = engine.remove_stock(record_id, payload.warehouse_name, payload.quantity, payload.reason)
    return _ok(ledger.to_response(), f"Stock removed successfully ({payload.reason})")


@inventory_router.post("/{record_id}/reserve")
async def reserve_stock(
    record_id: str, payload: ReservationRequest, manager: ReservationManager = Depends(get_reservation_manager)
) -> dict:
    ledger = manager.reserve(record_id, payload.warehouse_name, payload.quantity)
    return _ok(ledger.to_response(), "Stock reserved successfully")


@inventory_router.post("/{record_id}/release")
async def release_stock(
    record_id: str, payload: ReservationRequest, manager: ReservationManager = Depends(get_reservation_manager)
) -> dict:
    ledger = manager.release(record_id, payload.warehouse_name, payload.quantity)
    return _ok(ledger.to_response(), "Reserved stock released successfully")


@inventory_router.put("/{record_id}")
async def update_inventory_settings(
    record_id: str, payload: UpdateSettingsRequest, engine: AllocationEngine = Depends(get_allocation_engine)
) -> dict:
    """Update reorder point, max stock and per-warehouse counts/locations."""
    ledger = engine.update_settings(
        record_id,
        reorder_point=payload.reorder_point,
        max_stock=payload.max_stock,
        warehouse_updates=payload.warehouse_updates,
    )
    return _ok(ledger.to_response(), "Inventory updated successfully")


@inventory_router.delete("/{record_id}/warehouse/{warehouse_name}")
async def remove_warehouse(
    record_id: str, warehouse_name: str, engine: AllocationEngine = Depends(get_allocation_engine)
) -> dict:
    ledger = engine.remove_warehouse(record_id, warehouse_name)
    return _ok(ledger.to_response(), "Warehouse removed from inventory")


# ----------------------------------------------------------------------
# Aggregations
# ----------------------------------------------------------------------

@aggregations_router.get("/inventory-value-by-category")
async def inventory_value_by_category(
    category: Optional[str] = None, engine: AggregationEngine = Depends(get_aggregation_engine)
) -> dict:
    return _ok(engine.inventory_value_by_category(category), "Inventory value analysis by category")


@aggregations_router.get("/top-products-analysis")
async def top_products_analysis(
    limit: Optional[str] = Query(None),
    category: Optional[str] = None,
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> dict:
    if limit is None:
        parsed = DEFAULT_TOP_PRODUCTS
    else:
        try:
            parsed = int(limit)
        except ValueError:
            raise ValidationError("limit must be a positive integer", details={"limit": limit})
    return _ok(engine.top_products_analysis(parsed, category), f"Top {parsed} performing products analysis")


@aggregations_router.get("/warehouse-dashboard")
async def warehouse_dashboard(engine: AggregationEngine = Depends(get_aggregation_engine)) -> dict:
    return _ok(engine.warehouse_dashboard(), "Warehouse distribution and alerts dashboard")
