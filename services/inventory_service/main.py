"""
inventory_service/main.py - Multi-Warehouse Inventory Ledger Service

PURPOSE:
    Tracks stock for every catalog product across named warehouses, keeps the
    per-warehouse figures and the cached totals consistent, derives stock
    alerts and serves analytical rollups over the whole ledger.

LEDGER WORKFLOW (one stock record per mutation):
    1. Load the stock record (fresh read, remember its version)
    2. Apply the transition (add/remove stock, reserve/release, re-count...)
    3. Finalize: recompute available per warehouse, totals and alert flags
    4. Conditional UPDATE ... WHERE version = <seen>; retry on conflict
    5. Commit, then publish inventory.stock_changed (+ alert events)

KEY FEATURES:
    - Optimistic Locking: concurrent mutations of one record never interleave
    - Reservations: earmark available stock without moving it
    - Stock Alerts: low_stock / out_of_stock / overstock derived on every write
    - Analytics: value by category, top products, warehouse dashboard
    - Paired Catalog: creating/deleting a product creates/deletes its stock record

API ENDPOINTS:
    POST   /products                                  - Create product + empty stock record
    GET    /products                                  - List products (page, limit, category, status, search)
    GET    /products/{product_id}                     - Product with its stock record
    PUT    /products/{product_id}                     - Partial update (SKU synced to stock record)
    DELETE /products/{product_id}                     - Delete product and stock record
    GET    /inventory                                 - List stock records (page, limit, low_stock, out_of_stock)
    GET    /inventory/{record_id}                     - One stock record
    POST   /inventory/{record_id}/add-stock           - Receive units into a warehouse
    POST   /inventory/{record_id}/remove-stock        - Take unreserved units out
    POST   /inventory/{record_id}/reserve             - Reserve available units
    POST   /inventory/{record_id}/release             - Release reserved units
    PUT    /inventory/{record_id}                     - Thresholds and warehouse re-counts
    DELETE /inventory/{record_id}/warehouse/{name}    - Drop a warehouse allocation
    GET    /aggregations/inventory-value-by-category  - Valuation per category
    GET    /aggregations/top-products-analysis        - Ranked products (?limit=)
    GET    /aggregations/warehouse-dashboard          - Warehouse rollup + alert summary
    GET    /health                                    - Health check

KAFKA EVENTS (PUBLISHED, best effort after commit):
    - inventory.stock_changed: every successful mutation
    - inventory.low: total_available dropped to reorder_point or below
    - inventory.depleted: total_available reached zero
    - inventory.overstock: total_stock exceeded max_stock

ERRORS:
    400 ValidationError / InsufficientStockError, 404 NotFoundError,
    409 ConflictError (retry), 503 StorageUnavailable (retry)

USAGE:
    Runs on port 8004 in Docker container
    Access: http://localhost:8004/inventory/...
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request  # Web framework
from fastapi.responses import JSONResponse

from shared.database import build_engine, build_session_factory
from shared.kafka_client import BaseKafkaProducer  # Kafka producer
from shared.logging_config import setup_logging  # Centralized logging
from shared.topic_initializer import create_topics  # Kafka topic creation
from services.inventory_service import routes
from services.inventory_service.config import settings
from services.inventory_service.exceptions import InventoryError
from services.inventory_service.schemas import HealthResponse

# Setup logging
setup_logging(settings.service_name, settings.log_level)
logger = logging.getLogger(__name__)

engine = build_engine(
    settings.database_url,
    connect_timeout=settings.db_connect_timeout,
    statement_timeout_ms=settings.db_statement_timeout_ms,
    pool_timeout=settings.db_pool_timeout,
)
SessionLocal = build_session_factory(engine)
routes.session_factory = SessionLocal


def init_db():
    """Initialize database tables."""
    from services.inventory_service.models import Base

    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage app lifecycle."""
    logger.info("Starting Inventory Service...")

    # Initialize database
    try:
        init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    # Seed products
    if settings.seed_on_startup:
        try:
            from services.inventory_service.seed_data import seed_products

            db = SessionLocal()
            try:
                seed_products(db)
            finally:
                db.close()
            logger.info("Products seeded")
        except Exception as e:
            logger.error(f"Failed to seed products: {e}")

    # Kafka is optional: the ledger keeps working without a broker
    if settings.kafka_enabled:
        try:
            create_topics(settings.kafka_bootstrap_servers, replication_factor=settings.kafka_replication_factor)
            routes.producer = BaseKafkaProducer(settings.kafka_bootstrap_servers, client_id="inventory-producer")
            logger.info("Kafka producer initialized")
        except Exception as e:
            logger.error(f"Failed to initialize Kafka, stock events disabled: {e}")
            routes.producer = None

    yield

    logger.info("Shutting down Inventory Service...")
    if routes.producer:
        routes.producer.flush()


app = FastAPI(title="Inventory Service", version="1.0.0", lifespan=lifespan)
app.include_router(routes.products_router)
app.include_router(routes.inventory_router)
app.include_router(routes.aggregations_router)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    """Render ledger failures as JSON envelopes with a retryable flag."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.inventory_service_port)
