import functools
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import and_, or_
from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from services.inventory_service.exceptions import NotFoundError, StorageUnavailable, ValidationError
from services.inventory_service.ledger import StockLedger
from services.inventory_service.models import Product, StockRecord, utcnow
from services.inventory_service.schemas import CatalogProduct, Category, Pricing, ProductCreate

logger = logging.getLogger(__name__)

Snapshot = List[Tuple[StockLedger, Optional[CatalogProduct]]]

# Columns a partial update may change but never clear
NON_NULLABLE_UPDATES = ("sku", "name", "status", "category", "pricing")


def storage_guard(fn):
    """Translate driver/connection failures into StorageUnavailable."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, DisconnectionError, PoolTimeoutError) as e:
            logger.error(f"Storage unavailable during {fn.__name__}: {e}")
            raise StorageUnavailable(f"Storage unavailable: {e.__class__.__name__}") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                logger.error(f"Connection lost during {fn.__name__}: {e}")
                raise StorageUnavailable("Storage connection lost") from e
            raise

    return wrapper


def to_ledger(record: StockRecord) -> StockLedger:
    """Build the in-memory working copy of a stock record row."""
    return StockLedger(
        record_id=record.record_id,
        product_id=record.product_id,
        sku=record.sku,
        warehouses=[dict(w) for w in (record.warehouses or [])],
        total_stock=record.total_stock,
        total_available=record.total_available,
        reorder_point=record.reorder_point,
        max_stock=record.max_stock,
        last_restock=record.last_restock,
        stock_alerts={
            "low_stock": record.low_stock,
            "out_of_stock": record.out_of_stock,
            "overstock": record.overstock,
        },
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def to_catalog_product(product: Product) -> CatalogProduct:
    return CatalogProduct(
        product_id=product.product_id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        category=Category(main=product.category_main, sub=product.category_sub, path=product.category_path),
        specifications=product.specifications,
        pricing=Pricing(
            cost=product.cost,
            retail=product.retail,
            wholesale=product.wholesale,
            currency=product.currency,
        ),
        tags=list(product.tags or []),
        status=product.status,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _check_page(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive integers", details={"page": page, "limit": limit})


class InventoryRepository:
    """Persistence gateway for products and stock records with optimistic locking."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @storage_guard
    def create_product(self, data: ProductCreate, reorder_point: int, max_stock: int) -> Product:
        """Create a product together with its empty stock record (same transaction)."""
        if self.get_product_by_sku(data.sku) is not None:
            raise ValidationError(f"SKU {data.sku} already exists", details={"sku": data.sku})

        category = data.category.with_path()
        product = Product(
            product_id=f"PROD-{uuid4().hex[:12].upper()}",
            sku=data.sku,
            name=data.name,
            description=data.description,
            category_main=category.main,
            category_sub=category.sub,
            category_path=category.path,
            specifications=data.specifications.model_dump(exclude_none=True) if data.specifications else None,
            cost=data.pricing.cost,
            retail=data.pricing.retail,
            wholesale=data.pricing.wholesale,
            currency=data.pricing.currency,
            tags=list(data.tags),
            status=data.status,
        )
        ledger = StockLedger(
            record_id=f"STK-{uuid4().hex[:12].upper()}",
            product_id=product.product_id,
            sku=product.sku,
            reorder_point=data.reorder_point if data.reorder_point is not None else reorder_point,
            max_stock=data.max_stock if data.max_stock is not None else max_stock,
        ).finalize()
        product.stock_record = StockRecord(
            record_id=ledger.record_id,
            product_id=product.product_id,
            sku=product.sku,
            warehouses=[],
            total_stock=0,
            total_available=0,
            reorder_point=ledger.reorder_point,
            max_stock=ledger.max_stock,
            low_stock=ledger.stock_alerts.low_stock,
            out_of_stock=ledger.stock_alerts.out_of_stock,
            overstock=ledger.stock_alerts.overstock,
            version=0,
        )
        self.db.add(product)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise ValidationError(f"Product {data.sku} conflicts with an existing product") from e
        logger.info(f"Created product {product.product_id} ({product.sku}) with stock record {ledger.record_id}")
        return product

    @storage_guard
    def get_product(self, product_id: str) -> Optional[Product]:
        """Get product by ID."""
        return self.db.query(Product).filter(Product.product_id == product_id).first()

    @storage_guard
    def get_product_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.sku == sku).first()

    def load_product(self, product_id: str) -> CatalogProduct:
        product = self.get_product(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return to_catalog_product(product)

    @storage_guard
    def find_products(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Product], int]:
        """Paginated product listing, newest first."""
        _check_page(page, limit)
        query = self.db.query(Product)
        if category:
            query = query.filter(Product.category_main == category)
        if status:
            query = query.filter(Product.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Product.name.ilike(pattern),
                    Product.description.ilike(pattern),
                    Product.sku.ilike(pattern),
                )
            )
        total = query.count()
        products = (
            query.order_by(Product.created_at.desc(), Product.product_id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return products, total

    @storage_guard
    def update_product(self, product: Product, changes: Dict[str, Any]) -> Product:
        """Apply a partial update; a SKU change is mirrored onto the stock record."""
        nulls = sorted(field for field in NON_NULLABLE_UPDATES if field in changes and changes[field] is None)
        if nulls:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}", details={"fields": nulls})

        if "sku" in changes and changes["sku"] != product.sku:
            clash = self.get_product_by_sku(changes["sku"])
            if clash is not None and clash.product_id != product.product_id:
                raise ValidationError(f"SKU {changes['sku']} already exists", details={"sku": changes["sku"]})
            product.sku = changes["sku"]
            if product.stock_record is not None:
                self.db.refresh(product.stock_record)
                product.stock_record.sku = product.sku
                product.stock_record.version += 1

        for field in ("name", "description", "status"):
            if field in changes:
                setattr(product, field, changes[field])
        if "tags" in changes:
            product.tags = list(changes["tags"] or [])
        if "specifications" in changes:
            product.specifications = changes["specifications"]
        if "category" in changes:
            category = Category(**changes["category"]).with_path()
            product.category_main = category.main
            product.category_sub = category.sub
            product.category_path = category.path
        if "pricing" in changes:
            pricing = Pricing(**changes["pricing"])
            product.cost = pricing.cost
            product.retail = pricing.retail
            product.wholesale = pricing.wholesale
            product.currency = pricing.currency

        try:
            self.db.flush()
        except IntegrityError as e:
            raise ValidationError(f"Product {product.product_id} update conflicts with an existing product") from e
        logger.info(f"Updated product {product.product_id}: {sorted(changes)}")
        return product

    @storage_guard
    def delete_product(self, product: Product) -> None:
        """Delete a product; its stock record goes with it."""
        self.db.delete(product)
        self.db.flush()
        logger.info(f"Deleted product {product.product_id} and its stock record")

    # ------------------------------------------------------------------
    # Stock records
    # ------------------------------------------------------------------

    @storage_guard
    def get_stock_record(self, record_id: str) -> Optional[StockRecord]:
        return (
            self.db.query(StockRecord)
            .filter(StockRecord.record_id == record_id)
            .populate_existing()
            .first()
        )

    @storage_guard
    def get_stock_record_for_product(self, product_id: str) -> Optional[StockRecord]:
        return self.db.query(StockRecord).filter(StockRecord.product_id == product_id).first()

    def load_stock_record(self, record_id: str) -> StockLedger:
        """Fresh read of one stock record as a working copy."""
        record = self.get_stock_record(record_id)
        if record is None:
            raise NotFoundError(f"Stock record {record_id} not found")
        return to_ledger(record)

    @storage_guard
    def save_stock_record(self, ledger: StockLedger, expected_version: int) -> bool:
        """
        Write the whole record if nobody else bumped its version since it was read.
        Returns False on a version conflict.
        """
        now = utcnow()
        updated = (
            self.db.query(StockRecord)
            .filter(
                and_(
                    StockRecord.record_id == ledger.record_id,
                    StockRecord.version == expected_version,
                )
            )
            .update(
                {
                    StockRecord.warehouses: [w.model_dump() for w in ledger.warehouses],
                    StockRecord.total_stock: ledger.total_stock,
                    StockRecord.total_available: ledger.total_available,
                    StockRecord.reorder_point: ledger.reorder_point,
                    StockRecord.max_stock: ledger.max_stock,
                    StockRecord.last_restock: ledger.last_restock,
                    StockRecord.low_stock: ledger.stock_alerts.low_stock,
                    StockRecord.out_of_stock: ledger.stock_alerts.out_of_stock,
                    StockRecord.overstock: ledger.stock_alerts.overstock,
                    StockRecord.version: expected_version + 1,
                    StockRecord.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            return False

        ledger.version = expected_version + 1
        ledger.updated_at = now
        return True

    @storage_guard
    def find_stock_records(
        self,
        page: int = 1,
        limit: int = 10,
        low_stock: Optional[bool] = None,
        out_of_stock: Optional[bool] = None,
    ) -> Tuple[Snapshot, int]:
        """Paginated stock records joined with their products, most recently updated first."""
        _check_page(page, limit)
        query = self.db.query(StockRecord, Product).outerjoin(
            Product, StockRecord.product_id == Product.product_id
        )
        if low_stock is not None:
            query = query.filter(StockRecord.low_stock == low_stock)
        if out_of_stock is not None:
            query = query.filter(StockRecord.out_of_stock == out_of_stock)
        total = query.count()
        rows = (
            query.order_by(StockRecord.updated_at.desc(), StockRecord.record_id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return [(to_ledger(record), to_catalog_product(product) if product else None) for record, product in rows], total

    @storage_guard
    def snapshot(self) -> Snapshot:
        """Every stock record with its product (None when the product is missing)."""
        rows = (
            self.db.query(StockRecord, Product)
            .outerjoin(Product, StockRecord.product_id == Product.product_id)
            .order_by(StockRecord.record_id)
            .all()
        )
        return [(to_ledger(record), to_catalog_product(product) if product else None) for record, product in rows]

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @storage_guard
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
