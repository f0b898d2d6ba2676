from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """Catalog entry. Owns exactly one StockRecord."""

    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(String(64), unique=True, nullable=False, index=True)
    sku = Column(String(64), unique=True, nullable=False, index=True)  # Trimmed, upper-cased
    name = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    category_main = Column(String(255), nullable=False, index=True)
    category_sub = Column(String(255), nullable=False)
    category_path = Column(String(511), nullable=False)  # "main/sub"
    specifications = Column(JSON, nullable=True)
    cost = Column(Float, nullable=False)
    retail = Column(Float, nullable=False)
    wholesale = Column(Float, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active, inactive, discontinued
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    stock_record = relationship(
        "StockRecord",
        back_populates="product",
        uselist=False,
        cascade="all, delete-orphan",
    )


class StockRecord(Base):
    """Per-product stock ledger with optimistic locking on version."""

    __tablename__ = "stock_records"

    id = Column(Uuid, primary_key=True, default=uuid4)
    record_id = Column(String(64), unique=True, nullable=False, index=True)
    product_id = Column(
        String(64),
        ForeignKey("products.product_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    sku = Column(String(64), unique=True, nullable=False)  # Mirrors products.sku
    warehouses = Column(JSON, default=list, nullable=False)  # [{warehouse_name, location, quantity, reserved, available}]
    total_stock = Column(Integer, default=0, nullable=False)
    total_available = Column(Integer, default=0, nullable=False)
    reorder_point = Column(Integer, default=10, nullable=False)
    max_stock = Column(Integer, default=1000, nullable=False)
    last_restock = Column(DateTime(timezone=True), nullable=True)
    low_stock = Column(Boolean, default=False, nullable=False)
    out_of_stock = Column(Boolean, default=True, nullable=False)
    overstock = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, default=0, nullable=False)  # Optimistic lock
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    product = relationship("Product", back_populates="stock_record")
