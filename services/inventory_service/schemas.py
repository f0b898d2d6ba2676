from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ProductStatus = Literal["active", "inactive", "discontinued"]


def normalize_sku(value: str) -> str:
    sku = value.strip().upper()
    if not sku:
        raise ValueError("sku must not be blank")
    return sku


class Category(BaseModel):
    """Two-level product category."""

    main: str
    sub: str
    path: Optional[str] = None

    def with_path(self) -> "Category":
        return Category(main=self.main, sub=self.sub, path=f"{self.main}/{self.sub}")


class Pricing(BaseModel):
    cost: float = Field(ge=0)
    retail: float = Field(ge=0)
    wholesale: Optional[float] = Field(None, ge=0)
    currency: str = "USD"


class Specifications(BaseModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    storage: Optional[str] = None
    technical: Optional[Dict[str, Any]] = None


class ProductCreate(BaseModel):
    """Request to create a product (and its empty stock record)."""

    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: Category
    specifications: Optional[Specifications] = None
    pricing: Pricing
    tags: List[str] = Field(default_factory=list)
    status: ProductStatus = "active"
    reorder_point: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)

    @field_validator("sku")
    @classmethod
    def _normalize_sku(cls, value: str) -> str:
        return normalize_sku(value)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("name must not be blank")
        return name


class ProductUpdate(BaseModel):
    """Partial product update."""

    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    specifications: Optional[Specifications] = None
    pricing: Optional[Pricing] = None
    tags: Optional[List[str]] = None
    status: Optional[ProductStatus] = None

    @field_validator("sku")
    @classmethod
    def _normalize_sku(cls, value: Optional[str]) -> Optional[str]:
        return normalize_sku(value) if value is not None else None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        name = value.strip()
        if not name:
            raise ValueError("name must not be blank")
        return name


class CatalogProduct(BaseModel):
    """Read-side view of a catalog product."""

    product_id: str
    sku: str
    name: str
    description: Optional[str] = None
    category: Category
    specifications: Optional[Dict[str, Any]] = None
    pricing: Pricing
    tags: List[str] = Field(default_factory=list)
    status: ProductStatus = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AddStockRequest(BaseModel):
    warehouse_name: str
    location: Optional[str] = None
    quantity: int


class RemoveStockRequest(BaseModel):
    warehouse_name: str
    quantity: int
    reason: str = "Manual adjustment"


class ReservationRequest(BaseModel):
    warehouse_name: str
    quantity: int


class WarehouseUpdate(BaseModel):
    warehouse_name: str
    quantity: Optional[int] = None
    location: Optional[str] = None


class UpdateSettingsRequest(BaseModel):
    reorder_point: Optional[int] = None
    max_stock: Optional[int] = None
    warehouse_updates: Optional[List[WarehouseUpdate]] = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str
    version: str
