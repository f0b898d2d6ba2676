import math
from typing import Optional

from services.inventory_service.exceptions import NotFoundError
from services.inventory_service.ledger import StockLedger
from services.inventory_service.repository import InventoryRepository, to_catalog_product, to_ledger
from services.inventory_service.schemas import ProductCreate, ProductUpdate


def _pagination(page: int, limit: int, total: int) -> dict:
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_items": total,
        "items_per_page": limit,
    }


class CatalogService:
    """
    Product catalog operations that keep each product paired with exactly one
    stock record: creation, SKU changes and deletion touch both rows in the
    same transaction.
    """

    def __init__(self, repository: InventoryRepository, default_reorder_point: int = 10, default_max_stock: int = 1000):
        self.repository = repository
        self.default_reorder_point = default_reorder_point
        self.default_max_stock = default_max_stock

    def create_product(self, data: ProductCreate) -> dict:
        try:
            product = self.repository.create_product(data, self.default_reorder_point, self.default_max_stock)
            stock_record = product.stock_record
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        return {"product": to_catalog_product(product), "inventory": to_ledger(stock_record)}

    def get_product(self, product_id: str) -> dict:
        product = self.repository.get_product(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        record = self.repository.get_stock_record_for_product(product_id)
        return {
            "product": to_catalog_product(product),
            "inventory": to_ledger(record) if record is not None else None,
        }

    def list_products(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        products, total = self.repository.find_products(page, limit, category, status, search)
        return {
            "data": [to_catalog_product(p) for p in products],
            "pagination": _pagination(page, limit, total),
        }

    def update_product(self, product_id: str, update: ProductUpdate) -> dict:
        changes = update.model_dump(exclude_unset=True)
        try:
            product = self.repository.get_product(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            self.repository.update_product(product, changes)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        return {"product": to_catalog_product(product)}

    def delete_product(self, product_id: str) -> None:
        try:
            product = self.repository.get_product(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            self.repository.delete_product(product)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise

    def list_stock_records(
        self,
        page: int = 1,
        limit: int = 10,
        low_stock: Optional[bool] = None,
        out_of_stock: Optional[bool] = None,
    ) -> dict:
        rows, total = self.repository.find_stock_records(page, limit, low_stock, out_of_stock)
        data = []
        for ledger, product in rows:
            item = ledger.to_response()
            item["product"] = (
                {
                    "name": product.name,
                    "sku": product.sku,
                    "category": product.category.model_dump(),
                    "pricing": product.pricing.model_dump(),
                }
                if product is not None
                else None
            )
            data.append(item)
        return {"data": data, "pagination": _pagination(page, limit, total)}

    def get_stock_record(self, record_id: str) -> StockLedger:
        return self.repository.load_stock_record(record_id)
