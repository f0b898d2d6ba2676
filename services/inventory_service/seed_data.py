import logging
import random

from sqlalchemy.orm import Session

from services.inventory_service.allocation import AllocationEngine
from services.inventory_service.catalog import CatalogService
from services.inventory_service.repository import InventoryRepository
from services.inventory_service.reservation import ReservationManager
from services.inventory_service.schemas import ProductCreate

logger = logging.getLogger(__name__)

WAREHOUSES = [
    ("Main Warehouse", "A1-B2-C3"),
    ("Secondary Warehouse", "D4-E5-F6"),
    ("Outlet Store", "Front shelf"),
]

# (sku, name, main category, sub category, cost, retail, wholesale, tags)
SAMPLE_PRODUCTS = [
    ("PHONE-001", "Samsung Galaxy S21", "Electronics", "Mobile Phones", 450.00, 699.99, 550.00, ["smartphone", "android"]),
    ("PHONE-002", "Pixel 8", "Electronics", "Mobile Phones", 420.00, 649.00, 520.00, ["smartphone", "android"]),
    ("LAPTOP-001", "MacBook Air M2", "Electronics", "Laptops", 900.00, 1199.99, 1000.00, ["laptop", "apple"]),
    ("LAPTOP-002", "ThinkPad X1 Carbon", "Electronics", "Laptops", 1100.00, 1499.00, 1250.00, ["laptop", "business"]),
    ("AUDIO-001", "Wireless Headphones", "Electronics", "Audio", 60.00, 149.99, 95.00, ["audio", "bluetooth"]),
    ("ACC-001", "USB-C Cable", "Accessories", "Cables", 2.50, 12.99, 6.00, ["cable"]),
    ("ACC-002", "Laptop Stand", "Accessories", "Desk", 14.00, 39.99, 25.00, ["desk", "ergonomic"]),
    ("ACC-003", "Mouse Pad", "Accessories", "Desk", 4.00, 24.99, 10.00, ["desk"]),
    ("HOME-001", "Desk Lamp", "Home", "Lighting", 12.00, 34.99, 20.00, ["lighting", "led"]),
    ("HOME-002", "Cable Organizer", "Home", "Storage", 3.00, 14.99, 7.50, ["organizer"]),
]


def seed_products(db: Session, rng: random.Random = None) -> int:
    """Seed database with sample products and stock. Returns the number of products created."""
    logger.info("Seeding products...")
    rng = rng or random.Random()
    repo = InventoryRepository(db)
    catalog = CatalogService(repo)
    allocation = AllocationEngine(repo)
    reservations = ReservationManager(repo)

    created = 0
    for sku, name, main, sub, cost, retail, wholesale, tags in SAMPLE_PRODUCTS:
        # Check if product already exists
        if repo.get_product_by_sku(sku) is not None:
            logger.info(f"Product {sku} already exists, skipping")
            continue

        result = catalog.create_product(
            ProductCreate(
                sku=sku,
                name=name,
                category={"main": main, "sub": sub},
                pricing={"cost": cost, "retail": retail, "wholesale": wholesale},
                tags=tags,
            )
        )
        record_id = result["inventory"].record_id

        for warehouse_name, location in rng.sample(WAREHOUSES, rng.randint(1, len(WAREHOUSES))):
            quantity = rng.randint(0, 200)
            if quantity == 0:
                continue
            allocation.add_stock(record_id, warehouse_name, quantity, location)
            reserved = rng.randint(0, quantity // 4)
            if reserved:
                reservations.reserve(record_id, warehouse_name, reserved)
        created += 1

    logger.info(f"Seeded {created} products")
    return created
