"""
Idempotent seed data: the default store, the fixed categories and a
bootstrap superadmin. Run directly with ``python seed.py`` or through
``POST /api/admin/seed``.
"""
import logging

from pymongo.database import Database

import settings
from database import create_document
from schemas import Admin, Category, GeoPoint, Store
from security import hash_password

logger = logging.getLogger(__name__)

DEFAULT_STORE = {
    "address": "123 Main St, Central City",
    "latitude": 12.9716,
    "longitude": 77.5946,
    "contact_number": "9876543210",
    "service_radius": 100,
}

DEFAULT_CATEGORIES = [
    {"name": "Pharmacy", "description": "Medicines and health essentials", "icon": "medical"},
    {"name": "Lab Tests", "description": "Book diagnostic tests", "icon": "flask"},
    {"name": "Pet Care", "description": "Medicines and care for pets", "icon": "paw"},
    {"name": "Consults", "description": "Talk to a doctor", "icon": "chatbubbles"},
    {"name": "Wellness", "description": "Vitamins, supplements and personal care", "icon": "leaf"},
]


def ensure_default_store(database: Database) -> dict:
    store = database["store"].find_one({"name": settings.DEFAULT_STORE_NAME})
    if store:
        logger.info("Default store already exists")
        return store
    logger.info("Creating default store: %s", settings.DEFAULT_STORE_NAME)
    create_document(
        database,
        "store",
        Store(
            name=settings.DEFAULT_STORE_NAME,
            address=DEFAULT_STORE["address"],
            location=GeoPoint.from_lat_lng(DEFAULT_STORE["latitude"], DEFAULT_STORE["longitude"]),
            contact_number=DEFAULT_STORE["contact_number"],
            service_radius=DEFAULT_STORE["service_radius"],
        ),
    )
    return database["store"].find_one({"name": settings.DEFAULT_STORE_NAME})


def ensure_categories(database: Database) -> int:
    created = 0
    for order, category in enumerate(DEFAULT_CATEGORIES):
        if database["category"].find_one({"name": category["name"]}):
            continue
        create_document(database, "category", Category(display_order=order, **category))
        created += 1
    return created


def ensure_bootstrap_admin(database: Database) -> bool:
    if not (settings.BOOTSTRAP_ADMIN_EMAIL and settings.BOOTSTRAP_ADMIN_PASSWORD):
        return False
    if database["admin"].count_documents({}) > 0:
        return False
    create_document(
        database,
        "admin",
        Admin(
            email=settings.BOOTSTRAP_ADMIN_EMAIL.lower(),
            password_hash=hash_password(settings.BOOTSTRAP_ADMIN_PASSWORD),
            role="superadmin",
        ),
    )
    logger.info("Bootstrap superadmin %s created", settings.BOOTSTRAP_ADMIN_EMAIL)
    return True


if __name__ == "__main__":
    from database import db, ensure_indexes

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if db is None:
        raise SystemExit("DATABASE_URL and DATABASE_NAME must be set")
    ensure_indexes(db)
    store = ensure_default_store(db)
    ensure_categories(db)
    ensure_bootstrap_admin(db)
    print(f"STORE_ID={store['_id']}")
    print(f'STORE_NAME="{store["name"]}"')
