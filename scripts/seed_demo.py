"""Seed the database with a demo catalog and an admin user.

Idempotent: products are upserted by SKU, the admin is created only when its
email is not taken yet.

Usage:
    python scripts/seed_demo.py

Reads DATABASE_URL from the environment (see storefront/config.py).
ADMIN_EMAIL / ADMIN_PASSWORD override the demo admin credentials.
"""
import asyncio
import os
import sys
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select

# Ensure project root is on sys.path when run as a plain script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront.auth import get_password_hash
from storefront.database import async_session_maker, create_tables
from storefront.models import Product, User

DEMO_PRODUCTS = [
    {"sku": "TS-001", "name": "Classic Tee", "price": "19.90", "category": "Apparel", "inventory": 50, "featured": True,
     "description": "Soft cotton t-shirt with a relaxed fit."},
    {"sku": "HD-002", "name": "Zip Hoodie", "price": "54.99", "category": "Apparel", "inventory": 20, "featured": True,
     "description": "Midweight fleece hoodie with a full zip."},
    {"sku": "CP-003", "name": "Canvas Cap", "price": "12.50", "category": "Accessories", "inventory": 35, "featured": False,
     "description": "Six-panel cap with an adjustable strap."},
    {"sku": "BP-004", "name": "Daypack", "price": "89.00", "category": "Bags", "inventory": 8, "featured": True,
     "description": "20 litre backpack with a padded laptop sleeve."},
    {"sku": "SK-005", "name": "Wool Socks", "price": "9.99", "category": "Accessories", "inventory": 3, "featured": False,
     "description": "Merino blend socks, two pairs."},
]


async def seed_products(session):
    for item in DEMO_PRODUCTS:
        res = await session.execute(select(Product).where(Product.sku == item["sku"]))
        product = res.scalar_one_or_none()
        values = dict(item, price=Decimal(item["price"]), image_url=f"/static/img/{item['sku'].lower()}.jpg")
        if product is None:
            session.add(Product(**values))
        else:
            for key, value in values.items():
                setattr(product, key, value)
    await session.commit()
    print(f"Seeded {len(DEMO_PRODUCTS)} demo products")


async def seed_admin(session):
    email = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("ADMIN_PASSWORD", "admin12345")
    res = await session.execute(select(User).where(User.email == email))
    if res.scalar_one_or_none() is not None:
        print(f"Admin {email} already exists")
        return
    session.add(User(
        username="admin",
        email=email,
        full_name="Store Admin",
        password_hash=get_password_hash(password),
        is_admin=True,
    ))
    await session.commit()
    print(f"Created admin {email}")


async def main():
    await create_tables()
    async with async_session_maker() as session:
        await seed_products(session)
        await seed_admin(session)
    print("Seed complete")


if __name__ == "__main__":
    asyncio.run(main())
