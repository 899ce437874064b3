import asyncio
import os
import tempfile
from decimal import Decimal
from pathlib import Path

# Configure before the app (and its engine) is imported
_DB_PATH = Path(tempfile.mkdtemp()) / "storefront_test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ.pop("STRIPE_SECRET_KEY", None)

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.auth import get_password_hash
from storefront.database import async_session_maker, drop_tables
from storefront.gateway import DemoGateway, get_gateway
from storefront.main import app
from storefront.models import Product, User
from storefront.pages import get_checkout_client


@pytest.fixture
def gateway():
    return DemoGateway()


@pytest.fixture
def client(gateway):
    async def checkout_client():
        # the checkout round trip goes straight back into the app under test
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as c:
            yield c

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_checkout_client] = checkout_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    asyncio.run(drop_tables())


async def _add(obj):
    async with async_session_maker() as session:
        session.add(obj)
        await session.commit()
        await session.refresh(obj)
        return obj


@pytest.fixture
def make_product(client):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "name": f"Product {counter['n']}",
            "description": "demo",
            "price": Decimal("9.99"),
            "image_url": f"/img/{counter['n']}.jpg",
            "category": "Apparel",
            "sku": f"SKU-{counter['n']}",
            "inventory": 10,
            "featured": False,
        }
        values.update(fields)
        return asyncio.run(_add(Product(**values)))

    return _make


@pytest.fixture
def make_user(client):
    def _make(email="shopper@example.com", password="password123", is_admin=False, username=None):
        user = User(
            username=username or email.split("@")[0],
            email=email,
            full_name="Test User",
            password_hash=get_password_hash(password),
            is_admin=is_admin,
        )
        return asyncio.run(_add(user))

    return _make


def login(client, email, password="password123"):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_headers(client, make_user):
    make_user(email="admin@example.com", is_admin=True, username="admin")
    return login(client, "admin@example.com")


@pytest.fixture
def user_headers(client, make_user):
    make_user(email="shopper@example.com")
    return login(client, "shopper@example.com")
