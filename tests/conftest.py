"""
Shared pytest fixtures.

The application lifespan never runs under ASGITransport, so fixtures install
an in-memory mongomock database and a mocked payment bridge on app.state the
same way the lifespan installs the real ones.
"""

import os
from unittest.mock import MagicMock

import mongomock
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Must be set before config.settings is first imported
os.environ["ACCESS_TOKEN_SECRET"] = "test-secret-not-real"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["LOG_LEVEL"] = "WARNING"

from auth import create_access_token  # noqa: E402
from database import USERS  # noqa: E402
from payments import PaymentIntentBridge  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "user@example.com"


@pytest.fixture
def mongo_db():
    client = mongomock.MongoClient()
    yield client["swipedefend_test"]
    client.close()


@pytest.fixture
def payment_bridge():
    bridge = MagicMock(spec=PaymentIntentBridge)
    bridge.create_intent.return_value = "pi_test_secret_123"
    return bridge


@pytest.fixture
def seeded_users(mongo_db):
    mongo_db[USERS].insert_many(
        [
            {"email": ADMIN_EMAIL, "name": "Admin", "role": "admin"},
            {"email": USER_EMAIL, "name": "Regular", "role": "default"},
        ]
    )
    return mongo_db


@pytest.fixture
def admin_headers(seeded_users):
    return {"Authorization": f"Bearer {create_access_token({'email': ADMIN_EMAIL})}"}


@pytest.fixture
def user_headers(seeded_users):
    return {"Authorization": f"Bearer {create_access_token({'email': USER_EMAIL})}"}


@pytest_asyncio.fixture
async def test_client(mongo_db, payment_bridge):
    """HTTPX AsyncClient routed straight into the FastAPI app."""
    from main import app

    app.state.db = mongo_db
    app.state.payments = payment_bridge
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.state.db = None
    app.state.payments = None
