"""Pytest configuration and fixtures."""
import os

# Settings are read at import time; give tests a usable configuration.
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from app.main import app
from app.config import settings

from tests.factories import make_cursor


@pytest.fixture
def mock_db():
    """
    Fake Motor database with one AsyncMock per collection.

    ``mock_db.collections["goals"]`` etc. give access to the collections.
    """
    collections = {
        "users": AsyncMock(),
        "goals": AsyncMock(),
        "partners": AsyncMock(),
    }
    for collection in collections.values():
        collection.find = MagicMock(return_value=make_cursor([]))

    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections[name]
    db.collections = collections
    return db


@pytest_asyncio.fixture
async def app_client():
    """
    Create a test client with a clean test database.

    Skips when MongoDB is not reachable.
    """
    test_client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=1000)
    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB not available")

    test_db_name = f"{settings.mongodb_db_name}_test"
    test_db = test_client[test_db_name]

    # Override the database dependency
    from app.database import database
    original_db = database.db
    database.db = test_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    # Cleanup: drop test database
    await test_client.drop_database(test_db_name)

    database.db = original_db
    test_client.close()
