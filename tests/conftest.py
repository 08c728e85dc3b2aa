import asyncio

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from marketchat.database.connection import mongo_db_dependency
from marketchat.main import app
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.participant_repository import ParticipantRepository
from marketchat.repositories.product_repository import ProductRepository
from marketchat.services.conversation_service import ConversationService
from marketchat.utils import realtime_bus
from marketchat.utils.websocket_manager import manager


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def db():
    database = AsyncMongoMockClient(tz_aware=True)["marketchat_test"]
    run(ConversationRepository(database).ensure_indexes())
    run(MessageRepository(database).ensure_indexes())
    return database


@pytest.fixture(autouse=True)
def noop_bus(monkeypatch):
    monkeypatch.setattr(realtime_bus, "_bus", realtime_bus.NoopBus())
    yield
    manager.active_connections.clear()


@pytest.fixture()
def users(db):
    docs = {
        "buyer": {"_id": ObjectId(), "email": "buyer@example.com", "first_name": "Ama", "last_name": "Mensah", "is_seller": False},
        "seller": {"_id": ObjectId(), "email": "shop@example.com", "first_name": "Kofi", "last_name": "Boateng", "business_name": "Kofi Crafts", "store_logo": "logo.png", "is_seller": True},
        "other": {"_id": ObjectId(), "email": "other@example.com", "first_name": "Esi", "last_name": "Owusu", "is_seller": False},
    }
    run(db["users"].insert_many(list(docs.values())))
    return {name: str(doc["_id"]) for name, doc in docs.items()}


@pytest.fixture()
def product(db):
    doc = {"_id": ObjectId(), "product_name": "Kente scarf", "image_url": "scarf.jpg", "price": 45.0, "description": "Handwoven"}
    run(db["products"].insert_one(doc))
    return str(doc["_id"])


@pytest.fixture()
def service(db):
    return ConversationService(
        ConversationRepository(db),
        MessageRepository(db),
        ParticipantRepository(db),
        ProductRepository(db),
    )


@pytest.fixture()
def client(db):
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
