import json
import os

# Settings are read at import time; keep the developer's .env out of the tests.
for _name in (
    "DATABASE_URL", "ADMIN_USERNAME", "ADMIN_PASSWORD", "SITE_LOGO_URL",
    "TELEGRAM_BOT_TOKEN", "TELEGRAM_BOT_TOKE", "TELEGRAM_CHAT_ID",
    "SHIPPING_API_URL", "SHIPPING_API_ID", "SHIPPING_API_TOKEN",
    "SHIPPING_FROM_WILAYA_NAME", "SHIPPING_DEFAULT_COMMUNE",
):
    os.environ[_name] = ""
os.environ["APP_ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
import requests
from fastapi.testclient import TestClient

import api
import config_store
import database
from config_store import ConfigStore, MemoryConfigBackend
from database import FileStorage
from models import ProductCreate
from notify import TelegramNotifier
from orders import OrderService
from shipping import ShippingConfigService
from site_config import SiteConfigService

YALIDINE_URL = "https://api.yalidine.app/v1/"
ADMIN = {"username": "admin", "password": "secret123"}


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records every POST; ``reply`` is a response or a callable(url, json) -> response."""

    def __init__(self, reply=None):
        self.reply = reply if reply is not None else FakeResponse(200, "{}")
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(url, json)
        return self.reply


def yalidine_success(url, payload):
    """Carrier accepting every parcel it receives."""
    return FakeResponse(200, json.dumps([{"order_id": p["order_id"], "success": True} for p in payload]))


def make_product(storage, name="Galaxy S24", price=1000.0, stock=5, category="Smartphones"):
    return storage.create_product(ProductCreate(
        name=name, description=f"{name} description", category=category,
        price=price, stock=stock, images=["/logo.jpg"],
    ))


@pytest.fixture
def storage():
    return FileStorage()


@pytest.fixture
def store():
    return ConfigStore(MemoryConfigBackend())


@pytest.fixture
def shipping_config(store):
    return ShippingConfigService(store, env_overrides={})


@pytest.fixture
def http_session():
    return FakeSession(yalidine_success)


@pytest.fixture
def client(storage, store, shipping_config, http_session, tmp_path):
    overrides = {
        database.get_storage: lambda: storage,
        config_store.get_config_store: lambda: store,
        api.get_http_session: lambda: http_session,
        api.get_uploads_dir: lambda: str(tmp_path),
        api.get_shipping_config_service: lambda: shipping_config,
        api.get_site_config_service: lambda: SiteConfigService(store, logo_override=""),
        api.get_order_service: lambda: OrderService(
            storage, notifier=TelegramNotifier(bot_token="", chat_id="")
        ),
    }
    api.app.dependency_overrides.update(overrides)
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    assert client.post("/api/admin/setup", json=ADMIN).status_code == 201
    assert client.post("/api/login", json=ADMIN).status_code == 200
    return client
