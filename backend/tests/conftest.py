"""
Shared fixtures: a fresh store per test, a fake Telegram gateway that records
every call, and a TestClient wired to both through dependency overrides.
"""
import os
import tempfile

# Settings are read once at import time, so configure them before the app loads
os.environ["ADMIN_PASSWORD"] = "test-secret"
os.environ["ADMIN_TELEGRAM_ID"] = "999"
os.environ["BOT_TOKEN"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "fruitmerge-tests.log")

import pytest
from fastapi.testclient import TestClient

from fruitmerge.api.dependencies import get_persistence, get_store, get_telegram
from fruitmerge.main import app
from fruitmerge.persistence import PersistenceManager
from fruitmerge.repository import JsonFileRepository
from fruitmerge.store import GameStore

class FakeTelegram:
    """Stands in for TelegramGateway and records outbound calls."""

    enabled = True

    def __init__(self):
        self.messages = []
        self.invoices = []
        self.pre_checkouts = []
        self.fail_invoices = False

    async def create_invoice_link(self, title, description, payload, amount, label=None):
        if self.fail_invoices:
            raise RuntimeError("Bad Request: currency XTR is not supported")
        self.invoices.append({
            "title": title,
            "description": description,
            "payload": payload,
            "amount": amount,
            "label": label,
        })
        return f"https://t.me/$invoice-{len(self.invoices)}"

    async def answer_pre_checkout(self, query_id, ok, error_message=None):
        self.pre_checkouts.append((query_id, ok, error_message))

    async def send_message(self, chat_id, text, play_button=None):
        self.messages.append({"chat_id": str(chat_id), "text": text, "play_button": play_button})
        return True

    def messages_to(self, chat_id):
        return [m for m in self.messages if m["chat_id"] == str(chat_id)]


@pytest.fixture
def store():
    return GameStore()


@pytest.fixture
def fake_telegram():
    return FakeTelegram()


@pytest.fixture
def data_file(tmp_path):
    return str(tmp_path / "data.json")


@pytest.fixture
def persistence(store, data_file):
    return PersistenceManager(store, JsonFileRepository(data_file))


@pytest.fixture
def client(store, fake_telegram, persistence):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_telegram] = lambda: fake_telegram
    app.dependency_overrides[get_persistence] = lambda: persistence
    yield TestClient(app)
    app.dependency_overrides.clear()
