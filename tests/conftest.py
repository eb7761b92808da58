import httpx
import pytest
from fastapi.testclient import TestClient

from inventory_service import main as inventory_main
from inventory_service.ledger import BalanceLedger
from inventory_service.publisher import EventPublisher as InventoryPublisher
from invoice_service import main as invoice_main
from invoice_service.inventory_client import InventoryClient
from invoice_service.orchestrator import CloseLocks
from invoice_service.publisher import EventPublisher as InvoicePublisher
from invoice_service.store import InvoiceStore


class RecordingRedis:
    """redis.asyncio.Redis の publish だけを記録するテストダブル"""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.messages.append((channel, message))
        return 1


@pytest.fixture()
def ledger(monkeypatch):
    ledger = BalanceLedger()
    monkeypatch.setattr(inventory_main, "ledger", ledger)
    monkeypatch.setattr(inventory_main, "publisher", InventoryPublisher())
    return ledger


@pytest.fixture()
def inventory_api(ledger):
    return TestClient(inventory_main.app)


@pytest.fixture()
def invoice_store(monkeypatch, ledger):
    """Invoice Service の状態を初期化し、在庫クライアントを Inventory Service の ASGI アプリに直結する。"""
    store = InvoiceStore()
    client = InventoryClient(
        "http://inventory",
        timeout=5.0,
        transport=httpx.ASGITransport(app=inventory_main.app),
    )
    monkeypatch.setattr(invoice_main, "store", store)
    monkeypatch.setattr(invoice_main, "inventory", client)
    monkeypatch.setattr(invoice_main, "close_locks", CloseLocks())
    monkeypatch.setattr(invoice_main, "publisher", InvoicePublisher())
    return store


@pytest.fixture()
def invoice_api(invoice_store):
    return TestClient(invoice_main.app)


def create_product(api: TestClient, code: str, balance: int, description: str | None = None) -> str:
    """Helper: POST /commands/products and return the product id."""
    response = api.post(
        "/commands/products",
        json={"code": code, "description": description or f"Product {code}", "balance": balance},
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]
