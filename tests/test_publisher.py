import json
import logging

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import RecordingRedis, create_product
from inventory_service import main as inventory_main
from inventory_service.events import ProductDeleted
from inventory_service.publisher import EventPublisher as InventoryPublisher
from invoice_service.events import InvoiceClosed
from invoice_service.publisher import EventPublisher as InvoicePublisher


class BrokenRedis:
    async def publish(self, channel, message):
        raise RedisConnectionError("redis is down")


@pytest.mark.asyncio
async def test_invoice_event_is_published_as_json():
    redis = RecordingRedis()
    event = InvoiceClosed(invoice_id="inv-1", number=7, timestamp="2026-01-01T00:00:00+00:00")

    await InvoicePublisher(redis).publish(event)

    channel, message = redis.messages[0]
    assert channel == "invoice_events"
    payload = json.loads(message)
    assert payload["event_type"] == "InvoiceClosed"
    assert payload["data"]["number"] == 7


@pytest.mark.asyncio
async def test_publish_without_redis_is_a_noop():
    await InvoicePublisher().publish(
        InvoiceClosed(invoice_id="inv-1", number=1, timestamp="2026-01-01T00:00:00+00:00")
    )


@pytest.mark.asyncio
async def test_redis_failure_is_logged_not_raised(caplog):
    event = ProductDeleted(product_id="p-1", code="BOLT", timestamp="2026-01-01T00:00:00+00:00")

    with caplog.at_level(logging.ERROR):
        await InventoryPublisher(BrokenRedis()).publish(event)

    assert "Failed to publish ProductDeleted" in caplog.text


def test_reserve_batch_publishes_stock_events(inventory_api, monkeypatch):
    redis = RecordingRedis()
    bolt = create_product(inventory_api, "BOLT", 10)
    monkeypatch.setattr(inventory_main, "publisher", InventoryPublisher(redis))

    inventory_api.post(
        "/commands/products/reserve",
        json={
            "reservation_id": "inv-1",
            "items": [{"product_id": bolt, "quantity": 4}, {"product_id": bolt, "quantity": 99}],
        },
    )

    events = [json.loads(m) for _, m in redis.messages]
    assert [e["event_type"] for e in events] == ["StockReserved", "StockReservationFailed"]
    assert events[0]["data"]["reservation_key"] == "inv-1:0"
    assert events[1]["data"]["reservation_key"] == "inv-1:1"
