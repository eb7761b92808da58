"""Inventory Client Adapter: transport failures vs. per-item denials."""

import json

import httpx
import pytest

from invoice_service.aggregate import InvoiceLineItem
from invoice_service.errors import (
    NotFoundError,
    ProductLookupFailed,
    ProductNotFound,
    RemoteUnavailableError,
    ReservationFailed,
    ReservationUnavailable,
)
from invoice_service.inventory_client import InventoryClient

ITEMS = [
    InvoiceLineItem("p-1", "BOLT", "Hex bolt", 4),
    InvoiceLineItem("p-2", "NUT", "Hex nut", 1),
]


def client_for(handler) -> InventoryClient:
    return InventoryClient("http://inventory", timeout=1.0, transport=httpx.MockTransport(handler))


def raising(exc_type):
    def handler(request: httpx.Request):
        raise exc_type("boom", request=request)
    return handler


class TestReserve:
    @pytest.mark.asyncio
    async def test_sends_items_in_order_with_reservation_id(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[
                {"success": True, "product_id": "p-1", "new_balance": 6},
                {"success": True, "product_id": "p-2", "new_balance": 0},
            ])

        outcomes = await client_for(handler).reserve(ITEMS, reservation_id="inv-1")

        assert seen["path"] == "/commands/products/reserve"
        assert seen["body"] == {
            "reservation_id": "inv-1",
            "items": [
                {"product_id": "p-1", "quantity": 4},
                {"product_id": "p-2", "quantity": 1},
            ],
        }
        assert [o.new_balance for o in outcomes] == [6, 0]

    @pytest.mark.asyncio
    async def test_per_item_denial_is_returned_not_raised(self):
        def handler(request):
            return httpx.Response(200, json=[
                {"success": True, "product_id": "p-1", "new_balance": 6},
                {"success": False, "product_id": "p-2", "new_balance": 0,
                 "error_message": "Insufficient balance"},
            ])

        outcomes = await client_for(handler).reserve(ITEMS, reservation_id="inv-1")

        assert [o.success for o in outcomes] == [True, False]
        assert outcomes[1].error_message == "Insufficient balance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.ReadTimeout])
    async def test_transport_errors(self, exc_type):
        with pytest.raises(ReservationUnavailable) as info:
            await client_for(raising(exc_type)).reserve(ITEMS, reservation_id="inv-1")

        assert isinstance(info.value, ReservationFailed)
        assert isinstance(info.value, RemoteUnavailableError)
        assert info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout_is_reported_as_timeout(self):
        with pytest.raises(ReservationUnavailable, match="timeout"):
            await client_for(raising(httpx.ReadTimeout)).reserve(ITEMS, reservation_id="inv-1")

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        with pytest.raises(ReservationUnavailable, match="status 500"):
            await client_for(lambda r: httpx.Response(500)).reserve(ITEMS, reservation_id="inv-1")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        with pytest.raises(ReservationUnavailable, match="malformed"):
            await client_for(lambda r: httpx.Response(200, text="not json")).reserve(
                ITEMS, reservation_id="inv-1"
            )

    @pytest.mark.asyncio
    async def test_outcome_count_mismatch(self):
        def handler(request):
            return httpx.Response(200, json=[{"success": True, "product_id": "p-1", "new_balance": 6}])

        with pytest.raises(ReservationUnavailable):
            await client_for(handler).reserve(ITEMS, reservation_id="inv-1")


class TestGetProduct:
    @pytest.mark.asyncio
    async def test_found(self):
        def handler(request):
            assert request.url.path == "/queries/products/p-1"
            return httpx.Response(200, json={
                "id": "p-1", "code": "BOLT", "description": "Hex bolt", "balance": 10,
                "created_at": "2026-01-01T00:00:00+00:00", "updated_at": "2026-01-01T00:00:00+00:00",
            })

        product = await client_for(handler).get_product("p-1")
        assert (product.code, product.balance) == ("BOLT", 10)

    @pytest.mark.asyncio
    async def test_not_found(self):
        with pytest.raises(ProductNotFound) as info:
            await client_for(lambda r: httpx.Response(404)).get_product("p-1")

        assert isinstance(info.value, ProductLookupFailed)
        assert isinstance(info.value, NotFoundError)
        assert info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(ProductLookupFailed) as info:
            await client_for(raising(httpx.ReadTimeout)).get_product("p-1")

        assert not isinstance(info.value, ProductNotFound)
        assert info.value.status_code == 503
