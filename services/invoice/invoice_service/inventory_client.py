"""
Invoice Service — 在庫サービス クライアント (Inventory Client Adapter)

請求サービスの「この商品を取得したい」「これらの明細を引き当てたい」を
在庫サービスへの HTTP 呼び出しに変換し、結果を明細ごとの結果に戻す。

2 種類の失敗を区別する:
  - 通信そのものの失敗(接続拒否・タイムアウト・不正なレスポンス・200 以外)
      → ReservationUnavailable / ProductLookupFailed を送出
  - 通信は成功したが明細ごとに拒否された
      → 例外にせず、success=False の ReservationOutcome として返す
        (部分的に成功した明細の情報を持つのはこちらだけ)

再試行はしない。1 回の締め処理につき呼び出しは 1 回だけ。
"""

import logging
from typing import Protocol, Sequence
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter

from .aggregate import InvoiceLineItem
from .errors import ProductLookupFailed, ProductNotFound, ReservationUnavailable

logger = logging.getLogger(__name__)


class ProductInfo(BaseModel):
    id: str
    code: str
    description: str
    balance: int


class ReservationOutcome(BaseModel):
    success: bool
    product_id: str
    new_balance: int | None = None
    error_message: str | None = None
    replayed: bool = False


_outcomes = TypeAdapter(list[ReservationOutcome])


class InventoryGateway(Protocol):
    """請求サービスが在庫サービスに求める機能(HTTP クライアントかテストダブル)"""

    async def get_product(self, product_id: str) -> ProductInfo: ...

    async def reserve(
        self, items: Sequence[InvoiceLineItem], reservation_id: str
    ) -> list[ReservationOutcome]: ...


class InventoryClient:
    """在庫サービスの HTTP クライアント。すべての呼び出しに固定のタイムアウトを付ける。"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def get_product(self, product_id: str) -> ProductInfo:
        try:
            async with self._client() as client:
                resp = await client.get(f"/queries/products/{quote(product_id, safe='')}")
        except httpx.HTTPError as e:
            logger.warning("Product lookup %s failed: %r", product_id, e)
            raise ProductLookupFailed(product_id, _describe(e)) from e

        if resp.status_code == 404:
            raise ProductNotFound(product_id)
        if resp.status_code != 200:
            raise ProductLookupFailed(product_id, f"status {resp.status_code}")
        try:
            return ProductInfo.model_validate(resp.json())
        except ValueError as e:
            raise ProductLookupFailed(product_id, "malformed response") from e

    async def reserve(
        self, items: Sequence[InvoiceLineItem], reservation_id: str
    ) -> list[ReservationOutcome]:
        """
        明細をまとめて引き当てる。

        reservation_id(請求書 ID)を渡すので、同じ請求書の再送では
        適用済みの明細は二度引き当てられない。
        """
        payload = {
            "reservation_id": reservation_id,
            "items": [
                {"product_id": item.product_id, "quantity": item.quantity}
                for item in items
            ],
        }
        try:
            async with self._client() as client:
                resp = await client.post("/commands/products/reserve", json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Reservation %s failed in transport: %r", reservation_id, e)
            raise ReservationUnavailable(_describe(e)) from e

        try:
            outcomes = _outcomes.validate_python(resp.json())
        except ValueError as e:
            raise ReservationUnavailable("malformed response") from e

        if len(outcomes) != len(items) or any(
            o.product_id != item.product_id for o, item in zip(outcomes, items)
        ):
            raise ReservationUnavailable("response does not match the requested items")
        return outcomes


def _describe(e: httpx.HTTPError) -> str:
    if isinstance(e, httpx.TimeoutException):
        return "timeout"
    if isinstance(e, httpx.HTTPStatusError):
        return f"status {e.response.status_code}"
    return str(e) or type(e).__name__
