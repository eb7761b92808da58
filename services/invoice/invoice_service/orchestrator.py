"""
Invoice Service — 請求書の締め (Close / 「印刷」) オーケストレーター

ネットワークをまたいで、請求書の全明細を在庫から引き当てられるかを決め、
2 つのストアを整合した状態に保つ。

  フロー:
  ┌─────────────────────────────────────────────────────────┐
  │  0. 存在を確認し、請求書ごとのロックを取得(最後まで保持) │
  │  1. 請求書を読み込む            (なければ InvoiceNotFound)│
  │  2. OPEN でなければ AlreadyClosed (リモート呼び出しなし)  │
  │  3. Inventory Service に明細をまとめて引き当て依頼        │
  │     ├─ 通信失敗 → ReservationUnavailable (OPEN のまま)   │
  │     ├─ 一部拒否 → ReservationDenied      (OPEN のまま)   │
  │     └─ 全件成功 → 4 へ                                   │
  │  4. ストアで OPEN → CLOSED (compare-and-swap)             │
  └─────────────────────────────────────────────────────────┘

部分コミット:
  在庫サービスは明細を独立に処理するので、一部拒否の場合でも
  成功した明細の在庫は既に減っている。ここでは取り消し(補償)はしない。
  代わりに請求書 ID を予約 ID として渡し、明細ごとの予約キーで冪等にしている。
  在庫不足を解消してから同じ請求書を締め直すと、まだ適用されていない明細だけが
  引き当てられる(二重引き当てにならない)。

同時実行:
  同じ請求書への締めが同時に来ても、請求書ごとの asyncio.Lock で直列化される。
  2 番目の呼び出しは CLOSED を見て AlreadyClosed になり、リモート呼び出しはしない。
  ストアのロックはネットワーク呼び出しの間は保持しない。
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from .aggregate import Invoice
from .errors import AlreadyClosed, ReservationDenied, ReservationUnavailable
from .events import InvoiceClosed, InvoiceCloseFailed
from .inventory_client import InventoryGateway
from .publisher import EventPublisher
from .store import InvoiceStore

logger = logging.getLogger(__name__)


class CloseLocks:
    """
    請求書 ID ごとの asyncio.Lock

    ロックは使用中(保持中か待機中)の間だけ存在し、
    最後の利用者が抜けた時点で取り除かれる。
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def for_invoice(self, invoice_id: str):
        lock = self._locks.setdefault(invoice_id, asyncio.Lock())
        self._users[invoice_id] = self._users.get(invoice_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[invoice_id] -= 1
            if not self._users[invoice_id]:
                del self._users[invoice_id]
                del self._locks[invoice_id]


class InvoiceCloseOrchestrator:
    """請求書の締め処理のオーケストレーター"""

    def __init__(
        self,
        store: InvoiceStore,
        inventory: InventoryGateway,
        publisher: EventPublisher,
        locks: CloseLocks,
    ):
        self.store = store
        self.inventory = inventory
        self.publisher = publisher
        self.locks = locks

    async def execute(self, invoice_id: str) -> Invoice:
        # 存在しない ID のためにロックは作らない
        self.store.get(invoice_id)

        async with self.locks.for_invoice(invoice_id):
            # ── Step 1-2: 読み込みと状態の事前確認 ──────
            invoice = self.store.get(invoice_id)
            if not invoice.is_open:
                raise AlreadyClosed(invoice_id)

            # ── Step 3: 在庫の引き当て ──────────────────
            try:
                outcomes = await self.inventory.reserve(invoice.items, reservation_id=invoice.id)
            except ReservationUnavailable as e:
                logger.warning("Invoice #%d not closed: %s", invoice.number, e.message)
                await self._publish_failure(invoice, e.message, [])
                raise

            denied = [o for o in outcomes if not o.success]
            if denied:
                error = ReservationDenied(invoice.id, outcomes)
                logger.warning(
                    "Invoice #%d not closed: %d of %d items denied (%d already reserved)",
                    invoice.number, len(denied), len(outcomes), len(outcomes) - len(denied),
                )
                await self._publish_failure(
                    invoice, error.message, [o.product_id for o in denied]
                )
                raise error

            # ── Step 4: 締め(ストアのロックの中で状態を再確認)──
            closed = self.store.close(invoice_id, datetime.now(timezone.utc))

        logger.info("Invoice closed: #%d %s", closed.number, closed.id)
        await self.publisher.publish(
            InvoiceClosed(
                invoice_id=closed.id,
                number=closed.number,
                timestamp=closed.closed_at,
            )
        )
        return closed

    async def _publish_failure(
        self, invoice: Invoice, reason: str, failed_products: list[str]
    ) -> None:
        await self.publisher.publish(
            InvoiceCloseFailed(
                invoice_id=invoice.id,
                number=invoice.number,
                reason=reason,
                failed_products=failed_products,
                timestamp=datetime.now(timezone.utc),
            )
        )
