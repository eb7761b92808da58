"""
Invoice Service — 請求書集約 (Invoice Aggregate)

状態遷移:
    OPEN → CLOSED  (締め = 「印刷」。在庫の引き当てがすべて成功した場合のみ)

CLOSED は終端状態。請求書は削除されない。
明細の商品コード・説明は作成時点のスナップショットで、
後で商品名が変わっても締め済みの請求書には影響しない。
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import AlreadyClosed

OPEN = "OPEN"
CLOSED = "CLOSED"


@dataclass(frozen=True)
class InvoiceLineItem:
    product_id: str
    product_code: str
    description: str
    quantity: int


class Invoice:
    def __init__(
        self,
        id: str,
        number: int,
        items: list[InvoiceLineItem],
        created_at: datetime | None = None,
    ) -> None:
        now = created_at or datetime.now(timezone.utc)
        self.id = id
        self.number = number
        self.status: str = OPEN
        self.items: tuple[InvoiceLineItem, ...] = tuple(items)
        self.created_at = now
        self.updated_at = now
        self.closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == CLOSED

    def close(self, now: datetime | None = None) -> None:
        """OPEN → CLOSED。closed_at はここで一度だけ設定される。"""
        if not self.is_open:
            raise AlreadyClosed(self.id)
        now = now or datetime.now(timezone.utc)
        self.status = CLOSED
        self.closed_at = now
        self.updated_at = now
