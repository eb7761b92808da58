"""
Invoice Service — 請求書ストア (Invoice Store)

請求書をメモリ上に保持する。採番(連番)もここで行う。

採番と保存は同じロックの中で行うため、同時に作成しても番号は重複せず、
番号の順番は作成順と一致する。ロックはメモリ上の操作の間だけ保持し、
ネットワーク呼び出しをまたいで保持することはない。
"""

import copy
import threading
from datetime import datetime
from uuid import uuid4

from .aggregate import Invoice, InvoiceLineItem
from .errors import InvoiceNotFound


class InvoiceStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._invoices: dict[str, Invoice] = {}
        self._last_number = 0

    def create(self, items: list[InvoiceLineItem]) -> Invoice:
        """次の番号を割り当てて OPEN の請求書を保存する。"""
        with self._lock:
            self._last_number += 1
            invoice = Invoice(str(uuid4()), self._last_number, items)
            self._invoices[invoice.id] = invoice
            return copy.copy(invoice)

    def get(self, invoice_id: str) -> Invoice:
        with self._lock:
            invoice = self._invoices.get(invoice_id)
            if invoice is None:
                raise InvoiceNotFound(invoice_id)
            return copy.copy(invoice)

    def list(self) -> list[Invoice]:
        with self._lock:
            invoices = [copy.copy(i) for i in self._invoices.values()]
        return sorted(invoices, key=lambda i: i.number)

    def close(self, invoice_id: str, now: datetime | None = None) -> Invoice:
        """
        OPEN → CLOSED の compare-and-swap。

        ロックの中で状態を再確認し、既に CLOSED なら AlreadyClosed を送出する。
        """
        with self._lock:
            invoice = self._invoices.get(invoice_id)
            if invoice is None:
                raise InvoiceNotFound(invoice_id)
            invoice.close(now)
            return copy.copy(invoice)
