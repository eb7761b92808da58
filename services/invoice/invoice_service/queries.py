"""
Invoice Service — クエリハンドラ (CQRS Read 側)
"""

from .aggregate import Invoice
from .store import InvoiceStore


def to_dict(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "number": invoice.number,
        "status": invoice.status,
        "items": [
            {
                "product_id": item.product_id,
                "product_code": item.product_code,
                "description": item.description,
                "quantity": item.quantity,
            }
            for item in invoice.items
        ],
        "created_at": invoice.created_at.isoformat(),
        "updated_at": invoice.updated_at.isoformat(),
        "closed_at": invoice.closed_at.isoformat() if invoice.closed_at else None,
    }


def get_invoice(store: InvoiceStore, invoice_id: str) -> dict:
    return to_dict(store.get(invoice_id))


def list_invoices(store: InvoiceStore) -> list[dict]:
    """全請求書を番号順に返す。"""
    return [to_dict(i) for i in store.list()]
