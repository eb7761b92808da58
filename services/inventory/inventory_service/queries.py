"""
Inventory Service — クエリハンドラ (CQRS Read 側)
"""

from .aggregate import Product
from .ledger import BalanceLedger


def to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "code": product.code,
        "description": product.description,
        "balance": product.balance,
        "created_at": product.created_at.isoformat(),
        "updated_at": product.updated_at.isoformat(),
    }


def get_product(ledger: BalanceLedger, product_id: str) -> dict:
    return to_dict(ledger.get(product_id))


def get_product_by_code(ledger: BalanceLedger, code: str) -> dict:
    return to_dict(ledger.get_by_code(code))


def list_products(ledger: BalanceLedger) -> list[dict]:
    return [to_dict(p) for p in ledger.list()]


def check_availability(ledger: BalanceLedger, product_id: str, quantity: int) -> dict:
    """
    在庫が足りるかを確認する(引き当てはしない)。
    参考値にすぎず、直後に在庫が変わる可能性がある。
    """
    product = ledger.get(product_id)
    return {
        "product_id": product.id,
        "quantity": quantity,
        "balance": product.balance,
        "available": product.can_reserve(quantity),
    }
