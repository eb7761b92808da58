"""
Inventory Service — 商品集約 (Product Aggregate)

商品の在庫数(balance)を保持する。balance は決して負にならない。
引き当て(reserve)は在庫数を直接減らす — 取り消しはない。
"""

from datetime import datetime, timezone

from .errors import InsufficientBalance, InvalidProduct, InvalidQuantity


class Product:
    def __init__(
        self,
        id: str,
        code: str,
        description: str,
        balance: int,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        self.id = id
        self.code = code
        self.description = description
        self.balance = balance
        self.created_at = created_at or now
        self.updated_at = updated_at or now

    def validate(self) -> None:
        if not self.code:
            raise InvalidProduct("Product code is required", field="code")
        if not self.description:
            raise InvalidProduct("Product description is required", field="description")
        if self.balance < 0:
            raise InvalidProduct("Balance must not be negative", field="balance")

    def can_reserve(self, quantity: int) -> bool:
        return 0 < quantity <= self.balance

    def reserve(self, quantity: int) -> int:
        """在庫を quantity だけ減らし、新しい在庫数を返す。"""
        if quantity <= 0:
            raise InvalidQuantity(quantity)
        if not self.can_reserve(quantity):
            raise InsufficientBalance(self.id, quantity, self.balance)
        self.balance -= quantity
        self.updated_at = datetime.now(timezone.utc)
        return self.balance
