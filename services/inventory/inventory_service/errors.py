"""
Inventory Service — ドメインエラー

すべてのエラーは InventoryError を継承し、境界(FastAPI の例外ハンドラ)で
{"error": kind, "message": ..., "details": {...}} の形に変換される。
"""


class InventoryError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


# ── カテゴリ ─────────────────────────────────────


class ValidationError(InventoryError):
    kind = "validation"
    status_code = 400


class NotFoundError(InventoryError):
    kind = "not_found"
    status_code = 404


class ConflictError(InventoryError):
    kind = "conflict"
    status_code = 409


class BusinessDenialError(InventoryError):
    kind = "business_denial"
    status_code = 409


# ── 具体的なエラー ───────────────────────────────


class InvalidProduct(ValidationError):
    pass


class InvalidQuantity(ValidationError):
    def __init__(self, quantity: int) -> None:
        super().__init__(f"Invalid quantity: {quantity}", quantity=quantity)


class ProductNotFound(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__("Product not found", product_id=product_id)


class DuplicateCode(ConflictError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Product code already exists: {code}", code=code)


class ReservationKeyConflict(ConflictError):
    """同じ予約キーが別の商品・数量で再利用された"""

    def __init__(self, key: str) -> None:
        super().__init__(f"Reservation key reused for a different item: {key}", key=key)


class InsufficientBalance(BusinessDenialError):
    def __init__(self, product_id: str, requested: int, balance: int) -> None:
        super().__init__(
            f"Insufficient balance: requested={requested}, available={balance}",
            product_id=product_id,
            requested=requested,
            balance=balance,
        )
