"""
Invoice Service — ドメインエラー

エラーの分類:
  ValidationError        入力が不正(再試行しても無駄)
  NotFoundError          請求書・商品が存在しない
  ConflictError          既に締められた請求書など
  RemoteUnavailableError 在庫サービスへの通信自体が失敗した(「後で再試行」)
  BusinessDenialError    通信は成功したが、在庫サービスが明細を拒否した

ReservationFailed は締め処理の失敗で、2 種類ある:
  ReservationUnavailable (通信失敗) と ReservationDenied (明細ごとの拒否)。
明細ごとの結果を持つのは ReservationDenied だけ。
"""


class InvoiceError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


# ── カテゴリ ─────────────────────────────────────


class ValidationError(InvoiceError):
    kind = "validation"
    status_code = 400


class NotFoundError(InvoiceError):
    kind = "not_found"
    status_code = 404


class ConflictError(InvoiceError):
    kind = "conflict"
    status_code = 409


class RemoteUnavailableError(InvoiceError):
    kind = "remote_unavailable"
    status_code = 503


class BusinessDenialError(InvoiceError):
    kind = "business_denial"
    status_code = 409


# ── 作成時のエラー ───────────────────────────────


class NoItems(ValidationError):
    def __init__(self) -> None:
        super().__init__("Invoice must have at least one item")


class InvalidQuantity(ValidationError):
    def __init__(self, product_id: str, quantity: int) -> None:
        super().__init__(
            f"Invalid quantity {quantity} for product {product_id!r}",
            product_id=product_id,
            quantity=quantity,
        )


class ProductLookupFailed(RemoteUnavailableError):
    def __init__(self, product_id: str, reason: str) -> None:
        super().__init__(
            f"Could not look up product {product_id}: {reason}",
            product_id=product_id,
        )


class ProductNotFound(ProductLookupFailed, NotFoundError):
    kind = NotFoundError.kind
    status_code = NotFoundError.status_code

    def __init__(self, product_id: str) -> None:
        super().__init__(product_id, "product not found")


class InsufficientStock(BusinessDenialError):
    def __init__(self, product_id: str, code: str, requested: int, balance: int) -> None:
        super().__init__(
            f"Insufficient stock for {code}: requested={requested}, available={balance}",
            product_id=product_id,
            product_code=code,
            requested=requested,
            balance=balance,
        )


# ── 締め処理のエラー ─────────────────────────────


class InvoiceNotFound(NotFoundError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__("Invoice not found", invoice_id=invoice_id)


class AlreadyClosed(ConflictError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__("Invoice is already closed", invoice_id=invoice_id)


class ReservationFailed(InvoiceError):
    pass


class ReservationUnavailable(ReservationFailed, RemoteUnavailableError):
    """在庫サービスとの通信そのものが失敗した(タイムアウト・接続拒否・不正なレスポンス)"""

    kind = RemoteUnavailableError.kind
    status_code = RemoteUnavailableError.status_code

    def __init__(self, reason: str) -> None:
        super().__init__(f"Inventory service unavailable: {reason}")


class ReservationDenied(ReservationFailed, BusinessDenialError):
    """在庫サービスが 1 件以上の明細を拒否した"""

    kind = BusinessDenialError.kind
    status_code = BusinessDenialError.status_code

    def __init__(self, invoice_id: str, outcomes: list) -> None:
        denied = [o for o in outcomes if not o.success]
        super().__init__(
            "Stock reservation failed for "
            + ", ".join(f"{o.product_id} ({o.error_message})" for o in denied),
            invoice_id=invoice_id,
            outcomes=[o.model_dump() for o in outcomes],
        )
        self.outcomes = outcomes
