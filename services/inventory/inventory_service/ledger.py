"""
Inventory Service — 在庫台帳 (Balance Ledger)

商品ごとの在庫数をメモリ上に保持するストア。
内部の dict は外に出さず、読み取りは常にコピーを返す。

ロックの規律:
  - ストアロック: products / codes / 予約キーの dict と各商品の中身を守る(短時間のみ保持)
  - 商品ロック: 商品ごとの read-check-write(引き当て・更新・削除)を直列化する
  取得順序は常に 商品ロック → ストアロック。
  商品の中身はストアロックの中でだけ書き換えるので、読み取りが中途半端な状態を見ることはない。
"""

import copy
import threading
from datetime import datetime, timezone

from .aggregate import Product
from .errors import DuplicateCode, ProductNotFound, ReservationKeyConflict


class BalanceLedger:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: dict[str, Product] = {}
        self._codes: dict[str, str] = {}
        self._product_locks: dict[str, threading.Lock] = {}
        # 予約キー → (product_id, quantity)
        self._applied: dict[str, tuple[str, int]] = {}

    def _product_lock(self, product_id: str) -> threading.Lock:
        with self._lock:
            lock = self._product_locks.get(product_id)
            if lock is None:
                raise ProductNotFound(product_id)
            return lock

    def _require(self, product_id: str) -> Product:
        # ストアロック保持中に呼ぶこと
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    # ── 読み取り ─────────────────────────────────

    def get(self, product_id: str) -> Product:
        with self._lock:
            return copy.copy(self._require(product_id))

    def get_by_code(self, code: str) -> Product:
        with self._lock:
            product_id = self._codes.get(code)
            if product_id is None:
                raise ProductNotFound(code)
            return copy.copy(self._products[product_id])

    def list(self) -> list[Product]:
        with self._lock:
            products = [copy.copy(p) for p in self._products.values()]
        return sorted(products, key=lambda p: p.code)

    # ── 書き込み ─────────────────────────────────

    def add(self, product: Product) -> Product:
        with self._lock:
            if product.code in self._codes:
                raise DuplicateCode(product.code)
            stored = copy.copy(product)
            self._products[stored.id] = stored
            self._codes[stored.code] = stored.id
            self._product_locks[stored.id] = threading.Lock()
            return copy.copy(stored)

    def update(
        self, product_id: str, code: str, description: str, balance: int
    ) -> Product:
        """
        商品を更新する。コードの変更時は重複を確認する。
        検証は呼び出し側(commands)で済ませておくこと。
        """
        with self._product_lock(product_id):
            with self._lock:
                product = self._require(product_id)
                if code != product.code:
                    if code in self._codes:
                        raise DuplicateCode(code)
                    del self._codes[product.code]
                    self._codes[code] = product_id
                product.code = code
                product.description = description
                product.balance = balance
                product.updated_at = datetime.now(timezone.utc)
                return copy.copy(product)

    def delete(self, product_id: str) -> Product:
        with self._product_lock(product_id):
            with self._lock:
                product = self._products.pop(product_id, None)
                if product is None:
                    raise ProductNotFound(product_id)
                del self._codes[product.code]
                del self._product_locks[product_id]
                return product

    def debit(
        self, product_id: str, quantity: int, key: str | None = None
    ) -> tuple[int | None, bool]:
        """
        在庫を引き当てる(原子的な check-and-debit)。

        key を指定すると冪等になる:
        同じキーが同じ商品・数量で既に適用済みなら在庫は減らさず、
        (現在の在庫数, True) を返す。適用済みの商品がその後削除されていても
        再送は成功扱いで、在庫数は None になる。

        Returns:
            (new_balance, replayed)
        """
        if key is not None:
            with self._lock:
                replayed = self._replay(key, product_id, quantity)
            if replayed is not None:
                return replayed

        with self._product_lock(product_id):
            with self._lock:
                product = self._require(product_id)
                if key is not None:
                    replayed = self._replay(key, product_id, quantity)
                    if replayed is not None:
                        return replayed
                new_balance = product.reserve(quantity)
                if key is not None:
                    self._applied[key] = (product_id, quantity)
                return new_balance, False

    def _replay(
        self, key: str, product_id: str, quantity: int
    ) -> tuple[int | None, bool] | None:
        # ストアロック保持中に呼ぶこと
        applied = self._applied.get(key)
        if applied is None:
            return None
        if applied != (product_id, quantity):
            raise ReservationKeyConflict(key)
        product = self._products.get(product_id)
        return (product.balance if product is not None else None), True
