"""
Inventory Service — コマンドハンドラ (CQRS Write 側)

商品の登録・更新・削除と、請求サービスからのバッチ引き当てを処理する。

バッチ引き当ての注意点:
  各明細は独立かつ順番に処理される。複数明細をまとめた原子的トランザクションではない。
  3 件目が失敗しても 1 件目の引き当ては取り消されない(部分コミット)。
  呼び出し側は失敗を 1 件でも含むレスポンスを「部分的に適用済み」として扱うこと。
  reservation_id を渡すと明細ごとに予約キーが付き、再送しても二重に引き当てない。
"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from .aggregate import Product
from .errors import InventoryError, ProductNotFound
from .events import (
    ProductCreated,
    ProductDeleted,
    ProductUpdated,
    StockReservationFailed,
    StockReserved,
)
from .ledger import BalanceLedger
from .publisher import EventPublisher

logger = logging.getLogger(__name__)


async def create_product(
    ledger: BalanceLedger,
    publisher: EventPublisher,
    code: str,
    description: str,
    balance: int,
) -> Product:
    product = Product(str(uuid4()), code, description, balance)
    product.validate()
    stored = ledger.add(product)
    logger.info("Product created: %s (%s) balance=%d", stored.id, stored.code, stored.balance)

    await publisher.publish(
        ProductCreated(
            product_id=stored.id,
            code=stored.code,
            description=stored.description,
            balance=stored.balance,
            timestamp=stored.created_at,
        )
    )
    return stored


async def update_product(
    ledger: BalanceLedger,
    publisher: EventPublisher,
    product_id: str,
    code: str,
    description: str,
    balance: int,
) -> Product:
    # 検証だけ先に行う(台帳のロックの外で)
    Product(product_id, code, description, balance).validate()
    updated = ledger.update(product_id, code, description, balance)
    logger.info("Product updated: %s (%s) balance=%d", updated.id, updated.code, updated.balance)

    await publisher.publish(
        ProductUpdated(
            product_id=updated.id,
            code=updated.code,
            description=updated.description,
            balance=updated.balance,
            timestamp=updated.updated_at,
        )
    )
    return updated


async def delete_product(
    ledger: BalanceLedger,
    publisher: EventPublisher,
    product_id: str,
) -> Product:
    deleted = ledger.delete(product_id)
    logger.info("Product deleted: %s (%s)", deleted.id, deleted.code)

    await publisher.publish(
        ProductDeleted(
            product_id=deleted.id,
            code=deleted.code,
            timestamp=datetime.now(timezone.utc),
        )
    )
    return deleted


async def reserve_batch(
    ledger: BalanceLedger,
    publisher: EventPublisher,
    items: list[tuple[str, int]],
    reservation_id: str | None = None,
) -> list[dict]:
    """
    バッチ引き当てコマンド

    入力 1 件につき結果 1 件を、入力と同じ順番で返す。
    明細ごとの失敗はエラーではなく、success=False の結果として返す。
    """
    outcomes: list[dict] = []
    events = []
    now = datetime.now(timezone.utc)

    for position, (product_id, quantity) in enumerate(items):
        key = f"{reservation_id}:{position}" if reservation_id else None
        try:
            new_balance, replayed = ledger.debit(product_id, quantity, key=key)
        except InventoryError as e:
            outcomes.append(
                {
                    "success": False,
                    "product_id": product_id,
                    "new_balance": _current_balance(ledger, product_id),
                    "error_message": e.message,
                    "replayed": False,
                }
            )
            events.append(
                StockReservationFailed(
                    product_id=product_id,
                    reservation_key=key,
                    quantity_requested=quantity,
                    reason=e.message,
                    timestamp=now,
                )
            )
            continue

        outcomes.append(
            {
                "success": True,
                "product_id": product_id,
                "new_balance": new_balance,
                "error_message": None,
                "replayed": replayed,
            }
        )
        events.append(
            StockReserved(
                product_id=product_id,
                reservation_key=key,
                quantity=quantity,
                new_balance=new_balance,
                replayed=replayed,
                timestamp=now,
            )
        )

    failed = sum(1 for o in outcomes if not o["success"])
    if failed:
        logger.warning(
            "Batch reservation %s: %d of %d items failed",
            reservation_id, failed, len(outcomes),
        )
    else:
        logger.info("Batch reservation %s: %d items reserved", reservation_id, len(outcomes))

    # イベント発行は台帳の変更がすべて終わってから
    for event in events:
        await publisher.publish(event)

    return outcomes


def _current_balance(ledger: BalanceLedger, product_id: str) -> int | None:
    try:
        return ledger.get(product_id).balance
    except ProductNotFound:
        return None
