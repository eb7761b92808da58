"""
Invoice Service — コマンドハンドラ (CQRS Write 側)

請求書の作成。締め処理は orchestrator.py を参照。

作成時の在庫確認は参考値(advisory)にすぎない:
  その時点の在庫数を読むだけで引き当ては行わないので、
  締めるまでの間に在庫が変わる可能性がある。
"""

import logging

from .aggregate import Invoice, InvoiceLineItem
from .errors import InsufficientStock, InvalidQuantity, NoItems
from .events import InvoiceCreated, InvoiceLine
from .inventory_client import InventoryGateway
from .publisher import EventPublisher
from .store import InvoiceStore

logger = logging.getLogger(__name__)


async def create_invoice(
    store: InvoiceStore,
    inventory: InventoryGateway,
    publisher: EventPublisher,
    items: list[tuple[str, int]],
) -> Invoice:
    """
    請求書作成コマンド

    1. 明細が空でないこと、数量が正であることを確認(リモート呼び出しの前に)
    2. 明細ごとに在庫サービスから商品情報を取得
    3. 要求数量がその時点の在庫数を超えていれば拒否
    4. 商品コード・説明を明細にスナップショット
    5. 採番して OPEN で保存
    """
    if not items:
        raise NoItems()
    for product_id, quantity in items:
        if not product_id or quantity <= 0:
            raise InvalidQuantity(product_id, quantity)

    lines: list[InvoiceLineItem] = []
    for product_id, quantity in items:
        product = await inventory.get_product(product_id)
        if quantity > product.balance:
            logger.warning(
                "Insufficient stock for %s: requested=%d, available=%d",
                product.code, quantity, product.balance,
            )
            raise InsufficientStock(product.id, product.code, quantity, product.balance)
        lines.append(
            InvoiceLineItem(
                product_id=product.id,
                product_code=product.code,
                description=product.description,
                quantity=quantity,
            )
        )

    invoice = store.create(lines)
    logger.info("Invoice created: #%d %s (%d items)", invoice.number, invoice.id, len(lines))

    await publisher.publish(
        InvoiceCreated(
            invoice_id=invoice.id,
            number=invoice.number,
            items=[
                InvoiceLine(
                    product_id=line.product_id,
                    product_code=line.product_code,
                    quantity=line.quantity,
                )
                for line in invoice.items
            ],
            timestamp=invoice.created_at,
        )
    )
    return invoice
