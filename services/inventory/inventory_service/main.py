"""
Inventory Service — FastAPI エントリーポイント

在庫管理サービス。商品ごとの在庫数を保持する唯一の権限者。
状態はメモリ上のみ(再起動で空に戻る)。
"""

import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import commands, queries
from .errors import InventoryError
from .ledger import BalanceLedger
from .publisher import EventPublisher

REDIS_URL = os.environ.get("REDIS_URL")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ledger = BalanceLedger()
publisher = EventPublisher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global publisher
    redis_pool = None
    if REDIS_URL:
        redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
        publisher = EventPublisher(redis_pool)
        logger.info("Publishing inventory events to %s", REDIS_URL)
    yield
    if redis_pool is not None:
        await redis_pool.aclose()


app = FastAPI(title="Inventory Service", lifespan=lifespan)


@app.exception_handler(InventoryError)
async def handle_inventory_error(request: Request, exc: InventoryError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Request Models ───────────────────────────────


class ProductRequest(BaseModel):
    code: str
    description: str
    balance: int


class ReserveItem(BaseModel):
    product_id: str
    quantity: int


class ReserveBatchRequest(BaseModel):
    reservation_id: str | None = None
    items: list[ReserveItem] = Field(default_factory=list)


# ── Command Endpoints (Write 側) ─────────────────


@app.post("/commands/products", status_code=201)
async def cmd_create_product(req: ProductRequest):
    """商品登録コマンド"""
    product = await commands.create_product(
        ledger, publisher, req.code, req.description, req.balance
    )
    return queries.to_dict(product)


@app.post("/commands/products/reserve")
async def cmd_reserve_batch(req: ReserveBatchRequest):
    """
    バッチ引き当てコマンド(請求サービスから呼ばれる)

    明細ごとの失敗があっても 200 を返す。結果は入力と同じ順番。
    """
    return await commands.reserve_batch(
        ledger,
        publisher,
        [(item.product_id, item.quantity) for item in req.items],
        reservation_id=req.reservation_id,
    )


@app.put("/commands/products/{product_id}")
async def cmd_update_product(product_id: str, req: ProductRequest):
    """商品更新コマンド"""
    product = await commands.update_product(
        ledger, publisher, product_id, req.code, req.description, req.balance
    )
    return queries.to_dict(product)


@app.delete("/commands/products/{product_id}")
async def cmd_delete_product(product_id: str):
    """商品削除コマンド"""
    product = await commands.delete_product(ledger, publisher, product_id)
    return {"id": product.id, "deleted": True}


# ── Query Endpoints (Read 側) ────────────────────


@app.get("/queries/products")
async def query_list_products():
    """全商品を取得"""
    return queries.list_products(ledger)


@app.get("/queries/products/by-code/{code}")
async def query_get_product_by_code(code: str):
    """商品コードで商品を取得"""
    return queries.get_product_by_code(ledger, code)


@app.get("/queries/products/{product_id}")
async def query_get_product(product_id: str):
    """指定商品を取得"""
    return queries.get_product(ledger, product_id)


@app.get("/queries/products/{product_id}/availability")
async def query_check_availability(product_id: str, quantity: int = Query(...)):
    """在庫が足りるかを確認する(参考値)"""
    return queries.check_availability(ledger, product_id, quantity)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "inventory-service"}
