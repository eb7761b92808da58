"""
Invoice Service — FastAPI エントリーポイント

請求書(Invoice)の作成と締め(「印刷」)を行うサービス。
締め処理では Inventory Service を呼び出して在庫を引き当てる。
状態はメモリ上のみ(再起動で空に戻り、番号も 1 から振り直される)。
"""

import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import commands, queries
from .errors import InvoiceError
from .inventory_client import InventoryClient
from .orchestrator import CloseLocks, InvoiceCloseOrchestrator
from .publisher import EventPublisher
from .store import InvoiceStore

INVENTORY_SERVICE_URL = os.environ.get("INVENTORY_SERVICE_URL", "http://localhost:8081")
INVENTORY_TIMEOUT_SECONDS = float(os.environ.get("INVENTORY_TIMEOUT_SECONDS", "10"))
REDIS_URL = os.environ.get("REDIS_URL")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

store = InvoiceStore()
inventory = InventoryClient(INVENTORY_SERVICE_URL, timeout=INVENTORY_TIMEOUT_SECONDS)
close_locks = CloseLocks()
publisher = EventPublisher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global publisher
    redis_pool = None
    if REDIS_URL:
        redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
        publisher = EventPublisher(redis_pool)
        logger.info("Publishing invoice events to %s", REDIS_URL)
    logger.info("Inventory Service URL: %s", INVENTORY_SERVICE_URL)
    yield
    if redis_pool is not None:
        await redis_pool.aclose()


app = FastAPI(title="Invoice Service", lifespan=lifespan)


@app.exception_handler(InvoiceError)
async def handle_invoice_error(request: Request, exc: InvoiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Request Models ───────────────────────────────


class InvoiceItemRequest(BaseModel):
    product_id: str
    quantity: int


class CreateInvoiceRequest(BaseModel):
    items: list[InvoiceItemRequest] = Field(default_factory=list)


# ── Command Endpoints (Write 側) ─────────────────


@app.post("/commands/invoices", status_code=201)
async def cmd_create_invoice(req: CreateInvoiceRequest):
    """請求書作成コマンド"""
    invoice = await commands.create_invoice(
        store,
        inventory,
        publisher,
        [(item.product_id, item.quantity) for item in req.items],
    )
    return queries.to_dict(invoice)


@app.post("/commands/invoices/{invoice_id}/close")
@app.post("/commands/invoices/{invoice_id}/print")
async def cmd_close_invoice(invoice_id: str):
    """
    請求書の締め(「印刷」)コマンド

    失敗した場合、請求書は OPEN のまま残る。
    同じ請求書の締め直しは、適用済みの明細を二重に引き当てない。
    """
    orchestrator = InvoiceCloseOrchestrator(store, inventory, publisher, close_locks)
    invoice = await orchestrator.execute(invoice_id)
    return queries.to_dict(invoice)


# ── Query Endpoints (Read 側) ────────────────────


@app.get("/queries/invoices")
async def query_list_invoices():
    """全請求書を取得"""
    return queries.list_invoices(store)


@app.get("/queries/invoices/{invoice_id}")
async def query_get_invoice(invoice_id: str):
    """指定請求書を取得"""
    return queries.get_invoice(store, invoice_id)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "invoice-service"}
