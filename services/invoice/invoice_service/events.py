"""
Invoice Service — イベント定義

請求書ドメインで発生するイベント。invoice_events チャネルに発行される。
"""

from datetime import datetime

from pydantic import BaseModel


class InvoiceLine(BaseModel):
    product_id: str
    product_code: str
    quantity: int


class InvoiceCreated(BaseModel):
    """請求書が作成された(OPEN)"""
    invoice_id: str
    number: int
    items: list[InvoiceLine]
    timestamp: datetime


class InvoiceClosed(BaseModel):
    """請求書が締められた(在庫の引き当てがすべて成功)"""
    invoice_id: str
    number: int
    timestamp: datetime


class InvoiceCloseFailed(BaseModel):
    """請求書の締めに失敗した(請求書は OPEN のまま)"""
    invoice_id: str
    number: int
    reason: str
    failed_products: list[str]
    timestamp: datetime
