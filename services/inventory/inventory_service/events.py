"""
Inventory Service — イベント定義

在庫ドメインで発生するイベント。inventory_events チャネルに発行される。
"""

from datetime import datetime

from pydantic import BaseModel


class ProductCreated(BaseModel):
    """商品が登録された"""
    product_id: str
    code: str
    description: str
    balance: int
    timestamp: datetime


class ProductUpdated(BaseModel):
    """商品が更新された(コード・説明・在庫数)"""
    product_id: str
    code: str
    description: str
    balance: int
    timestamp: datetime


class ProductDeleted(BaseModel):
    """商品が削除された"""
    product_id: str
    code: str
    timestamp: datetime


class StockReserved(BaseModel):
    """在庫が引き当てられた(replayed=True は適用済み予約の再送)"""
    product_id: str
    reservation_key: str | None
    quantity: int
    new_balance: int | None
    replayed: bool
    timestamp: datetime


class StockReservationFailed(BaseModel):
    """在庫引き当てが失敗した"""
    product_id: str
    reservation_key: str | None
    quantity_requested: int
    reason: str
    timestamp: datetime
