# backend/schemas/stock.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.common import CamelModel


# Schema for an admin stock correction of one variant
class StockAdjustment(CamelModel):
    variant_id: int
    qty: int = Field(alias="quantityChange")
    reason: Optional[str] = None


# Schema for returning stock movement details
class StockMovementResponse(CamelModel):
    id: int
    variant_id: int
    qty: int
    type: str
    reason: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    stock_quantity: int
