import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class CountedBatch(BaseModel):
    batch_id: uuid.UUID
    actual_quantity: int = Field(ge=0)


class CheckedItem(BaseModel):
    item_id: uuid.UUID
    reviewed: bool = False
    batches: List[CountedBatch] = Field(default_factory=list)


class InventoryCheckSubmit(BaseModel):
    items: List[CheckedItem] = Field(default_factory=list)


class InventoryCheckItemResponse(BaseModel):
    item_name: str
    batch_expiration: str
    quantity_before: int
    quantity_after: int
    is_expired: bool


class InventoryCheckResponse(BaseModel):
    id: uuid.UUID
    checked_at: datetime
    checked_by_id: str
    checked_by_name: str
    items: List[InventoryCheckItemResponse]

    class Config:
        from_attributes = True
