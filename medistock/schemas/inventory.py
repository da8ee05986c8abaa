import re
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


_SHORT_DATE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{2})$")


def parse_input_date(v):
    """Accepts ISO dates and the short DD.MM.YY form used on printed packaging."""
    if v is None or isinstance(v, (date, datetime)):
        return v
    v = str(v).strip()
    if not v:
        return None
    m = _SHORT_DATE.match(v)
    if m:
        day, month, year = (int(x) for x in m.groups())
        try:
            return date(2000 + year, month, day)
        except ValueError:
            raise ValueError("Invalid date.")
    return v


def date_to_utc(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


class BatchCreate(BaseModel):
    quantity: int = Field(ge=1)
    expiration_date: Optional[date] = None
    delivery_date: Optional[date] = None

    @field_validator("expiration_date", "delivery_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_input_date(v)

    @field_validator("expiration_date")
    @classmethod
    def not_in_past(cls, v):
        if v is not None and v < datetime.now(timezone.utc).date():
            raise ValueError("Expiration date cannot be in the past.")
        return v


class BatchResponse(BaseModel):
    id: uuid.UUID
    quantity: int
    expiration_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusLabelResponse(BaseModel):
    key: str
    variant: str


class ItemBase(BaseModel):
    name: str = Field(min_length=1)
    barcode: Optional[str] = None
    target_quantity: int = Field(default=0, ge=0)
    module_id: uuid.UUID
    notes: Optional[str] = None

    @field_validator("barcode", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ItemCreate(ItemBase):
    batches: List[BatchCreate] = Field(default_factory=list)


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    barcode: Optional[str] = None
    target_quantity: Optional[int] = Field(default=None, ge=0)
    module_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ItemResponse(ItemBase):
    id: uuid.UUID
    batches: List[BatchResponse]
    quantity: int
    earliest_expiration: Optional[datetime] = None
    statuses: List[StatusLabelResponse]
    created_at: Optional[datetime] = None
    created_by_name: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by_name: Optional[str] = None


class DashboardVehicle(BaseModel):
    id: uuid.UUID
    name: str
    total_quantity: int


class DashboardResponse(BaseModel):
    total_vehicles: int
    total_items: int
    total_quantity: int
    understocked_items: int
    expiring_soon_items: int
    vehicles: List[DashboardVehicle]
