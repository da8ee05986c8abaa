import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .inventory import ItemResponse


class NamedBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class VehicleCreate(NamedBase):
    pass


class VehicleResponse(NamedBase):
    id: uuid.UUID
    created_at: Optional[datetime] = None
    created_by_name: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by_name: Optional[str] = None

    class Config:
        from_attributes = True


class CaseCreate(NamedBase):
    vehicle_id: uuid.UUID


class CaseUpdate(NamedBase):
    pass


class CaseResponse(VehicleResponse):
    vehicle_id: uuid.UUID


class ModuleBagCreate(NamedBase):
    case_id: uuid.UUID


class ModuleBagUpdate(NamedBase):
    pass


class ModuleBagResponse(VehicleResponse):
    case_id: uuid.UUID


class ModuleBagTree(BaseModel):
    id: uuid.UUID
    name: str
    total_quantity: int
    items: List[ItemResponse]


class CaseTree(BaseModel):
    id: uuid.UUID
    name: str
    total_quantity: int
    modules: List[ModuleBagTree]


class VehicleTree(BaseModel):
    id: uuid.UUID
    name: str
    total_quantity: int
    cases: List[CaseTree]


class DeleteResponse(BaseModel):
    message: str
    deleted: dict
