import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditFields:
    """Who created / last touched a document. Names are snapshotted at write time."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    updated_by_name: Mapped[Optional[str]] = mapped_column(String(255))


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="Staff")  # Admin|Staff
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Vehicle(AuditFields, Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Case(AuditFields, Base):
    __tablename__ = "cases"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False, index=True)


class ModuleBag(AuditFields, Base):
    __tablename__ = "module_bags"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    case_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("cases.id"), nullable=False, index=True)


class Item(AuditFields, Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    target_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    module_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("module_bags.id"), nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    batches = relationship(
        "Batch",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="Batch.created_at",
    )


class Batch(Base):
    __tablename__ = "batches"

    id: Mapped[uuid.UUID] = uuid_pk()
    item_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiration_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    item = relationship("Item", back_populates="batches")


class InventoryCheck(Base):
    __tablename__ = "inventory_checks"

    id: Mapped[uuid.UUID] = uuid_pk()
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    checked_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    checked_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # [{item_name, batch_expiration, quantity_before, quantity_after, is_expired}]
    items: Mapped[list] = mapped_column(JSON, default=list)


class AppSetting(Base):
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
