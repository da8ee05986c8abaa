"""
Push-style item snapshots for live views.

Writers publish a full, session-independent snapshot of all items after every
change; each subscriber re-runs aggregation and classification on what it
receives. There is no diffing.
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session, selectinload

from ..models.models import Item


log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BatchSnapshot:
    quantity: int
    expiration_date: Optional[datetime]
    delivery_date: Optional[datetime] = None
    id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class ItemSnapshot:
    id: uuid.UUID
    name: str
    barcode: Optional[str]
    target_quantity: int
    module_id: uuid.UUID
    notes: Optional[str] = None
    batches: List[BatchSnapshot] = field(default_factory=list)


Callback = Callable[[List[ItemSnapshot]], None]
Unsubscribe = Callable[[], None]


def snapshot_items(db: Session) -> List[ItemSnapshot]:
    items = db.query(Item).options(selectinload(Item.batches)).order_by(Item.name.asc()).all()
    return [
        ItemSnapshot(
            id=i.id,
            name=i.name,
            barcode=i.barcode,
            target_quantity=i.target_quantity,
            module_id=i.module_id,
            notes=i.notes,
            batches=[
                BatchSnapshot(id=b.id, quantity=b.quantity, expiration_date=b.expiration_date, delivery_date=b.delivery_date)
                for b in i.batches
            ],
        )
        for i in items
    ]


class InventoryFeed:
    def __init__(self) -> None:
        self._subscribers: Dict[int, Callback] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    def subscribe(self, callback: Callback) -> Unsubscribe:
        with self._lock:
            token = self._next_id
            self._next_id += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, snapshot: List[ItemSnapshot]) -> None:
        with self._lock:
            targets = list(self._subscribers.items())
        for token, callback in targets:
            try:
                callback(snapshot)
            except Exception as e:
                # best-effort per subscriber
                log.warning("feed_subscriber_failed", subscriber=token, error=str(e))

    def publish_from(self, db: Session) -> None:
        if self.subscriber_count:
            self.publish(snapshot_items(db))
