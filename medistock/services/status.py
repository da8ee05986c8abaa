"""
Item status labels.

An item with any batch already past its expiration is reported as expired
and nothing else. Otherwise it may be expiring soon, and it is always one of
understocked / overstocked / fully stocked; "fully stocked" is only shown on
its own.
"""
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from .aggregation import as_utc, earliest_expiration, expiration_dates, total_quantity


# Shared by the status labels, the reports and the expiration notifier.
EXPIRY_HORIZON_DAYS = 42
EXPIRY_HORIZON = timedelta(days=EXPIRY_HORIZON_DAYS)


class ItemStatus(str, enum.Enum):
    expired = "expired"
    expiring_soon = "expiringSoon"
    understocked = "understocked"
    overstocked = "overstocked"
    fully_stocked = "fullyStocked"


STATUS_VARIANTS = {
    ItemStatus.expired: "destructive",
    ItemStatus.expiring_soon: "outline",
    ItemStatus.understocked: "destructive",
    ItemStatus.overstocked: "outline",
    ItemStatus.fully_stocked: "secondary",
}


@dataclass(frozen=True)
class StatusLabel:
    key: ItemStatus
    variant: str

    @classmethod
    def of(cls, key: ItemStatus) -> "StatusLabel":
        return cls(key=key, variant=STATUS_VARIANTS[key])


def horizon_end(now: datetime) -> datetime:
    return as_utc(now) + EXPIRY_HORIZON


def is_expired(item, now: datetime) -> bool:
    now = as_utc(now)
    return any(d < now for d in expiration_dates(item))


def is_expiring_soon(earliest: Optional[datetime], now: datetime) -> bool:
    return earliest is not None and as_utc(earliest) < horizon_end(now)


def classify(item, now: datetime) -> List[StatusLabel]:
    if is_expired(item, now):
        return [StatusLabel.of(ItemStatus.expired)]

    labels: List[StatusLabel] = []
    if is_expiring_soon(earliest_expiration(item), now):
        labels.append(StatusLabel.of(ItemStatus.expiring_soon))

    total = total_quantity(item)
    target = int(item.target_quantity or 0)
    if total < target:
        labels.append(StatusLabel.of(ItemStatus.understocked))
    elif total > target:
        labels.append(StatusLabel.of(ItemStatus.overstocked))
    else:
        labels.append(StatusLabel.of(ItemStatus.fully_stocked))

    if len(labels) > 1:
        labels = [label for label in labels if label.key != ItemStatus.fully_stocked]
    return labels


def status_keys(item, now: datetime) -> List[str]:
    return [label.key.value for label in classify(item, now)]
