"""
Inventory reports grouped vehicle -> case -> module bag -> items.

Items whose module bag, case or vehicle cannot be found are left out of the
grouping without raising. Summary figures always cover the full item list,
not just the items that survived the report filter.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .aggregation import as_utc, earliest_expiration, restock_needed, total_quantity
from .status import horizon_end


class ReportType(str, enum.Enum):
    full = "full"
    restock = "restock"
    expiring = "expiring"


@dataclass
class ModuleGroup:
    module: object
    items: List[object] = field(default_factory=list)


@dataclass
class CaseGroup:
    case: object
    modules: Dict[object, ModuleGroup] = field(default_factory=dict)


@dataclass
class VehicleGroup:
    vehicle: object
    cases: Dict[object, CaseGroup] = field(default_factory=dict)


@dataclass
class ReportSummary:
    total_items: int
    understocked_items: int
    total_restock_needed: int
    expiring_items: int


@dataclass
class Report:
    report_type: ReportType
    generated_at: datetime
    vehicles: Dict[object, VehicleGroup]
    summary: ReportSummary

    @property
    def is_empty(self) -> bool:
        return not self.vehicles


def is_understocked(item) -> bool:
    return total_quantity(item) < int(item.target_quantity or 0)


def expires_within_horizon(item, now: datetime) -> bool:
    earliest = earliest_expiration(item)
    return earliest is not None and earliest < horizon_end(now)


def filter_items(items: Iterable, report_type: ReportType, now: datetime) -> list:
    if report_type == ReportType.restock:
        return [i for i in items if is_understocked(i)]
    if report_type == ReportType.expiring:
        return [i for i in items if expires_within_horizon(i, now)]
    return list(items)


def summarize(items: List, now: datetime) -> ReportSummary:
    return ReportSummary(
        total_items=len(items),
        understocked_items=sum(1 for i in items if is_understocked(i)),
        total_restock_needed=sum(restock_needed(i) for i in items),
        expiring_items=sum(1 for i in items if expires_within_horizon(i, now)),
    )


def build_report(
    items: Iterable,
    module_bags: Iterable,
    cases: Iterable,
    vehicles: Iterable,
    report_type: ReportType,
    now: datetime,
) -> Report:
    items = list(items)
    now = as_utc(now)
    module_map = {m.id: m for m in module_bags}
    case_map = {c.id: c for c in cases}
    vehicle_map = {v.id: v for v in vehicles}

    grouped: Dict[object, VehicleGroup] = {}
    for item in filter_items(items, report_type, now):
        module = module_map.get(item.module_id)
        if module is None:
            continue
        case = case_map.get(module.case_id)
        if case is None:
            continue
        vehicle = vehicle_map.get(case.vehicle_id)
        if vehicle is None:
            continue

        vehicle_group = grouped.setdefault(vehicle.id, VehicleGroup(vehicle=vehicle))
        case_group = vehicle_group.cases.setdefault(case.id, CaseGroup(case=case))
        module_group = case_group.modules.setdefault(module.id, ModuleGroup(module=module))
        module_group.items.append(item)

    return Report(
        report_type=ReportType(report_type),
        generated_at=now,
        vehicles=grouped,
        summary=summarize(items, now),
    )


def _date_str(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d") if value else None


def report_to_dict(report: Report) -> dict:
    """Plain JSON shape of a report for API responses."""
    vehicles = []
    for vg in report.vehicles.values():
        cases = []
        for cg in vg.cases.values():
            modules = []
            for mg in cg.modules.values():
                modules.append({
                    "id": str(mg.module.id),
                    "name": mg.module.name,
                    "items": [
                        {
                            "id": str(i.id),
                            "name": i.name,
                            "quantity": total_quantity(i),
                            "target_quantity": i.target_quantity,
                            "restock_needed": restock_needed(i),
                            "earliest_expiration": _date_str(earliest_expiration(i)),
                        }
                        for i in mg.items
                    ],
                })
            cases.append({"id": str(cg.case.id), "name": cg.case.name, "modules": modules})
        vehicles.append({"id": str(vg.vehicle.id), "name": vg.vehicle.name, "cases": cases})

    s = report.summary
    return {
        "report_type": report.report_type.value,
        "generated_at": report.generated_at.isoformat(),
        "summary": {
            "total_items": s.total_items,
            "understocked_items": s.understocked_items,
            "total_restock_needed": s.total_restock_needed,
            "expiring_items": s.expiring_items,
        },
        "vehicles": vehicles,
    }
