import uuid
from datetime import timedelta

import pytest

from medistock.models.models import Batch, Case, Item, ModuleBag, Vehicle
from medistock.services import cascade
from medistock.services.cascade import CascadeDeleteError, NotFoundError


def _counts(db):
    return {
        "vehicles": db.query(Vehicle).count(),
        "cases": db.query(Case).count(),
        "module_bags": db.query(ModuleBag).count(),
        "items": db.query(Item).count(),
        "batches": db.query(Batch).count(),
    }


@pytest.fixture
def stocked(db, hierarchy, add_item, now):
    second = ModuleBag(name="Circulation", case_id=hierarchy.case.id)
    db.add(second)
    db.commit()
    add_item("Tube", batches=[(2, now + timedelta(days=30))])
    add_item("Gauze", batches=[(5, None), (1, None)], module=second)
    return hierarchy


def test_delete_vehicle_removes_everything_below(db, stocked):
    result = cascade.delete_vehicle(db, stocked.vehicle.id)
    assert result.as_dict() == {"vehicles": 1, "cases": 1, "module_bags": 2, "items": 2}
    assert _counts(db) == {"vehicles": 0, "cases": 0, "module_bags": 0, "items": 0, "batches": 0}


def test_delete_module_bag_keeps_siblings(db, stocked):
    result = cascade.delete_module_bag(db, stocked.module.id)
    assert result.items == 1
    counts = _counts(db)
    assert counts["module_bags"] == 1
    assert counts["items"] == 1
    assert counts["batches"] == 2


def test_delete_unknown_raises_not_found(db):
    with pytest.raises(NotFoundError):
        cascade.delete_case(db, uuid.uuid4())


def test_failure_midway_rolls_back_everything(db, stocked, monkeypatch):
    before = _counts(db)
    original = cascade._delete_rows
    calls = {"n": 0}

    def flaky(session, rows):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("connection lost")
        return original(session, rows)

    monkeypatch.setattr(cascade, "_delete_rows", flaky)

    with pytest.raises(CascadeDeleteError) as exc:
        cascade.delete_vehicle(db, stocked.vehicle.id)

    assert "no changes were made" in str(exc.value)
    assert calls["n"] == 2
    assert _counts(db) == before


def test_delete_case_is_all_or_nothing(db, stocked, monkeypatch):
    before = _counts(db)

    def fail_on_modules(session, rows):
        rows = list(rows)
        if rows and isinstance(rows[0], ModuleBag):
            raise RuntimeError("write rejected")
        for row in rows:
            session.delete(row)
        session.flush()
        return len(rows)

    monkeypatch.setattr(cascade, "_delete_rows", fail_on_modules)
    with pytest.raises(CascadeDeleteError):
        cascade.delete_case(db, stocked.case.id)
    assert _counts(db) == before

    monkeypatch.undo()
    result = cascade.delete_case(db, stocked.case.id)
    assert result.as_dict() == {"vehicles": 0, "cases": 1, "module_bags": 2, "items": 2}
    assert _counts(db) == {"vehicles": 1, "cases": 0, "module_bags": 0, "items": 0, "batches": 0}
