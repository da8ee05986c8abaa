import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT"] = "10000/minute"

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medistock.db import Base, get_db
from medistock.models.models import Batch, Case, Item, ModuleBag, User, Vehicle
from medistock.auth.security import create_access_token, get_password_hash
from medistock.main import create_app
from medistock.routes.deps import get_mailer


class FakeMailer:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send_html(self, to, subject, html):
        if self.error:
            raise self.error
        self.sent.append({"to": list(to), "subject": subject, "html": html})


def make_item(name="Gauze", target=10, batches=(), module_id=None, item_id=None):
    """Plain object with the attributes the aggregation helpers read."""
    return SimpleNamespace(
        id=item_id or name,
        name=name,
        barcode=None,
        target_quantity=target,
        module_id=module_id,
        batches=[SimpleNamespace(quantity=q, expiration_date=exp) for q, exp in batches],
    )


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(db, mailer):
    app = create_app()

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _user(db, email, role, full_name):
    user = User(email=email, full_name=full_name, role=role, password_hash=get_password_hash("secret123"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _user(db, "admin@example.com", "Admin", "Alice Admin")


@pytest.fixture
def staff(db):
    return _user(db, "staff@example.com", "Staff", "Sam Staff")


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role)}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def staff_headers(staff):
    return auth_headers(staff)


@pytest.fixture
def hierarchy(db):
    """One vehicle with one case holding one module bag."""
    vehicle = Vehicle(name="RTW 1")
    db.add(vehicle)
    db.flush()
    case = Case(name="Notfallrucksack", vehicle_id=vehicle.id)
    db.add(case)
    db.flush()
    module = ModuleBag(name="Airway", case_id=case.id)
    db.add(module)
    db.commit()
    return SimpleNamespace(vehicle=vehicle, case=case, module=module)


@pytest.fixture
def add_item(db, hierarchy):
    def _add(name="Gauze", target=10, batches=(), module=None):
        item = Item(name=name, target_quantity=target, module_id=(module or hierarchy.module).id)
        for qty, exp in batches:
            item.batches.append(Batch(quantity=qty, expiration_date=exp))
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _add


def days_from_now(days):
    return datetime.now(timezone.utc) + timedelta(days=days)
