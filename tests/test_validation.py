from datetime import date

from medistock.schemas.auth import CreateUserRequest
from medistock.schemas.inventory import BatchCreate
from medistock.services.validation import parse_model


def test_valid_input_parses():
    result = parse_model(
        CreateUserRequest,
        {"fullName": " Ada ", "email": "ada@example.com", "password": "123456", "role": "Admin", "phone": ""},
    )
    assert result.ok
    assert result.value.full_name == "Ada"
    assert result.value.phone is None


def test_errors_are_collected_per_field():
    result = parse_model(CreateUserRequest, {"fullName": "", "email": "not-an-email", "password": "1", "role": "Admin"})
    assert not result.ok
    assert result.value is None
    assert set(result.errors) == {"fullName", "email", "password"}
    assert result.errors["password"] == ["Password must be at least 6 characters long."]


def test_missing_fields():
    result = parse_model(CreateUserRequest, {})
    assert {"fullName", "email", "password", "role"} <= set(result.errors)


def test_non_object_input():
    result = parse_model(CreateUserRequest, "hello")
    assert result.errors == {"__root__": ["Expected a JSON object."]}


def test_short_date_format_and_past_dates():
    ok = parse_model(BatchCreate, {"quantity": 1, "expiration_date": "01.02.99"})
    assert ok.value.expiration_date == date(2099, 2, 1)

    bad = parse_model(BatchCreate, {"quantity": 1, "expiration_date": "31.02.99"})
    assert bad.errors["expiration_date"] == ["Invalid date."]

    past = parse_model(BatchCreate, {"quantity": 1, "expiration_date": "2000-01-01"})
    assert past.errors["expiration_date"] == ["Expiration date cannot be in the past."]
