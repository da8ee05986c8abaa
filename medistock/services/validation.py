"""
Parse untrusted input into a typed record or a set of field errors.

Expected user mistakes never raise from here; callers branch on `ok`.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError


M = TypeVar("M", bound=BaseModel)

_PREFIXES = ("Value error, ", "Assertion failed, ")


@dataclass
class ValidationResult(Generic[M]):
    value: Optional[M] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


def _clean(msg: str) -> str:
    for prefix in _PREFIXES:
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        name = ".".join(str(p) for p in loc) if loc else "__root__"
        errors.setdefault(name, []).append(_clean(err.get("msg", "Invalid value")))
    return errors


def parse_model(model: Type[M], raw: Any) -> ValidationResult[M]:
    if not isinstance(raw, dict):
        return ValidationResult(errors={"__root__": ["Expected a JSON object."]})
    try:
        return ValidationResult(value=model.model_validate(raw))
    except ValidationError as e:
        return ValidationResult(errors=field_errors(e))
