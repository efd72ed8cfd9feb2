from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


# Limits for the free-form "meta" payload terminals attach to requests
META_MAX_KEYS = 32
META_MAX_DEPTH = 4
META_MAX_BYTES = 8 * 1024


class ValidationError(ValueError):
    """400-level input problem. issues lists every failing field."""

    def __init__(self, message: str = "Validation error", issues: list[dict] | None = None):
        super().__init__(message)
        self.issues = issues or []

    def to_dict(self) -> dict:
        return {"message": str(self), "issues": self.issues}


@dataclass(frozen=True)
class Field:
    """
    One input field:
    - kind: "int", "str" or "object"
    - coerce: accept digit strings for ints (query parameters)
    - min_value / max_value: inclusive bounds for ints
    - min_length / max_length: bounds for strings
    """
    kind: str
    required: bool = True
    coerce: bool = False
    min_value: int | None = None
    max_value: int | None = None
    min_length: int | None = None
    max_length: int | None = None


def PositiveInt(required: bool = True, coerce: bool = False) -> Field:
    return Field("int", required=required, coerce=coerce, min_value=1)


def Text(min_length: int | None = None, max_length: int | None = None, required: bool = True) -> Field:
    return Field("str", required=required, min_length=min_length, max_length=max_length)


def _coerce_int(field: Field, value: Any) -> int:
    # bool is a subclass of int; reject it explicitly
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if field.coerce and isinstance(value, str):
        stripped = value.strip()
        digits = stripped.lstrip("-")
        if digits.isascii() and digits.isdigit():
            return int(stripped)
    raise ValueError("Expected integer")


def _depth(value: Any) -> int:
    if isinstance(value, dict):
        return 1 + max((_depth(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((_depth(v) for v in value), default=0)
    return 0


def _check_meta(value: Any) -> dict:
    if not isinstance(value, dict):
        raise ValueError("Expected object")
    if len(value) > META_MAX_KEYS:
        raise ValueError(f"Object must contain at most {META_MAX_KEYS} key(s)")
    if _depth(value) > META_MAX_DEPTH:
        raise ValueError(f"Object must be nested at most {META_MAX_DEPTH} level(s) deep")
    try:
        encoded = json.dumps(value)
    except (TypeError, ValueError):
        raise ValueError("Object must be JSON serializable")
    if len(encoded.encode("utf-8")) > META_MAX_BYTES:
        raise ValueError(f"Object must serialize to at most {META_MAX_BYTES} bytes")
    return value


def _check_field(field: Field, value: Any) -> Any:
    if field.kind == "int":
        number = _coerce_int(field, value)
        if field.min_value is not None and number < field.min_value:
            if field.min_value == 1:
                raise ValueError("Number must be greater than 0")
            raise ValueError(f"Number must be greater than or equal to {field.min_value}")
        if field.max_value is not None and number > field.max_value:
            raise ValueError(f"Number must be less than or equal to {field.max_value}")
        return number

    if field.kind == "str":
        if not isinstance(value, str):
            raise ValueError("Expected string")
        if field.min_length is not None and len(value) < field.min_length:
            raise ValueError(f"String must contain at least {field.min_length} character(s)")
        if field.max_length is not None and len(value) > field.max_length:
            raise ValueError(f"String must contain at most {field.max_length} character(s)")
        return value

    if field.kind == "object":
        return _check_meta(value)

    raise ValueError(f"Unsupported field kind: {field.kind}")


def validate(schema: dict[str, Field], payload: Any) -> dict:
    """
    Validate a JSON body or query mapping against a schema.

    Unknown keys are dropped. Optional fields that are absent (or null) are
    left out of the result. Raises ValidationError listing every failing
    field, so the caller can report them all in one 400.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(issues=[{"path": [], "message": "Expected object"}])

    cleaned: dict = {}
    issues: list[dict] = []

    for name, field in schema.items():
        raw = payload.get(name)
        if raw is None or (field.coerce and raw == ""):
            if field.required:
                issues.append({"path": [name], "message": "Required"})
            continue
        try:
            cleaned[name] = _check_field(field, raw)
        except ValueError as exc:
            issues.append({"path": [name], "message": str(exc)})

    if issues:
        raise ValidationError(issues=issues)
    return cleaned


REQUEST_SCHEMA = {
    "companyId": PositiveInt(),
    "actionCode": Text(min_length=3, max_length=64),
    "resourceType": Text(max_length=64, required=False),
    "resourceId": Text(max_length=128, required=False),
    "requestedById": PositiveInt(),
    "terminalId": Text(max_length=128, required=False),
    "meta": Field("object", required=False),
}

APPROVE_SCHEMA = {
    "requestId": PositiveInt(),
    "expiresInSeconds": Field("int", required=False, min_value=30, max_value=600),
    # companyId / approvedById come from the session; an explicit companyId
    # is only checked against it
    "companyId": PositiveInt(required=False),
}

VERIFY_SCHEMA = {
    "companyId": PositiveInt(),
    "token": Text(min_length=4, max_length=64),
    "actionCode": Text(min_length=3, max_length=64),
    "resourceType": Text(max_length=64, required=False),
    "resourceId": Text(max_length=128, required=False),
    "usedById": PositiveInt(),
    "terminalId": Text(max_length=128, required=False),
}

VIRTUAL_PROVISION_SCHEMA = {
    "terminalId": Text(min_length=3, max_length=128),
    "uid": Text(min_length=6, max_length=128, required=False),
}

AUDIT_QUERY_SCHEMA = {
    "companyId": PositiveInt(required=False, coerce=True),
    "limit": Field("int", required=False, coerce=True, min_value=1, max_value=200),
}

REQUESTS_QUERY_SCHEMA = {
    "companyId": PositiveInt(required=False, coerce=True),
    "status": Text(max_length=16, required=False),
    "limit": Field("int", required=False, coerce=True, min_value=1, max_value=200),
}

LOGIN_SCHEMA = {
    "companyId": PositiveInt(),
    "username": Text(min_length=1, max_length=64),
    "password": Text(min_length=1, max_length=256),
}
