"""Declarative parameter validation for operation handlers.

An operation declares ``{field: descriptor}``; the executor runs
:func:`validate_payload` once, before the gateway session is touched.
Each descriptor checks one value and returns its normalised form::

    _SCHEMA = {
        "channel_id": Snowflake(required=True),
        "content": Str(max_length=2000),
        "limit": Num(integer_only=True, min_val=1, max_val=100, default=50),
        "private": Bool(default=False),
    }

    error = validate_payload(payload, _SCHEMA, cross_field_rules=[AtLeastOne(("content", "embeds"))])

Only the first problem is reported, as an ``invalid_input`` error naming the
field (``ids[1]`` for a list item).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple, Union

from discord_mcp.core.errors.domain import DomainError

_SNOWFLAKE_RE = re.compile(r"^\d{17,20}$")


class _Invalid(Exception):
    def __init__(self, field: str, reason: str, remediation: Optional[str]):
        super().__init__(f"{field} {reason}")
        self.field = field
        self.reason = reason
        self.remediation = remediation


class _Field:
    """Shared behaviour; subclasses are frozen dataclasses."""

    required: bool
    remediation: Optional[str]

    @property
    def fallback(self) -> Any:
        return getattr(self, "default", None)

    def reject(self, field: str, reason: str) -> _Invalid:
        return _Invalid(field, reason, self.remediation)

    def clean(self, field: str, value: Any) -> Any:
        """Return the normalised value or raise ``_Invalid``."""
        raise NotImplementedError


@dataclass(frozen=True)
class Str(_Field):
    required: bool = False
    strip: bool = True
    allow_empty: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    choices: Optional[FrozenSet[str]] = None
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> str:
        if not isinstance(value, str):
            raise self.reject(field, "must be a string")
        text = value.strip() if self.strip else value
        if not text and not self.allow_empty:
            raise self.reject(field, "must not be empty")
        if self.min_length is not None and len(text) < self.min_length:
            raise self.reject(field, f"must be at least {self.min_length} characters")
        if self.max_length is not None and len(text) > self.max_length:
            raise self.reject(field, f"must be at most {self.max_length} characters")
        if self.choices is not None and text not in self.choices:
            raise self.reject(field, f"must be one of: {', '.join(sorted(self.choices))}")
        return text


@dataclass(frozen=True)
class Snowflake(_Field):
    """A Discord ID, passed as a string of 17 to 20 digits."""

    required: bool = False
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> str:
        if not isinstance(value, str):
            raise self.reject(field, "must be a string")
        if not _SNOWFLAKE_RE.match(value.strip()):
            raise self.reject(field, f"'{value}' is not a valid snowflake ID (17-20 digits)")
        return value.strip()


@dataclass(frozen=True)
class Num(_Field):
    required: bool = False
    integer_only: bool = False
    min_val: Optional[Union[int, float]] = None
    max_val: Optional[Union[int, float]] = None
    choices: Optional[FrozenSet[int]] = None
    default: Optional[Union[int, float]] = None
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> Union[int, float]:
        kind = "an integer" if self.integer_only else "a number"
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.reject(field, f"must be {kind}")
        if self.integer_only and isinstance(value, float) and not value.is_integer():
            raise self.reject(field, "must be an integer")
        if self.min_val is not None and value < self.min_val:
            raise self.reject(field, f"must be >= {self.min_val}")
        if self.max_val is not None and value > self.max_val:
            raise self.reject(field, f"must be <= {self.max_val}")
        if self.choices is not None and value not in self.choices:
            raise self.reject(field, f"must be one of: {', '.join(map(str, sorted(self.choices)))}")
        return int(value) if self.integer_only else float(value)


@dataclass(frozen=True)
class Bool(_Field):
    required: bool = False
    default: Optional[bool] = None
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> bool:
        if not isinstance(value, bool):
            raise self.reject(field, "must be a boolean")
        return value


@dataclass(frozen=True)
class List_(_Field):
    """A list; ``item`` validates and normalises every element."""

    required: bool = False
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    item: Optional[Union[Str, Snowflake]] = None
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> list:
        if not isinstance(value, (list, tuple)):
            raise self.reject(field, "must be a list")
        if self.min_items is not None and len(value) < self.min_items:
            raise self.reject(field, f"must have at least {self.min_items} items")
        if self.max_items is not None and len(value) > self.max_items:
            raise self.reject(field, f"must have at most {self.max_items} items")
        if self.item is None:
            return list(value)
        return [self.item.clean(f"{field}[{index}]", element) for index, element in enumerate(value)]


@dataclass(frozen=True)
class Dict_(_Field):
    required: bool = False
    remediation: Optional[str] = None

    def clean(self, field: str, value: Any) -> dict:
        if not isinstance(value, dict):
            raise self.reject(field, "must be an object")
        return value


@dataclass(frozen=True)
class AtLeastOne:
    """At least one of ``fields`` must be present; an empty list counts as absent."""

    fields: Tuple[str, ...]
    remediation: Optional[str] = None

    def check(self, payload: Mapping[str, Any]) -> None:
        if all(payload.get(name) in (None, []) for name in self.fields):
            names = ", ".join(self.fields)
            raise _Invalid(self.fields[0], f"at least one of {names} must be provided", self.remediation)


FieldSchema = Union[Str, Snowflake, Num, Bool, List_, Dict_]
CrossFieldRule = AtLeastOne


def _as_error(problem: _Invalid) -> DomainError:
    error = DomainError.invalid_input(problem.field, problem.reason)
    if not problem.remediation:
        return error
    return DomainError(
        kind=error.kind,
        message=error.message,
        code=error.code,
        resolution=problem.remediation,
        details=error.details,
    )


def validate_payload(
    payload: Dict[str, Any],
    schema: Mapping[str, FieldSchema],
    *,
    cross_field_rules: Optional[Sequence[CrossFieldRule]] = None,
) -> Optional[DomainError]:
    """Check ``payload`` against ``schema`` and normalise it in place.

    Defaults fill absent fields first, then each field is checked in schema
    order, then the cross-field rules run. Returns the first error found, or
    ``None`` when the payload is usable.
    """
    try:
        for name, spec in schema.items():
            value = payload.get(name)
            if value is None and spec.fallback is not None:
                value = payload[name] = spec.fallback
            if value is None:
                if spec.required:
                    raise spec.reject(name, "is required")
                continue
            payload[name] = spec.clean(name, value)
        for rule in cross_field_rules or ():
            rule.check(payload)
    except _Invalid as problem:
        return _as_error(problem)
    return None
