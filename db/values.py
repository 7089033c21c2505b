"""
db/values.py
------------
Tagged field values and the ordered field/value map used for insert
payloads, update payloads and equality filters.

A FieldMap always iterates in ascending key order, so the SQL rendered
from it does not depend on the order the caller supplied the fields in.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Mapping, Tuple, Union

from psycopg2.extras import Json

from db.errors import UnsupportedValueError, UsageError
from db.identifiers import validate_identifier


@dataclass(frozen=True)
class IntValue:
    value: int

    def to_param(self) -> Any:
        return self.value


@dataclass(frozen=True)
class TextValue:
    value: str

    def to_param(self) -> Any:
        return self.value


@dataclass(frozen=True)
class BoolValue:
    value: bool

    def to_param(self) -> Any:
        return self.value


@dataclass(frozen=True)
class TimestampValue:
    value: Union[datetime, date]

    def to_param(self) -> Any:
        return self.value


@dataclass(frozen=True)
class JsonValue:
    """A list or dict stored as JSON text (JSONB column)."""
    value: Any

    def to_param(self) -> Any:
        return Json(self.value)

    def __hash__(self):
        return hash(repr(self.value))


@dataclass(frozen=True)
class NullValue:
    def to_param(self) -> Any:
        return None


FieldValue = Union[IntValue, TextValue, BoolValue, TimestampValue, JsonValue, NullValue]

_VARIANTS = (IntValue, TextValue, BoolValue, TimestampValue, JsonValue, NullValue)


def coerce(value: Any) -> FieldValue:
    """
    Wrap a plain Python value in its value variant.

    Variants are returned unchanged. bool is checked before int since
    bool is a subclass of int.

    Raises:
        UnsupportedValueError: For any other type (floats included;
            pass exact numerics as text or use raw SQL).
    """
    if isinstance(value, _VARIANTS):
        return value
    if value is None:
        return NullValue()
    if isinstance(value, bool):
        return BoolValue(value)
    if isinstance(value, int):
        return IntValue(value)
    if isinstance(value, str):
        return TextValue(value)
    if isinstance(value, (datetime, date)):
        return TimestampValue(value)
    if isinstance(value, (list, tuple, dict)):
        return JsonValue(list(value) if isinstance(value, tuple) else value)
    raise UnsupportedValueError(f"Unsupported field value type: {type(value).__name__}")


class FieldMap:
    """
    Ordered association of field name -> FieldValue.

    Accepts a mapping or an iterable of (name, value) pairs. Names must
    be valid identifiers and unique; values are coerced to variants.
    """

    def __init__(self, fields: Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None] = None):
        pairs = fields.items() if isinstance(fields, Mapping) else (fields or ())
        entries = {}
        for name, value in pairs:
            validate_identifier(name, "field")
            if name in entries:
                raise UsageError(f"Duplicate field name: {name!r}")
            entries[name] = coerce(value)
        self._entries = tuple(sorted(entries.items()))

    @classmethod
    def of(cls, fields) -> "FieldMap":
        """Return `fields` if it already is a FieldMap, else build one."""
        return fields if isinstance(fields, cls) else cls(fields)

    def keys(self) -> list[str]:
        return [name for name, _ in self._entries]

    def items(self) -> list[Tuple[str, FieldValue]]:
        return list(self._entries)

    def params(self) -> list:
        """Driver parameters, in key order."""
        return [value.to_param() for _, value in self._entries]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name) -> bool:
        return any(key == name for key, _ in self._entries)

    def __eq__(self, other) -> bool:
        return isinstance(other, FieldMap) and self._entries == other._entries

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in self._entries)
        return f"FieldMap({body})"
