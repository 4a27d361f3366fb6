"""Tagged value container for dynamic metadata fields.

Metadata arrives as ``dict[str, str | int | float | bool]``. Each value is
wrapped once in a ``FieldValue`` whose ``kind`` tag drives the typed
accessors, so rule code never inspects raw Python types directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ValueKind(StrEnum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    NULL = "null"
    OTHER = "other"


@dataclass(frozen=True)
class FieldValue:
    kind: ValueKind
    raw: Any

    @classmethod
    def of(cls, value: Any) -> FieldValue:
        # bool is a subclass of int, so it must be tagged first.
        if value is None:
            return cls(ValueKind.NULL, None)
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, int):
            return cls(ValueKind.INT, value)
        if isinstance(value, float):
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        return cls(ValueKind.OTHER, value)

    @property
    def is_missing(self) -> bool:
        if self.kind is ValueKind.NULL:
            return True
        return self.kind is ValueKind.STRING and not self.raw.strip()

    def as_str(self) -> str | None:
        return self.raw if self.kind is ValueKind.STRING else None

    def as_int(self) -> int | None:
        """Integer view. Integral floats and digit strings are accepted."""
        if self.kind is ValueKind.INT:
            return self.raw
        if self.kind is ValueKind.FLOAT and float(self.raw).is_integer():
            return int(self.raw)
        if self.kind is ValueKind.STRING:
            text = self.raw.strip()
            if text.lstrip("-").isdigit():
                return int(text)
        return None

    def as_bool(self) -> bool | None:
        if self.kind is ValueKind.BOOL:
            return self.raw
        if self.kind is ValueKind.STRING:
            lowered = self.raw.strip().lower()
            if lowered in ("true", "false"):
                return lowered == "true"
        return None

    def describe(self) -> str:
        return self.kind.value


class FieldBag:
    """Read-only view over wrapped metadata values."""

    def __init__(self, values: Mapping[str, Any]):
        self._values: dict[str, FieldValue] = {
            str(key): FieldValue.of(value) for key, value in values.items()
        }

    def lookup(self, keys: tuple[str, ...]) -> tuple[str | None, FieldValue | None]:
        """Return the first present, non-missing key among ``keys``."""
        for key in keys:
            value = self._values.get(key)
            if value is not None and not value.is_missing:
                return key, value
        return None, None

    def get(self, key: str) -> FieldValue | None:
        value = self._values.get(key)
        if value is None or value.is_missing:
            return None
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
