"""Token standard profile types.

This module contains ZERO database access. Profiles are immutable values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TokenStandard(StrEnum):
    ASA = "ASA"
    ARC3 = "ARC3"
    ARC19 = "ARC19"
    ARC200 = "ARC200"
    ERC20 = "ERC20"

    @classmethod
    def parse(cls, value: str | TokenStandard) -> TokenStandard:
        """Parse a standard name, accepting ``ARC-3`` style spellings.

        Raises ValueError for anything outside the closed set.
        """
        if isinstance(value, TokenStandard):
            return value
        normalized = str(value).strip().upper().replace("-", "").replace("_", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown token standard: {value!r}") from None


STANDARD_ORDER: dict[TokenStandard, int] = {
    standard: index for index, standard in enumerate(TokenStandard)
}


class FieldType(StrEnum):
    STRING = "string"
    INT = "int"
    URI = "uri"
    ENUM = "enum"
    BOOL = "bool"


class RuleSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class FieldRule:
    """Declarative rule for one metadata field.

    Attributes:
        name: Canonical metadata key
        type: Expected value type
        aliases: Alternative metadata keys accepted for this field
        active_when: Jurisdiction flags gating the rule; empty means always active
        severity: Where a constraint violation is reported (errors or warnings)
    """

    name: str
    type: FieldType
    description: str = ""
    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    allowed_values: tuple[str, ...] = ()
    min_value: int | None = None
    max_value: int | None = None
    severity: RuleSeverity = RuleSeverity.ERROR
    aliases: tuple[str, ...] = ()
    active_when: frozenset[str] = frozenset()

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True)
class CrossFieldRule:
    """Named rule evaluated after all field rules.

    ``check`` names an entry in the evaluator's cross-field rule table, so
    profiles stay plain data.
    """

    name: str
    check: str
    severity: RuleSeverity = RuleSeverity.ERROR
    params: tuple[tuple[str, int | str], ...] = ()
    active_when: frozenset[str] = frozenset()

    def param(self, key: str, default: int | str | None = None) -> int | str | None:
        return dict(self.params).get(key, default)


@dataclass(frozen=True)
class StandardProfile:
    standard: TokenStandard
    version: str
    description: str
    required_fields: tuple[FieldRule, ...]
    optional_fields: tuple[FieldRule, ...] = ()
    cross_field_rules: tuple[CrossFieldRule, ...] = ()
    allowed_networks: frozenset[str] = frozenset()
    active: bool = True
    specification_url: str | None = None

    @property
    def profile_id(self) -> str:
        return f"{self.standard.value.lower()}-{self.version}"

    @property
    def all_fields(self) -> tuple[FieldRule, ...]:
        return self.required_fields + self.optional_fields

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(key for rule in self.all_fields for key in rule.keys)

    @property
    def version_key(self) -> tuple[int, ...]:
        return parse_version(self.version)

    def to_dict(self) -> dict:
        return {
            "profile_id": self.profile_id,
            "standard": self.standard.value,
            "version": self.version,
            "description": self.description,
            "active": self.active,
            "specification_url": self.specification_url,
            "allowed_networks": sorted(self.allowed_networks),
            "required_fields": [_field_to_dict(rule) for rule in self.required_fields],
            "optional_fields": [_field_to_dict(rule) for rule in self.optional_fields],
            "cross_field_rules": [
                {
                    "name": rule.name,
                    "check": rule.check,
                    "severity": rule.severity.value,
                    "params": dict(rule.params),
                    "active_when": sorted(rule.active_when),
                }
                for rule in self.cross_field_rules
            ],
        }


def parse_version(version: str) -> tuple[int, ...]:
    """Numeric semver key. Raises ValueError on non-numeric components."""
    return tuple(int(part) for part in version.split("."))


def _field_to_dict(rule: FieldRule) -> dict:
    return {
        "name": rule.name,
        "type": rule.type.value,
        "description": rule.description,
        "max_length": rule.max_length,
        "min_length": rule.min_length,
        "pattern": rule.pattern,
        "allowed_values": list(rule.allowed_values),
        "min_value": rule.min_value,
        "max_value": rule.max_value,
        "severity": rule.severity.value,
        "aliases": list(rule.aliases),
        "active_when": sorted(rule.active_when),
    }
