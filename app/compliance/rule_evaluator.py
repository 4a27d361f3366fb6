"""Rule evaluator - applies a standard profile to candidate token metadata.

This module contains ZERO database access. Pure functions only: identical
inputs always produce an identical evaluation sequence. A failing rule is a
``Fail`` evaluation, never an exception.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlsplit

import structlog

from app.compliance.canonical import fingerprint
from app.compliance.field_values import FieldBag, FieldValue
from app.compliance.models import (
    EvaluationStatus,
    RuleCategory,
    RuleEvaluation,
    ValidationContext,
    ValidationResult,
)
from app.compliance.registry import StandardProfileRegistry
from app.compliance.standards import (
    CrossFieldRule,
    FieldRule,
    FieldType,
    RuleSeverity,
    StandardProfile,
    TokenStandard,
)
from app.core.errors import UnsupportedStandardError

logger = structlog.get_logger(__name__)

SYMBOL_KEYS = ("symbol", "unit_name", "unitName")

# (status, message, fingerprint of the inspected value)
CheckOutcome = tuple[EvaluationStatus, str | None, str | None]
CrossFieldCheck = Callable[
    [CrossFieldRule, FieldBag, ValidationContext | None, StandardProfile], CheckOutcome
]


class RuleEvaluator:
    """Evaluates metadata against the active profile for a standard."""

    def __init__(self, registry: StandardProfileRegistry):
        self.registry = registry

    def resolve_profile(self, standard: TokenStandard | str) -> StandardProfile:
        """Return the active profile or raise UnsupportedStandardError."""
        try:
            parsed = TokenStandard.parse(standard)
        except ValueError:
            raise UnsupportedStandardError(str(standard)) from None
        if not self.registry.is_standard_supported(parsed):
            raise UnsupportedStandardError(parsed.value)
        return self.registry.get_standard_profile(parsed)

    def validate(
        self,
        standard: TokenStandard | str,
        metadata: Mapping[str, Any] | None,
        name: str | None = None,
        symbol: str | None = None,
        decimals: int | None = None,
        context: ValidationContext | None = None,
    ) -> ValidationResult:
        """Evaluate ``metadata`` against the active profile for ``standard``.

        Field rules run in declaration order (required, then optional),
        followed by the profile's cross-field rules in their declared order.
        Explicit ``name``, ``symbol`` and ``decimals`` arguments win over any
        metadata key for the same field.
        """
        profile = self.resolve_profile(standard)

        merged = apply_overrides(
            profile, metadata, {"name": name, "symbol": symbol, "decimals": decimals}
        )
        bag = FieldBag(merged)
        flags = context.jurisdiction_flags if context else frozenset()

        evaluations: list[RuleEvaluation] = []
        for rule in profile.required_fields:
            evaluations.append(evaluate_field(rule, bag, required=True, flags=flags))
        for rule in profile.optional_fields:
            evaluations.append(evaluate_field(rule, bag, required=False, flags=flags))
        for cross_rule in profile.cross_field_rules:
            evaluations.append(evaluate_cross_field(cross_rule, bag, context, profile))

        errors = tuple(
            e.message or e.rule_name
            for e in evaluations
            if e.failed and e.severity is RuleSeverity.ERROR
        )
        warnings = tuple(
            e.message or e.rule_name
            for e in evaluations
            if e.failed and e.severity is RuleSeverity.WARNING
        )
        is_valid = not errors

        if not is_valid:
            message = f"Validation failed with {len(errors)} error(s)"
        elif warnings:
            message = f"Validation passed with {len(warnings)} warning(s)"
        else:
            message = "Validation passed successfully"

        logger.info(
            "Token metadata evaluated",
            token_standard=profile.standard.value,
            profile_version=profile.version,
            is_valid=is_valid,
            error_count=len(errors),
            warning_count=len(warnings),
        )

        return ValidationResult(
            standard=profile.standard,
            standard_version=profile.version,
            is_valid=is_valid,
            evaluations=tuple(evaluations),
            errors=errors,
            warnings=warnings,
            message=message,
        )




def apply_overrides(
    profile: StandardProfile,
    metadata: Mapping[str, Any] | None,
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    """Merge explicit arguments over ``metadata``.

    An override replaces every key of the field rule that owns it, so an
    alias left in metadata cannot shadow the explicit value.
    """
    merged: dict[str, Any] = dict(metadata or {})
    for key, value in overrides.items():
        if value is None:
            continue
        for rule in profile.all_fields:
            if key in rule.keys:
                for alias in rule.keys:
                    merged.pop(alias, None)
        merged[key] = value
    return merged


def field_keys(profile: StandardProfile, name: str) -> tuple[str, ...]:
    """Metadata keys accepted for ``name`` in ``profile``, aliases included."""
    for rule in profile.all_fields:
        if rule.name == name:
            return rule.keys
    return (name,)


def evaluate_field(
    rule: FieldRule,
    bag: FieldBag,
    *,
    required: bool,
    flags: frozenset[str],
) -> RuleEvaluation:
    category = RuleCategory.REQUIRED_FIELD if required else RuleCategory.OPTIONAL_FIELD

    def _result(
        status: EvaluationStatus,
        message: str | None = None,
        value: FieldValue | None = None,
    ) -> RuleEvaluation:
        severity = RuleSeverity.ERROR if required else rule.severity
        return RuleEvaluation(
            rule_name=rule.name,
            status=status,
            category=category,
            severity=severity,
            message=message,
            observed=fingerprint(value.raw) if value is not None else None,
        )

    if rule.active_when and not (rule.active_when & flags):
        gates = ", ".join(sorted(rule.active_when))
        return _result(EvaluationStatus.SKIP, f"Not applicable without jurisdiction flag: {gates}")

    _, value = bag.lookup(rule.keys)
    if value is None:
        if required:
            return _result(EvaluationStatus.FAIL, f"Required field '{rule.name}' is missing")
        return _result(EvaluationStatus.SKIP, f"Optional field '{rule.name}' not provided")

    problem = check_field_value(rule, value)
    if problem is not None:
        return _result(EvaluationStatus.FAIL, problem, value)
    return _result(EvaluationStatus.PASS, value=value)


def check_field_value(rule: FieldRule, value: FieldValue) -> str | None:
    """Return a violation message, or None when the value satisfies ``rule``."""
    if rule.type is FieldType.INT:
        number = value.as_int()
        if number is None:
            return _type_mismatch(rule, value)
        if rule.min_value is not None and number < rule.min_value:
            return f"Field '{rule.name}' is below minimum value of {rule.min_value}"
        if rule.max_value is not None and number > rule.max_value:
            return f"Field '{rule.name}' exceeds maximum value of {rule.max_value}"
        return None

    if rule.type is FieldType.BOOL:
        if value.as_bool() is None:
            return _type_mismatch(rule, value)
        return None

    text = value.as_str()
    if text is None:
        return _type_mismatch(rule, value)

    if rule.type is FieldType.ENUM and text not in rule.allowed_values:
        allowed = ", ".join(rule.allowed_values)
        return f"Field '{rule.name}' must be one of: {allowed}"
    if rule.type is FieldType.URI and not _is_absolute_uri(text):
        return f"Field '{rule.name}' must be an absolute URI"
    if rule.min_length is not None and len(text) < rule.min_length:
        return f"Field '{rule.name}' is shorter than minimum length of {rule.min_length}"
    if rule.max_length is not None and len(text) > rule.max_length:
        return f"Field '{rule.name}' exceeds maximum length of {rule.max_length}"
    if rule.pattern is not None and re.search(rule.pattern, text) is None:
        return f"Field '{rule.name}' does not match required pattern"
    return None


def _type_mismatch(rule: FieldRule, value: FieldValue) -> str:
    return f"Field '{rule.name}' expects type '{rule.type.value}' but got '{value.describe()}'"


def _is_absolute_uri(text: str) -> bool:
    if any(ch.isspace() for ch in text):
        return False
    parts = urlsplit(text)
    return bool(parts.scheme) and bool(parts.netloc)


def evaluate_cross_field(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> RuleEvaluation:
    category = (
        RuleCategory.NETWORK if rule.check == "network_supported" else RuleCategory.CROSS_FIELD
    )
    flags = context.jurisdiction_flags if context else frozenset()
    observed: str | None = None
    if rule.active_when and not (rule.active_when & flags):
        gates = ", ".join(sorted(rule.active_when))
        status: EvaluationStatus = EvaluationStatus.SKIP
        message: str | None = f"Not applicable without jurisdiction flag: {gates}"
    else:
        check = CROSS_FIELD_CHECKS[rule.check]
        status, message, observed = check(rule, bag, context, profile)
    return RuleEvaluation(
        rule_name=rule.name,
        status=status,
        category=category,
        severity=rule.severity,
        message=message,
        observed=observed,
    )


def _check_symbol_length(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> CheckOutcome:
    _, value = bag.lookup(SYMBOL_KEYS)
    if value is None:
        return EvaluationStatus.SKIP, "No symbol provided", None
    symbol = value.as_str()
    if symbol is None:
        return EvaluationStatus.SKIP, "Symbol is not a string", None
    observed = fingerprint(symbol)
    max_length = int(rule.param("max_length", 8))
    if len(symbol) > max_length:
        return (
            EvaluationStatus.FAIL,
            f"Symbol '{symbol}' is {len(symbol)} characters; "
            f"{profile.standard.value} allows at most {max_length}",
            observed,
        )
    return EvaluationStatus.PASS, None, observed


def _check_supply_bounds(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> CheckOutcome:
    _, supply_value = bag.lookup(field_keys(profile, str(rule.param("supply"))))
    _, cap_value = bag.lookup(field_keys(profile, str(rule.param("cap"))))
    supply = supply_value.as_int() if supply_value else None
    cap = cap_value.as_int() if cap_value else None
    if supply is None or cap is None:
        return EvaluationStatus.SKIP, "Supply bounds not fully specified", None
    observed = fingerprint([supply, cap])
    if supply > cap:
        return (
            EvaluationStatus.FAIL,
            f"Total supply {supply} exceeds max supply {cap}",
            observed,
        )
    return EvaluationStatus.PASS, None, observed


def _check_requires_field(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> CheckOutcome:
    field_name = str(rule.param("field"))
    required_name = str(rule.param("requires"))
    _, value = bag.lookup(field_keys(profile, field_name))
    if value is None:
        return EvaluationStatus.SKIP, f"Field '{field_name}' not provided", None
    observed = fingerprint(value.raw)
    _, required_value = bag.lookup(field_keys(profile, required_name))
    if required_value is None:
        return (
            EvaluationStatus.FAIL,
            f"Field '{field_name}' requires '{required_name}'",
            observed,
        )
    return EvaluationStatus.PASS, None, observed


def _check_url_scheme(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> CheckOutcome:
    field_name = str(rule.param("field"))
    _, value = bag.lookup(field_keys(profile, field_name))
    text = value.as_str() if value else None
    if text is None:
        return EvaluationStatus.SKIP, f"Field '{field_name}' not provided", None
    observed = fingerprint(text)
    schemes = tuple(str(rule.param("schemes", "")).split(","))
    scheme = urlsplit(text).scheme.lower()
    if scheme not in schemes:
        return (
            EvaluationStatus.FAIL,
            f"Field '{field_name}' should use one of the schemes: {', '.join(schemes)}",
            observed,
        )
    return EvaluationStatus.PASS, None, observed


def _check_network_supported(
    rule: CrossFieldRule,
    bag: FieldBag,
    context: ValidationContext | None,
    profile: StandardProfile,
) -> CheckOutcome:
    # The network itself is part of the canonical context.
    if context is None or not context.network.strip():
        return EvaluationStatus.SKIP, "No network context supplied", None
    network = context.network.strip().lower()
    if network not in profile.allowed_networks:
        allowed = ", ".join(sorted(profile.allowed_networks))
        return (
            EvaluationStatus.FAIL,
            f"Network '{context.network}' is not supported for "
            f"{profile.standard.value}; use one of: {allowed}",
            None,
        )
    return EvaluationStatus.PASS, None, None


CROSS_FIELD_CHECKS: dict[str, CrossFieldCheck] = {
    "symbol_length": _check_symbol_length,
    "supply_bounds": _check_supply_bounds,
    "requires_field": _check_requires_field,
    "url_scheme": _check_url_scheme,
    "network_supported": _check_network_supported,
}
