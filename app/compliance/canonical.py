"""Canonical serialization and checksums for validation evidence.

The canonical form is JSON with lexicographically sorted keys, no
insignificant whitespace, ASCII-only output and ``null`` for absent values.
Timestamps are UTC with microsecond precision and a ``Z`` suffix. Evaluations
keep their evaluation order. Each evaluation carries the fingerprint of the
value it inspected, so two different inputs that both pass still produce
different checksums.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from hashlib import sha256
from typing import Any

from app.compliance.models import RuleEvaluation, ValidationContext

CANONICAL_VERSION = "2"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Render ``value`` in the canonical UTC form.

    Naive datetimes are taken to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def fingerprint(value: Any) -> str:
    """SHA-256 hex digest of a single metadata value in canonical JSON."""
    return sha256(canonical_json(value).encode("utf-8")).hexdigest()


def canonical_payload(
    context: ValidationContext,
    evaluations: Sequence[RuleEvaluation],
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "canonical_version": CANONICAL_VERSION,
        "context": {
            "jurisdiction_flags": sorted(context.jurisdiction_flags),
            "network": context.network,
            "rule_set_version": context.rule_set_version,
            "token_standard": context.token_standard.value,
            "validator_version": context.validator_version,
        },
        "evaluations": [
            {
                "category": e.category.value,
                "message": e.message,
                "observed": e.observed,
                "rule_name": e.rule_name,
                "severity": e.severity.value,
                "status": e.status.value,
            }
            for e in evaluations
        ],
        "timestamp": format_timestamp(timestamp),
    }


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def compute_checksum(
    context: ValidationContext,
    evaluations: Sequence[RuleEvaluation],
    timestamp: datetime,
) -> str:
    """SHA-256 hex digest of the canonical evidence form."""
    text = canonical_json(canonical_payload(context, evaluations, timestamp))
    return sha256(text.encode("utf-8")).hexdigest()
