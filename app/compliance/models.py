"""Value types shared by the evaluator, orchestrator and evidence store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from app.compliance.standards import RuleSeverity, TokenStandard


class EvaluationStatus(StrEnum):
    PASS = "Pass"
    FAIL = "Fail"
    SKIP = "Skip"


class RuleCategory(StrEnum):
    REQUIRED_FIELD = "required_field"
    OPTIONAL_FIELD = "optional_field"
    CROSS_FIELD = "cross_field"
    NETWORK = "network"


@dataclass(frozen=True)
class RuleEvaluation:
    rule_name: str
    status: EvaluationStatus
    category: RuleCategory
    severity: RuleSeverity = RuleSeverity.ERROR
    message: str | None = None
    # Fingerprint of the inspected value; None when nothing was inspected.
    observed: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is EvaluationStatus.FAIL

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_name": self.rule_name,
            "status": self.status.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "observed": self.observed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleEvaluation:
        return cls(
            rule_name=data["rule_name"],
            status=EvaluationStatus(data["status"]),
            category=RuleCategory(data["category"]),
            severity=RuleSeverity(data["severity"]),
            message=data.get("message"),
            observed=data.get("observed"),
        )


@dataclass(frozen=True)
class ValidationContext:
    """Caller-supplied context that gates network and jurisdiction rules."""

    token_standard: TokenStandard
    network: str
    jurisdiction_flags: frozenset[str] = frozenset()
    validator_version: str = "1.0.0"
    rule_set_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_standard": self.token_standard.value,
            "network": self.network,
            "jurisdiction_flags": sorted(self.jurisdiction_flags),
            "validator_version": self.validator_version,
            "rule_set_version": self.rule_set_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationContext:
        return cls(
            token_standard=TokenStandard.parse(data["token_standard"]),
            network=data["network"],
            jurisdiction_flags=frozenset(data.get("jurisdiction_flags") or ()),
            validator_version=data["validator_version"],
            rule_set_version=data.get("rule_set_version"),
        )


@dataclass(frozen=True)
class ValidationResult:
    standard: TokenStandard
    standard_version: str
    is_valid: bool
    evaluations: tuple[RuleEvaluation, ...]
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    message: str

    @property
    def passed(self) -> bool:
        """AND of all non-skipped evaluations."""
        return not any(e.status is EvaluationStatus.FAIL for e in self.evaluations)

    def counts(self) -> dict[str, int]:
        return {
            "total_rules": len(self.evaluations),
            "passed_rules": sum(e.status is EvaluationStatus.PASS for e in self.evaluations),
            "failed_rules": sum(e.status is EvaluationStatus.FAIL for e in self.evaluations),
            "skipped_rules": sum(e.status is EvaluationStatus.SKIP for e in self.evaluations),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "standard": self.standard.value,
            "standard_version": self.standard_version,
            "is_valid": self.is_valid,
            "passed": self.passed,
            "evaluations": [e.to_dict() for e in self.evaluations],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "message": self.message,
        }


@dataclass(frozen=True)
class ValidationEvidence:
    """Immutable record of one persisted validation decision."""

    evidence_id: str
    timestamp: datetime
    requester: str
    context: ValidationContext
    evaluations: tuple[RuleEvaluation, ...]
    passed: bool
    checksum: str
    token_id: str | None = None
    pre_issuance_id: str | None = None
    summary: str = ""
    counts: dict[str, int] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "evidence_id": self.evidence_id,
            "timestamp": self.timestamp.isoformat(),
            "requester": self.requester,
            "context": self.context.to_dict(),
            "evaluations": [e.to_dict() for e in self.evaluations],
            "passed": self.passed,
            "checksum": self.checksum,
            "token_id": self.token_id,
            "pre_issuance_id": self.pre_issuance_id,
            "summary": self.summary,
            **self.counts,
        }


@dataclass(frozen=True)
class EvidenceFilter:
    token_id: str | None = None
    pre_issuance_id: str | None = None
    passed: bool | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


@dataclass(frozen=True)
class EvidencePage:
    items: tuple[ValidationEvidence, ...]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class IntegrityReport:
    evidence_id: str
    valid: bool
    stored_checksum: str
    computed_checksum: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "evidence_id": self.evidence_id,
            "valid": self.valid,
            "stored_checksum": self.stored_checksum,
            "computed_checksum": self.computed_checksum,
        }
