"""Validation orchestrator - evaluate, decide dry run vs persist, record evidence.

Lifecycle of one request:

    RECEIVED -> EVALUATING -> {PASSED, FAILED} -> {PERSISTED, DRY_RUN_DISCARDED}

Evidence is only written once a complete evaluation sequence exists, so a
cancelled or failed evaluation never leaves a partial record behind.
"""

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog
from opentelemetry import trace

from app.compliance.canonical import compute_checksum, format_timestamp
from app.compliance.capability_resolver import CapabilityDecision, CapabilityResolver
from app.compliance.models import (
    IntegrityReport,
    ValidationContext,
    ValidationEvidence,
    ValidationResult,
)
from app.compliance.rule_evaluator import RuleEvaluator
from app.core.errors import (
    ComplianceError,
    DuplicateEvidenceIdError,
    EvidenceNotRecordedError,
    InternalError,
    PersistenceError,
    ValidationInputError,
)
from app.services.evidence_service import EvidenceService
from app.utils.clock import Clock, utc_now

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class ValidationState(StrEnum):
    RECEIVED = "RECEIVED"
    EVALUATING = "EVALUATING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    PERSISTED = "PERSISTED"
    DRY_RUN_DISCARDED = "DRY_RUN_DISCARDED"


@dataclass(frozen=True)
class CapabilityRequest:
    """Capability that must be allowed before the metadata is evaluated."""

    jurisdiction: str
    wallet_type: str
    kyc_tier: str
    action: str


@dataclass(frozen=True)
class ValidationRequest:
    standard: str
    network: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    jurisdiction_flags: tuple[str, ...] = ()
    dry_run: bool = False
    token_id: str | None = None
    pre_issuance_id: str | None = None
    capability: CapabilityRequest | None = None


@dataclass(frozen=True)
class ValidationOutcome:
    result: ValidationResult
    state: ValidationState
    context: ValidationContext
    evidence_id: str | None = None
    checksum: str | None = None
    timestamp: datetime | None = None
    capability: CapabilityDecision | None = None

    @property
    def recorded(self) -> bool:
        return self.state is ValidationState.PERSISTED

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.result.to_dict(),
            "state": self.state.value,
            "context": self.context.to_dict(),
            "evidence_id": self.evidence_id,
            "checksum": self.checksum,
            "timestamp": format_timestamp(self.timestamp) if self.timestamp else None,
            "recorded": self.recorded,
            "capability": self.capability.to_dict() if self.capability else None,
        }


def normalize_flags(flags: tuple[str, ...] | list[str]) -> frozenset[str]:
    return frozenset(f.strip().upper() for f in flags if f and f.strip())


def summarize(result: ValidationResult) -> str:
    counts = result.counts()
    return (
        f"{result.standard.value} {result.standard_version}: "
        f"{counts['passed_rules']} passed, {counts['failed_rules']} failed, "
        f"{counts['skipped_rules']} skipped"
    )


class ValidationOrchestrator:
    """Coordinates rule evaluation with the capability gate and evidence store."""

    def __init__(
        self,
        evaluator: RuleEvaluator,
        store: EvidenceService,
        resolver: CapabilityResolver | None = None,
        *,
        validator_version: str = "1.0.0",
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.evaluator = evaluator
        self.store = store
        self.resolver = resolver
        self.validator_version = validator_version
        self._clock = clock
        self._id_factory = id_factory

    async def validate_token_metadata(
        self, request: ValidationRequest, requester: str
    ) -> ValidationOutcome:
        """Run one validation and, unless it is a dry run, record its evidence.

        Raises:
            ValidationInputError: Missing network or requester
            UnsupportedStandardError: Unknown or inactive standard
            CapabilityDeniedError: Capability gate refused the action
            EvidenceNotRecordedError: Decision computed but not persisted
            InternalError: Unexpected failure during evaluation
        """
        if not requester or not requester.strip():
            raise ValidationInputError("requester is required")
        if not request.network or not request.network.strip():
            raise ValidationInputError("context.network is required")

        profile = self.evaluator.resolve_profile(request.standard)
        state = ValidationState.RECEIVED
        context = ValidationContext(
            token_standard=profile.standard,
            network=request.network.strip(),
            jurisdiction_flags=normalize_flags(request.jurisdiction_flags),
            validator_version=self.validator_version,
            rule_set_version=profile.version,
        )
        log = logger.bind(
            token_standard=profile.standard.value,
            network=context.network,
            requester=requester,
            dry_run=request.dry_run,
        )

        decision: CapabilityDecision | None = None
        if request.capability is not None:
            if self.resolver is None:
                raise ValidationInputError("Capability checks are not configured")
            cap = request.capability
            decision = self.resolver.require_capability(
                cap.jurisdiction,
                cap.wallet_type,
                profile.standard.value,
                cap.kyc_tier,
                cap.action,
            )
            log.info("Capability gate passed", rule_id=decision.rule_id, action=cap.action)

        state = ValidationState.EVALUATING
        try:
            with tracer.start_as_current_span("validation.evaluate") as span:
                span.set_attribute("token_standard", profile.standard.value)
                span.set_attribute("profile_version", profile.version)
                result = self.evaluator.validate(
                    profile.standard,
                    request.metadata,
                    name=request.name,
                    symbol=request.symbol,
                    decimals=request.decimals,
                    context=context,
                )
                span.set_attribute("is_valid", result.is_valid)
        except ComplianceError:
            raise
        except Exception as exc:
            log.error("Rule evaluation failed", state=state.value, error=str(exc), exc_info=True)
            raise InternalError("Validation could not be completed") from exc

        state = ValidationState.PASSED if result.is_valid else ValidationState.FAILED
        log = log.bind(decision=state.value)

        if request.dry_run:
            log.info("Dry run validation discarded", evaluations=len(result.evaluations))
            return ValidationOutcome(
                result=result,
                state=ValidationState.DRY_RUN_DISCARDED,
                context=context,
                capability=decision,
            )

        timestamp = self._clock()
        checksum = compute_checksum(context, result.evaluations, timestamp)
        evidence = ValidationEvidence(
            evidence_id=self._id_factory(),
            timestamp=timestamp,
            requester=requester.strip(),
            context=context,
            evaluations=result.evaluations,
            passed=result.passed,
            checksum=checksum,
            token_id=request.token_id,
            pre_issuance_id=request.pre_issuance_id,
            summary=summarize(result),
            counts=result.counts(),
        )

        try:
            evidence_id = await self.store.write(evidence)
        except (PersistenceError, DuplicateEvidenceIdError) as exc:
            unrecorded = ValidationOutcome(
                result=result,
                state=state,
                context=context,
                checksum=checksum,
                timestamp=timestamp,
                capability=decision,
            )
            log.error("Validation evidence not recorded", error=exc.message)
            raise EvidenceNotRecordedError(
                "Validation completed but evidence could not be recorded",
                details={"result": unrecorded.to_dict(), "reason": exc.message},
            ) from exc

        log.info("Validation persisted", evidence_id=evidence_id, checksum=checksum)
        return ValidationOutcome(
            result=result,
            state=ValidationState.PERSISTED,
            context=context,
            evidence_id=evidence_id,
            checksum=checksum,
            timestamp=timestamp,
            capability=decision,
        )

    async def verify_evidence(self, evidence_id: str) -> IntegrityReport:
        """Recompute a stored record's checksum and compare it to the stored one."""
        evidence = await self.store.get_by_id(evidence_id)
        computed = compute_checksum(evidence.context, evidence.evaluations, evidence.timestamp)
        report = IntegrityReport(
            evidence_id=evidence.evidence_id,
            valid=computed == evidence.checksum,
            stored_checksum=evidence.checksum,
            computed_checksum=computed,
        )
        if not report.valid:
            logger.warning(
                "Evidence checksum mismatch",
                evidence_id=evidence_id,
                stored_checksum=evidence.checksum,
                computed_checksum=computed,
            )
        return report
