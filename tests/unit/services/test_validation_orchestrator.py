"""Unit tests for ValidationOrchestrator."""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import (
    CapabilityDeniedError,
    DuplicateEvidenceIdError,
    EvidenceNotRecordedError,
    InternalError,
    PersistenceError,
    UnsupportedStandardError,
    ValidationInputError,
)
from app.services.validation_orchestrator import (
    CapabilityRequest,
    ValidationOrchestrator,
    ValidationRequest,
    ValidationState,
    normalize_flags,
)
from app.utils.clock import frozen_clock


@pytest.fixture
def store():
    mock = MagicMock()
    mock.write = AsyncMock(side_effect=lambda evidence: evidence.evidence_id)
    mock.get_by_id = AsyncMock()
    return mock


@pytest.fixture
def orchestrator(evaluator, store, resolver, fixed_instant):
    return ValidationOrchestrator(
        evaluator,
        store,
        resolver,
        validator_version="9.9.9",
        clock=frozen_clock(fixed_instant),
        id_factory=lambda: "evidence-0001",
    )


@pytest.fixture
def asa_request(asa_metadata):
    return ValidationRequest(standard="ASA", network="testnet", metadata=asa_metadata)


class TestInputChecks:
    async def test_missing_requester(self, orchestrator, asa_request, store):
        with pytest.raises(ValidationInputError, match="requester"):
            await orchestrator.validate_token_metadata(asa_request, requester=" ")

        store.write.assert_not_awaited()

    async def test_missing_network(self, orchestrator, asa_request):
        with pytest.raises(ValidationInputError, match="network"):
            await orchestrator.validate_token_metadata(
                replace(asa_request, network=""), requester="issuer-ops"
            )

    async def test_unsupported_standard(self, orchestrator, asa_request, store):
        with pytest.raises(UnsupportedStandardError):
            await orchestrator.validate_token_metadata(
                replace(asa_request, standard="BEP20"), requester="issuer-ops"
            )

        store.write.assert_not_awaited()


class TestDryRun:
    async def test_dry_run_never_writes(self, orchestrator, asa_request, store):
        outcome = await orchestrator.validate_token_metadata(
            replace(asa_request, dry_run=True), requester="issuer-ops"
        )

        store.write.assert_not_awaited()
        assert outcome.state is ValidationState.DRY_RUN_DISCARDED
        assert outcome.evidence_id is None
        assert outcome.checksum is None
        assert outcome.recorded is False
        assert outcome.result.is_valid is True

    async def test_dry_run_matches_persisted_evaluations(self, orchestrator, asa_request):
        dry = await orchestrator.validate_token_metadata(
            replace(asa_request, dry_run=True), requester="issuer-ops"
        )
        persisted = await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")

        assert dry.result == persisted.result


class TestPersist:
    async def test_persisted_outcome(self, orchestrator, asa_request, store, fixed_instant):
        outcome = await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")

        assert outcome.state is ValidationState.PERSISTED
        assert outcome.recorded is True
        assert outcome.evidence_id == "evidence-0001"
        assert outcome.timestamp == fixed_instant
        assert len(outcome.checksum) == 64

        evidence = store.write.await_args.args[0]
        assert evidence.requester == "issuer-ops"
        assert evidence.checksum == outcome.checksum
        assert evidence.passed is True
        assert evidence.context.validator_version == "9.9.9"
        assert evidence.context.rule_set_version == outcome.result.standard_version
        assert evidence.counts["total_rules"] == len(outcome.result.evaluations)

    async def test_failed_validation_is_still_recorded(self, orchestrator, store):
        request = ValidationRequest(
            standard="ARC3", network="mainnet", metadata={"url": "ipfs://x"}
        )

        outcome = await orchestrator.validate_token_metadata(request, requester="issuer-ops")

        assert outcome.result.is_valid is False
        assert outcome.recorded is True
        assert store.write.await_args.args[0].passed is False

    async def test_same_input_same_instant_same_checksum(self, orchestrator, asa_request):
        first = await orchestrator.validate_token_metadata(asa_request, requester="a")
        second = await orchestrator.validate_token_metadata(asa_request, requester="b")

        assert first.checksum == second.checksum

    async def test_different_instant_different_checksum(
        self, evaluator, store, fixed_instant, asa_request
    ):
        later = ValidationOrchestrator(
            evaluator, store, clock=frozen_clock(fixed_instant + timedelta(microseconds=1))
        )
        earlier = ValidationOrchestrator(evaluator, store, clock=frozen_clock(fixed_instant))

        a = await earlier.validate_token_metadata(asa_request, requester="issuer-ops")
        b = await later.validate_token_metadata(asa_request, requester="issuer-ops")

        assert a.checksum != b.checksum

    async def test_jurisdiction_flags_are_normalized(self, orchestrator, asa_request, store):
        await orchestrator.validate_token_metadata(
            replace(asa_request, jurisdiction_flags=(" mica ", "")), requester="issuer-ops"
        )

        assert store.write.await_args.args[0].context.jurisdiction_flags == frozenset({"MICA"})

    async def test_store_failure_reports_unrecorded_result(self, orchestrator, asa_request, store):
        store.write.side_effect = PersistenceError("Evidence store timed out")

        with pytest.raises(EvidenceNotRecordedError) as exc_info:
            await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")

        details = exc_info.value.details
        assert details["reason"] == "Evidence store timed out"
        assert details["result"]["recorded"] is False
        assert details["result"]["evidence_id"] is None
        assert details["result"]["is_valid"] is True

    async def test_duplicate_evidence_id_reports_unrecorded_result(
        self, orchestrator, asa_request, store
    ):
        store.write.side_effect = DuplicateEvidenceIdError(
            "Evidence already exists", details={"evidence_id": "evidence-0001"}
        )

        with pytest.raises(EvidenceNotRecordedError) as exc_info:
            await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")

        details = exc_info.value.details
        assert details["reason"] == "Evidence already exists"
        assert details["result"]["recorded"] is False
        assert details["result"]["checksum"]

    async def test_unexpected_evaluation_error_becomes_internal(
        self, evaluator, store, asa_request, monkeypatch
    ):
        monkeypatch.setattr(evaluator, "validate", MagicMock(side_effect=RuntimeError("boom")))
        orchestrator = ValidationOrchestrator(evaluator, store)

        with pytest.raises(InternalError):
            await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")

        store.write.assert_not_awaited()


class TestCapabilityGate:
    async def test_denied_capability_stops_before_evaluation(self, orchestrator, store):
        request = ValidationRequest(
            standard="ARC200",
            network="mainnet",
            metadata={"name": "x"},
            capability=CapabilityRequest("US", "custodial", "1", "mint"),
        )

        with pytest.raises(CapabilityDeniedError, match="no matching capability rule"):
            await orchestrator.validate_token_metadata(request, requester="issuer-ops")

        store.write.assert_not_awaited()

    async def test_allowed_capability_is_reported(self, orchestrator, asa_request):
        request = replace(
            asa_request,
            dry_run=True,
            capability=CapabilityRequest("EU", "custodial", "2", "mint"),
        )

        outcome = await orchestrator.validate_token_metadata(request, requester="issuer-ops")

        assert outcome.capability.allowed is True
        assert outcome.to_dict()["capability"]["rule_id"] == outcome.capability.rule_id

    async def test_capability_without_resolver(self, evaluator, store, asa_request):
        orchestrator = ValidationOrchestrator(evaluator, store)
        request = replace(asa_request, capability=CapabilityRequest("EU", "custodial", "2", "mint"))

        with pytest.raises(ValidationInputError):
            await orchestrator.validate_token_metadata(request, requester="issuer-ops")


class TestVerifyEvidence:
    async def test_untouched_evidence_verifies(self, orchestrator, asa_request, store):
        await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")
        store.get_by_id.return_value = store.write.await_args.args[0]

        report = await orchestrator.verify_evidence("evidence-0001")

        assert report.valid is True
        assert report.stored_checksum == report.computed_checksum

    async def test_tampered_evidence_is_detected(self, orchestrator, asa_request, store):
        await orchestrator.validate_token_metadata(asa_request, requester="issuer-ops")
        evidence = store.write.await_args.args[0]
        store.get_by_id.return_value = replace(evidence, evaluations=evidence.evaluations[1:])

        report = await orchestrator.verify_evidence("evidence-0001")

        assert report.valid is False
        assert report.stored_checksum == evidence.checksum


def test_normalize_flags():
    assert normalize_flags(["mica", " Reg-D ", "", "MICA"]) == frozenset({"MICA", "REG-D"})
