"""Unit tests for API schemas."""

import pytest
from pydantic import ValidationError

from app.schemas.v1.capabilities import CapabilityCheckRequest, CapabilityCheckResponse
from app.schemas.v1.evidence import EvidenceOut
from app.schemas.v1.standards import StandardProfileOut
from app.schemas.v1.validation import ValidateRequest, ValidationContextIn


def test_validate_request_minimal():
    request = ValidateRequest(standard="ASA", context={"network": "testnet"})
    assert request.metadata == {}
    assert request.dry_run is False
    assert request.capability is None


def test_validate_request_requires_context():
    with pytest.raises(ValidationError):
        ValidateRequest(standard="ASA")


def test_context_network_is_stripped():
    assert ValidationContextIn(network=" mainnet ").network == "mainnet"


def test_context_rejects_blank_network():
    with pytest.raises(ValidationError):
        ValidationContextIn(network="   ")


def test_metadata_rejects_nested_values():
    with pytest.raises(ValidationError):
        ValidateRequest(
            standard="ASA",
            context={"network": "testnet"},
            metadata={"properties": {"nested": True}},
        )


def test_metadata_keeps_scalar_types():
    request = ValidateRequest(
        standard="ASA",
        context={"network": "testnet"},
        metadata={"decimals": 6, "default_frozen": False, "url": "https://x.example"},
    )
    assert request.metadata["decimals"] == 6
    assert request.metadata["default_frozen"] is False


def test_capability_check_request_requires_all_dimensions():
    with pytest.raises(ValidationError):
        CapabilityCheckRequest(
            jurisdiction="EU", wallet_type="", token_standard="ASA", kyc_tier="2", action="mint"
        )


def test_capability_check_response_from_decision(resolver):
    decision = resolver.check_capability("EU", "custodial", "ASA", "2", "mint")
    response = CapabilityCheckResponse(**decision.to_dict(), version=resolver.get_version())
    assert response.allowed is True
    assert response.matched_entry.jurisdiction == "EU"


def test_standard_profile_out_from_registry(registry):
    for profile in registry.get_all_standards(active_only=False):
        out = StandardProfileOut(**profile.to_dict())
        assert out.standard == profile.standard.value


def test_evidence_out_accepts_counts():
    out = EvidenceOut(
        evidence_id="ev-1",
        timestamp="2026-03-01T12:30:45.123456Z",
        requester="issuer-ops",
        context={
            "token_standard": "ASA",
            "network": "testnet",
            "jurisdiction_flags": [],
            "validator_version": "1.0.0",
        },
        evaluations=[],
        passed=True,
        checksum="a" * 64,
        total_rules=3,
    )
    assert out.total_rules == 3
    assert out.failed_rules == 0
