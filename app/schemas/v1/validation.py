"""Token metadata validation schemas."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

MetadataValue = str | int | float | bool | None


class ValidationContextIn(BaseModel):
    network: str = Field(min_length=1, max_length=64)
    jurisdiction_flags: list[str] = Field(default_factory=list, max_length=32)
    token_standard: str | None = None

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("network must not be blank")
        return v.strip()


class CapabilityGateIn(BaseModel):
    jurisdiction: str = Field(min_length=1)
    wallet_type: str = Field(min_length=1)
    kyc_tier: str = Field(min_length=1)
    action: str = Field(min_length=1)


class ValidateRequest(BaseModel):
    standard: str = Field(min_length=1)
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    context: ValidationContextIn
    dry_run: bool = False
    token_id: str | None = Field(default=None, max_length=128)
    pre_issuance_id: str | None = Field(default=None, max_length=128)
    capability: CapabilityGateIn | None = None


class StandardValidateRequest(BaseModel):
    """Body for the evaluation-only endpoint; the standard comes from the path."""

    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    context: ValidationContextIn | None = None


class RuleEvaluationOut(BaseModel):
    rule_name: str
    status: str
    category: str
    severity: str
    message: str | None = None
    observed: str | None = None


class ValidationResultOut(BaseModel):
    standard: str
    standard_version: str
    is_valid: bool
    passed: bool
    evaluations: list[RuleEvaluationOut]
    errors: list[str]
    warnings: list[str]
    message: str


class ValidateResponse(ValidationResultOut):
    state: str
    context: dict[str, Any]
    evidence_id: str | None = None
    checksum: str | None = None
    timestamp: str | None = None
    recorded: bool = False
    capability: dict[str, Any] | None = None
