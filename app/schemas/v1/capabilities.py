"""Capability matrix schemas."""

from pydantic import BaseModel, Field


class CapabilityEntryOut(BaseModel):
    jurisdiction: str
    wallet_type: str
    token_standard: str
    kyc_tier: str
    allowed_actions: list[str]
    required_checks: list[str]
    notes: str | None = None


class CapabilityListResponse(BaseModel):
    version: str
    entries: list[CapabilityEntryOut]


class CapabilityCheckRequest(BaseModel):
    jurisdiction: str = Field(min_length=1)
    wallet_type: str = Field(min_length=1)
    token_standard: str = Field(min_length=1)
    kyc_tier: str = Field(min_length=1)
    action: str = Field(min_length=1)


class CapabilityCheckResponse(BaseModel):
    allowed: bool
    reason: str
    required_checks: list[str] = Field(default_factory=list)
    rule_id: str | None = None
    matched_entry: CapabilityEntryOut | None = None
    version: str


class CapabilityVersionResponse(BaseModel):
    version: str
