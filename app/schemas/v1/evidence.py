"""Validation evidence schemas."""

from pydantic import BaseModel

from app.schemas.v1.common import PageMeta
from app.schemas.v1.validation import RuleEvaluationOut


class EvidenceContextOut(BaseModel):
    token_standard: str
    network: str
    jurisdiction_flags: list[str]
    validator_version: str
    rule_set_version: str | None = None


class EvidenceOut(BaseModel):
    evidence_id: str
    timestamp: str
    requester: str
    context: EvidenceContextOut
    evaluations: list[RuleEvaluationOut]
    passed: bool
    checksum: str
    token_id: str | None = None
    pre_issuance_id: str | None = None
    summary: str = ""
    total_rules: int = 0
    passed_rules: int = 0
    failed_rules: int = 0
    skipped_rules: int = 0


class EvidenceListResponse(BaseModel):
    items: list[EvidenceOut]
    pagination: PageMeta


class IntegrityReportOut(BaseModel):
    evidence_id: str
    valid: bool
    stored_checksum: str
    computed_checksum: str
