"""Evidence repository - append-only validation evidence records.

Evidence is written once and only read back; no update or delete operation
exists.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.compliance.models import (
    EvidenceFilter,
    RuleEvaluation,
    ValidationContext,
    ValidationEvidence,
)
from app.core.errors import DuplicateEvidenceIdError
from app.persistence.base import decode_json_column, ensure_datetime, row_to_dict
from app.persistence.query_builder import build_optional_equals_where

EVIDENCE_COLUMNS = """
    evidence_id, recorded_at, requester, token_standard, network,
    jurisdiction_flags, validator_version, rule_set_version, evaluations,
    passed, checksum, token_id, pre_issuance_id, summary,
    total_rules, passed_rules, failed_rules, skipped_rules
"""


def _filter_where(evidence_filter: EvidenceFilter) -> tuple[str, dict[str, Any]]:
    return build_optional_equals_where(
        {
            "token_id": evidence_filter.token_id,
            "pre_issuance_id": evidence_filter.pre_issuance_id,
            "passed": evidence_filter.passed,
        },
        ranges={"recorded_at": (evidence_filter.from_date, evidence_filter.to_date)},
    )


def evidence_from_row(row: Any) -> ValidationEvidence:
    data = row_to_dict(row)
    context = ValidationContext.from_dict(
        {
            "token_standard": data["token_standard"],
            "network": data["network"],
            "jurisdiction_flags": decode_json_column(data["jurisdiction_flags"], []),
            "validator_version": data["validator_version"],
            "rule_set_version": data.get("rule_set_version"),
        }
    )
    evaluations = tuple(
        RuleEvaluation.from_dict(item) for item in decode_json_column(data["evaluations"], [])
    )
    return ValidationEvidence(
        evidence_id=data["evidence_id"],
        timestamp=ensure_datetime(data["recorded_at"]),
        requester=data["requester"],
        context=context,
        evaluations=evaluations,
        passed=bool(data["passed"]),
        checksum=data["checksum"],
        token_id=data.get("token_id"),
        pre_issuance_id=data.get("pre_issuance_id"),
        summary=data.get("summary") or "",
        counts={
            "total_rules": data.get("total_rules") or 0,
            "passed_rules": data.get("passed_rules") or 0,
            "failed_rules": data.get("failed_rules") or 0,
            "skipped_rules": data.get("skipped_rules") or 0,
        },
    )


class EvidenceRepository:
    """Append-only operations for validation_evidence."""

    def __init__(self, session: AsyncSession, schema: str = "compliance"):
        self.session = session
        self.table = f"{schema}.validation_evidence"

    async def insert(self, evidence: ValidationEvidence) -> str:
        """Insert one evidence record. Existing IDs are never overwritten."""
        query = text(f"""
            INSERT INTO {self.table}
                ({EVIDENCE_COLUMNS})
            VALUES
                (:evidence_id, :recorded_at, :requester, :token_standard, :network,
                 CAST(:jurisdiction_flags AS JSONB), :validator_version, :rule_set_version,
                 CAST(:evaluations AS JSONB), :passed, :checksum, :token_id,
                 :pre_issuance_id, :summary, :total_rules, :passed_rules,
                 :failed_rules, :skipped_rules)
            ON CONFLICT (evidence_id) DO NOTHING
            RETURNING evidence_id
        """)
        context = evidence.context
        result = await self.session.execute(
            query,
            {
                "evidence_id": evidence.evidence_id,
                "recorded_at": evidence.timestamp,
                "requester": evidence.requester,
                "token_standard": context.token_standard.value,
                "network": context.network,
                "jurisdiction_flags": json.dumps(sorted(context.jurisdiction_flags)),
                "validator_version": context.validator_version,
                "rule_set_version": context.rule_set_version,
                "evaluations": json.dumps([e.to_dict() for e in evidence.evaluations]),
                "passed": evidence.passed,
                "checksum": evidence.checksum,
                "token_id": evidence.token_id,
                "pre_issuance_id": evidence.pre_issuance_id,
                "summary": evidence.summary,
                "total_rules": evidence.counts.get("total_rules", len(evidence.evaluations)),
                "passed_rules": evidence.counts.get("passed_rules", 0),
                "failed_rules": evidence.counts.get("failed_rules", 0),
                "skipped_rules": evidence.counts.get("skipped_rules", 0),
            },
        )
        row = result.fetchone()
        if row is None:
            raise DuplicateEvidenceIdError(
                f"Evidence already exists: {evidence.evidence_id}",
                details={"evidence_id": evidence.evidence_id},
            )
        return row[0]

    async def get(self, evidence_id: str) -> ValidationEvidence | None:
        query = text(f"""
            SELECT {EVIDENCE_COLUMNS}
            FROM {self.table}
            WHERE evidence_id = :evidence_id
        """)
        result = await self.session.execute(query, {"evidence_id": evidence_id})
        row = result.fetchone()
        return evidence_from_row(row) if row else None

    async def list(
        self,
        evidence_filter: EvidenceFilter,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ValidationEvidence]:
        """List evidence newest first, evidence ID descending on ties."""
        where_clause, filter_params = _filter_where(evidence_filter)
        params: dict[str, Any] = {"limit": limit, "offset": offset, **filter_params}
        query = text(f"""
            SELECT {EVIDENCE_COLUMNS}
            FROM {self.table}
            WHERE {where_clause}
            ORDER BY recorded_at DESC, evidence_id DESC
            LIMIT :limit OFFSET :offset
        """)
        result = await self.session.execute(query, params)
        return [evidence_from_row(row) for row in result.fetchall()]

    async def count(self, evidence_filter: EvidenceFilter) -> int:
        where_clause, params = _filter_where(evidence_filter)
        query = text(f"""
            SELECT COUNT(*) as count FROM {self.table}
            WHERE {where_clause}
        """)
        result = await self.session.execute(query, params)
        row = result.fetchone()
        return row[0] if row else 0

    async def latest_passing(
        self,
        token_id: str | None = None,
        pre_issuance_id: str | None = None,
    ) -> ValidationEvidence | None:
        """Most recent passing evidence for a token or pre-issuance ID."""
        where_clause, params = build_optional_equals_where(
            {"token_id": token_id, "pre_issuance_id": pre_issuance_id}
        )
        query = text(f"""
            SELECT {EVIDENCE_COLUMNS}
            FROM {self.table}
            WHERE {where_clause} AND passed = TRUE
            ORDER BY recorded_at DESC, evidence_id DESC
            LIMIT 1
        """)
        result = await self.session.execute(query, params)
        row = result.fetchone()
        return evidence_from_row(row) if row else None
