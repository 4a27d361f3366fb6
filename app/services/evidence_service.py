"""Evidence store - bounded, paginated access to validation evidence."""

from __future__ import annotations

import asyncio
import csv
import io
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.compliance.canonical import format_timestamp
from app.compliance.models import EvidenceFilter, EvidencePage, ValidationEvidence
from app.core.config import ComplianceConfig, get_settings
from app.core.errors import (
    InvalidPaginationError,
    NotFoundError,
    PersistenceError,
    ValidationInputError,
)
from app.persistence.evidence_repository import EvidenceRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CSV_COLUMNS = (
    "evidence_id",
    "timestamp",
    "requester",
    "token_standard",
    "network",
    "jurisdiction_flags",
    "validator_version",
    "rule_set_version",
    "token_id",
    "pre_issuance_id",
    "passed",
    "total_rules",
    "passed_rules",
    "failed_rules",
    "skipped_rules",
    "checksum",
    "summary",
)


def clamp_page_size(page_size: int | None, default: int, maximum: int) -> int:
    if page_size is None:
        return default
    return max(1, min(page_size, maximum))


def validate_filter(evidence_filter: EvidenceFilter) -> None:
    if (
        evidence_filter.from_date is not None
        and evidence_filter.to_date is not None
        and evidence_filter.from_date > evidence_filter.to_date
    ):
        raise ValidationInputError(
            "from_date must not be after to_date",
            details={
                "from_date": evidence_filter.from_date.isoformat(),
                "to_date": evidence_filter.to_date.isoformat(),
            },
        )


def evidence_export_record(evidence: ValidationEvidence) -> dict[str, Any]:
    """Flat export row with a fixed field order."""
    context = evidence.context
    return {
        "evidence_id": evidence.evidence_id,
        "timestamp": format_timestamp(evidence.timestamp),
        "requester": evidence.requester,
        "token_standard": context.token_standard.value,
        "network": context.network,
        "jurisdiction_flags": sorted(context.jurisdiction_flags),
        "validator_version": context.validator_version,
        "rule_set_version": context.rule_set_version,
        "token_id": evidence.token_id,
        "pre_issuance_id": evidence.pre_issuance_id,
        "passed": evidence.passed,
        "total_rules": evidence.counts.get("total_rules", len(evidence.evaluations)),
        "passed_rules": evidence.counts.get("passed_rules", 0),
        "failed_rules": evidence.counts.get("failed_rules", 0),
        "skipped_rules": evidence.counts.get("skipped_rules", 0),
        "checksum": evidence.checksum,
        "summary": evidence.summary,
    }


def render_json_export(items: list[ValidationEvidence]) -> bytes:
    records = []
    for evidence in items:
        record = evidence_export_record(evidence)
        record["evaluations"] = [e.to_dict() for e in evidence.evaluations]
        records.append(record)
    return json.dumps(records, indent=2, ensure_ascii=True).encode("utf-8")


def render_csv_export(items: list[ValidationEvidence]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for evidence in items:
        record = evidence_export_record(evidence)
        record["jurisdiction_flags"] = ";".join(record["jurisdiction_flags"])
        record["passed"] = "true" if record["passed"] else "false"
        writer.writerow(["" if record[col] is None else record[col] for col in CSV_COLUMNS])
    return buffer.getvalue().encode("utf-8")


class EvidenceService:
    """Evidence store operations with bounded timeouts.

    Every database call runs under ``evidence_store_timeout_seconds``; a
    timeout or driver failure surfaces as ``PersistenceError`` instead of
    hanging the request.
    """

    def __init__(self, session: AsyncSession, config: ComplianceConfig | None = None):
        self.session = session
        settings = get_settings()
        self._config = config or settings.compliance
        self.evidence_repo = EvidenceRepository(session, schema=settings.database.schema_name)

    async def _bounded(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self._config.evidence_store_timeout_seconds):
                return await call()
        except TimeoutError as exc:
            logger.warning("Evidence store operation timed out", operation=operation)
            raise PersistenceError(
                "Evidence store timed out", details={"operation": operation}
            ) from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "Evidence store operation failed",
                operation=operation,
                error=str(exc),
                exc_info=True,
            )
            raise PersistenceError(
                "Evidence store unavailable", details={"operation": operation}
            ) from exc

    async def write(self, evidence: ValidationEvidence) -> str:
        """Insert and commit one evidence record atomically."""

        async def _write() -> str:
            evidence_id = await self.evidence_repo.insert(evidence)
            await self.session.commit()
            return evidence_id

        evidence_id = await self._bounded("write", _write)
        logger.info(
            "Validation evidence recorded",
            evidence_id=evidence_id,
            token_standard=evidence.context.token_standard.value,
            passed=evidence.passed,
        )
        return evidence_id

    async def get_by_id(self, evidence_id: str) -> ValidationEvidence:
        evidence = await self._bounded("get", lambda: self.evidence_repo.get(evidence_id))
        if evidence is None:
            raise NotFoundError(
                f"Evidence not found: {evidence_id}", details={"evidence_id": evidence_id}
            )
        return evidence

    async def list(
        self,
        evidence_filter: EvidenceFilter | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> EvidencePage:
        """Page through evidence, newest first.

        ``page_size`` is clamped to ``[1, max_page_size]``. A page past the
        end returns no items but still reports the total count.
        """
        if page < 1:
            raise InvalidPaginationError(
                "page must be greater than or equal to 1", details={"page": page}
            )
        evidence_filter = evidence_filter or EvidenceFilter()
        validate_filter(evidence_filter)
        size = clamp_page_size(
            page_size, self._config.default_page_size, self._config.max_page_size
        )

        total = await self._bounded("count", lambda: self.evidence_repo.count(evidence_filter))
        items: list[ValidationEvidence] = []
        offset = (page - 1) * size
        if offset < total:
            items = await self._bounded(
                "list",
                lambda: self.evidence_repo.list(evidence_filter, limit=size, offset=offset),
            )
        return EvidencePage(items=tuple(items), total_count=total, page=page, page_size=size)

    async def latest_passing(
        self,
        token_id: str | None = None,
        pre_issuance_id: str | None = None,
    ) -> ValidationEvidence | None:
        if not token_id and not pre_issuance_id:
            raise ValidationInputError("token_id or pre_issuance_id is required")
        return await self._bounded(
            "latest_passing",
            lambda: self.evidence_repo.latest_passing(
                token_id=token_id, pre_issuance_id=pre_issuance_id
            ),
        )

    async def _export_items(self, evidence_filter: EvidenceFilter) -> list[ValidationEvidence]:
        validate_filter(evidence_filter)
        limit = self._config.export_max_records
        items = await self._bounded(
            "export", lambda: self.evidence_repo.list(evidence_filter, limit=limit, offset=0)
        )
        logger.info("Validation evidence exported", records=len(items), limit=limit)
        return items

    async def export_json(self, evidence_filter: EvidenceFilter | None = None) -> bytes:
        return render_json_export(await self._export_items(evidence_filter or EvidenceFilter()))

    async def export_csv(self, evidence_filter: EvidenceFilter | None = None) -> bytes:
        return render_csv_export(await self._export_items(evidence_filter or EvidenceFilter()))
