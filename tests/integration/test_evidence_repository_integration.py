"""Integration tests for the evidence repository against PostgreSQL.

Each test runs in a transaction that is rolled back; the table itself never
allows rows to be updated or deleted.
"""

from __future__ import annotations

import os
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.compliance.canonical import compute_checksum
from app.compliance.models import (
    EvaluationStatus,
    EvidenceFilter,
    RuleCategory,
    RuleEvaluation,
    ValidationContext,
    ValidationEvidence,
)
from app.compliance.standards import TokenStandard
from app.core.config import to_asyncpg_url
from app.core.errors import DuplicateEvidenceIdError
from app.persistence.evidence_repository import EvidenceRepository


def _require_database_url() -> str:
    database_url = os.environ.get("DATABASE_URL_APP", "").strip()
    if not database_url:
        pytest.skip("DATABASE_URL_APP is not configured for integration tests")
    return to_asyncpg_url(database_url)


@pytest.fixture
async def session():
    """Async session whose work is rolled back after each test."""
    engine = create_async_engine(_require_database_url())
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
        await s.rollback()
    await engine.dispose()


def _evidence(instant, token_id: str, passed: bool = True) -> ValidationEvidence:
    context = ValidationContext(
        token_standard=TokenStandard.ASA,
        network="testnet",
        jurisdiction_flags=frozenset({"MICA"}),
        rule_set_version="1.0.0",
    )
    evaluations = (
        RuleEvaluation("name", EvaluationStatus.PASS, RuleCategory.REQUIRED_FIELD),
        RuleEvaluation(
            "decimals",
            EvaluationStatus.PASS if passed else EvaluationStatus.FAIL,
            RuleCategory.REQUIRED_FIELD,
            message=None if passed else "Field 'decimals' exceeds maximum value of 19",
        ),
    )
    return ValidationEvidence(
        evidence_id=str(uuid.uuid4()),
        timestamp=instant,
        requester="integration",
        context=context,
        evaluations=evaluations,
        passed=passed,
        checksum=compute_checksum(context, evaluations, instant),
        token_id=token_id,
        counts={"total_rules": 2, "passed_rules": 2 if passed else 1},
    )


@pytest.mark.integration
@pytest.mark.asyncio
class TestEvidenceRepository:
    async def test_insert_then_get_round_trips_checksum(self, session, fixed_instant):
        repo = EvidenceRepository(session)
        evidence = _evidence(fixed_instant, token_id=f"tok-{uuid.uuid4()}")

        await repo.insert(evidence)
        stored = await repo.get(evidence.evidence_id)

        assert stored == evidence
        assert (
            compute_checksum(stored.context, stored.evaluations, stored.timestamp)
            == evidence.checksum
        )

    async def test_duplicate_insert_is_rejected(self, session, fixed_instant):
        repo = EvidenceRepository(session)
        evidence = _evidence(fixed_instant, token_id=f"tok-{uuid.uuid4()}")
        await repo.insert(evidence)

        with pytest.raises(DuplicateEvidenceIdError):
            await repo.insert(evidence)

    async def test_list_and_latest_passing(self, session, fixed_instant):
        repo = EvidenceRepository(session)
        token_id = f"tok-{uuid.uuid4()}"
        older = _evidence(fixed_instant, token_id)
        newer_failed = _evidence(fixed_instant + timedelta(seconds=1), token_id, passed=False)
        for evidence in (older, newer_failed):
            await repo.insert(evidence)

        items = await repo.list(EvidenceFilter(token_id=token_id))
        latest = await repo.latest_passing(token_id=token_id)

        assert [e.evidence_id for e in items] == [newer_failed.evidence_id, older.evidence_id]
        assert await repo.count(EvidenceFilter(token_id=token_id, passed=False)) == 1
        assert latest.evidence_id == older.evidence_id
