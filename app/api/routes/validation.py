"""Token metadata validation and evidence routes."""

from datetime import datetime
from enum import StrEnum

from fastapi import APIRouter, Query
from fastapi.responses import Response

from app.compliance.canonical import format_timestamp
from app.compliance.models import EvidenceFilter, ValidationEvidence
from app.compliance.standards import TokenStandard
from app.core.dependencies import EvidenceStore, Orchestrator, Requester
from app.core.errors import NotFoundError, ValidationInputError
from app.schemas.v1.common import ApiError, PageMeta
from app.schemas.v1.evidence import EvidenceListResponse, EvidenceOut, IntegrityReportOut
from app.schemas.v1.validation import ValidateRequest, ValidateResponse
from app.services.validation_orchestrator import CapabilityRequest, ValidationRequest

router = APIRouter(
    prefix="/validation",
    tags=["validation"],
    responses={
        400: {"model": ApiError},
        404: {"model": ApiError},
        503: {"model": ApiError},
    },
)


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"


def _evidence_out(evidence: ValidationEvidence) -> EvidenceOut:
    return EvidenceOut(**{**evidence.to_dict(), "timestamp": format_timestamp(evidence.timestamp)})


def _to_validation_request(body: ValidateRequest) -> ValidationRequest:
    if body.context.token_standard:
        try:
            same = TokenStandard.parse(body.context.token_standard) == TokenStandard.parse(
                body.standard
            )
        except ValueError:
            same = False
        if not same:
            raise ValidationInputError(
                "context.token_standard does not match standard",
                details={
                    "standard": body.standard,
                    "context.token_standard": body.context.token_standard,
                },
            )
    capability = None
    if body.capability is not None:
        capability = CapabilityRequest(
            jurisdiction=body.capability.jurisdiction,
            wallet_type=body.capability.wallet_type,
            kyc_tier=body.capability.kyc_tier,
            action=body.capability.action,
        )
    return ValidationRequest(
        standard=body.standard,
        network=body.context.network,
        metadata=body.metadata,
        name=body.name,
        symbol=body.symbol,
        decimals=body.decimals,
        jurisdiction_flags=tuple(body.context.jurisdiction_flags),
        dry_run=body.dry_run,
        token_id=body.token_id,
        pre_issuance_id=body.pre_issuance_id,
        capability=capability,
    )


def _evidence_filter(
    token_id: str | None,
    pre_issuance_id: str | None,
    passed: bool | None,
    from_date: datetime | None,
    to_date: datetime | None,
) -> EvidenceFilter:
    return EvidenceFilter(
        token_id=token_id,
        pre_issuance_id=pre_issuance_id,
        passed=passed,
        from_date=from_date,
        to_date=to_date,
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate_token_metadata(
    body: ValidateRequest,
    orchestrator: Orchestrator,
    requester: Requester,
):
    """Validate token metadata; non-dry-run calls record evidence."""
    outcome = await orchestrator.validate_token_metadata(_to_validation_request(body), requester)
    return ValidateResponse(**outcome.to_dict())


@router.get("/evidence", response_model=EvidenceListResponse)
async def list_evidence(
    store: EvidenceStore,
    page: int = Query(1),
    page_size: int | None = Query(None),
    token_id: str | None = Query(None),
    pre_issuance_id: str | None = Query(None),
    passed: bool | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
):
    """List evidence newest first with optional filters."""
    result = await store.list(
        _evidence_filter(token_id, pre_issuance_id, passed, from_date, to_date),
        page=page,
        page_size=page_size,
    )
    return EvidenceListResponse(
        items=[_evidence_out(e) for e in result.items],
        pagination=PageMeta(
            page=result.page,
            page_size=result.page_size,
            total_count=result.total_count,
            total_pages=result.total_pages,
        ),
    )


@router.get("/evidence/export")
async def export_evidence(
    store: EvidenceStore,
    export_format: ExportFormat = Query(ExportFormat.JSON, alias="format"),
    token_id: str | None = Query(None),
    pre_issuance_id: str | None = Query(None),
    passed: bool | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
):
    """Export evidence as JSON or CSV."""
    evidence_filter = _evidence_filter(token_id, pre_issuance_id, passed, from_date, to_date)
    if export_format is ExportFormat.CSV:
        content = await store.export_csv(evidence_filter)
        media_type = "text/csv"
    else:
        content = await store.export_json(evidence_filter)
        media_type = "application/json"
    filename = f"validation-evidence.{export_format.value}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/evidence/latest-passing", response_model=EvidenceOut)
async def get_latest_passing_evidence(
    store: EvidenceStore,
    token_id: str | None = Query(None),
    pre_issuance_id: str | None = Query(None),
):
    """Most recent passing evidence for a token or pre-issuance ID."""
    evidence = await store.latest_passing(token_id=token_id, pre_issuance_id=pre_issuance_id)
    if evidence is None:
        raise NotFoundError(
            "No passing validation evidence found",
            details={"token_id": token_id, "pre_issuance_id": pre_issuance_id},
        )
    return _evidence_out(evidence)


@router.get("/evidence/{evidence_id}", response_model=EvidenceOut)
async def get_evidence(evidence_id: str, store: EvidenceStore):
    """Get one evidence record."""
    return _evidence_out(await store.get_by_id(evidence_id))


@router.get("/evidence/{evidence_id}/verify", response_model=IntegrityReportOut)
async def verify_evidence(evidence_id: str, orchestrator: Orchestrator):
    """Recompute a record's checksum and compare it with the stored one."""
    report = await orchestrator.verify_evidence(evidence_id)
    return IntegrityReportOut(**report.to_dict())
