"""Token standard profile routes."""

from fastapi import APIRouter, Query

from app.compliance.models import ValidationContext
from app.compliance.standards import TokenStandard
from app.core.config import get_settings
from app.core.dependencies import Evaluator, Registry
from app.core.errors import UnsupportedStandardError
from app.schemas.v1.common import ApiError
from app.schemas.v1.standards import StandardListResponse, StandardProfileOut
from app.schemas.v1.validation import StandardValidateRequest, ValidationResultOut
from app.services.validation_orchestrator import normalize_flags

router = APIRouter(
    prefix="/standards",
    tags=["standards"],
    responses={400: {"model": ApiError}, 404: {"model": ApiError}},
)


def _parse_standard(standard: str) -> TokenStandard:
    try:
        return TokenStandard.parse(standard)
    except ValueError:
        raise UnsupportedStandardError(standard) from None


@router.get("", response_model=StandardListResponse)
async def list_standards(registry: Registry, active_only: bool = Query(True)):
    """All registered profiles, by standard then version descending."""
    profiles = registry.get_all_standards(active_only=active_only)
    return StandardListResponse(
        standards=[p.to_dict() for p in profiles],
        total=len(profiles),
    )


@router.get("/{standard}", response_model=StandardProfileOut)
async def get_standard(
    standard: str,
    registry: Registry,
    version: str | None = Query(None),
):
    """Active profile for a standard, or a specific version when requested."""
    parsed = _parse_standard(standard)
    if version:
        return registry.get_profile_version(parsed, version).to_dict()
    return registry.get_standard_profile(parsed).to_dict()


@router.post("/{standard}/validate", response_model=ValidationResultOut)
async def validate_against_standard(
    standard: str,
    body: StandardValidateRequest,
    evaluator: Evaluator,
):
    """Evaluate metadata against a standard. Nothing is persisted."""
    parsed = _parse_standard(standard)
    context = None
    if body.context is not None:
        context = ValidationContext(
            token_standard=parsed,
            network=body.context.network,
            jurisdiction_flags=normalize_flags(body.context.jurisdiction_flags),
            validator_version=get_settings().compliance.validator_version,
        )
    result = evaluator.validate(
        parsed,
        body.metadata,
        name=body.name,
        symbol=body.symbol,
        decimals=body.decimals,
        context=context,
    )
    return ValidationResultOut(**result.to_dict())
