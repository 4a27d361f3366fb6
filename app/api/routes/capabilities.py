"""Capability matrix routes."""

from fastapi import APIRouter, Query

from app.core.dependencies import Resolver
from app.core.errors import NoMatchingCapabilitiesError
from app.schemas.v1.capabilities import (
    CapabilityCheckRequest,
    CapabilityCheckResponse,
    CapabilityListResponse,
    CapabilityVersionResponse,
)
from app.schemas.v1.common import ApiError

router = APIRouter(
    prefix="/capabilities",
    tags=["capabilities"],
    responses={404: {"model": ApiError}},
)


@router.get("", response_model=CapabilityListResponse)
async def get_capability_matrix(
    resolver: Resolver,
    jurisdiction: str | None = Query(None),
    wallet_type: str | None = Query(None),
    token_standard: str | None = Query(None),
    kyc_tier: str | None = Query(None),
):
    """Capability entries matching every supplied filter."""
    entries = resolver.get_capability_matrix(
        jurisdiction=jurisdiction,
        wallet_type=wallet_type,
        token_standard=token_standard,
        kyc_tier=kyc_tier,
    )
    if not entries:
        raise NoMatchingCapabilitiesError(
            "No capabilities match the supplied filters",
            details={
                "jurisdiction": jurisdiction,
                "wallet_type": wallet_type,
                "token_standard": token_standard,
                "kyc_tier": kyc_tier,
            },
        )
    return CapabilityListResponse(
        version=resolver.get_version(),
        entries=[entry.to_dict() for entry in entries],
    )


@router.post("/check", response_model=CapabilityCheckResponse)
async def check_capability(request: CapabilityCheckRequest, resolver: Resolver):
    """Decide whether an action is allowed for a 4-tuple."""
    decision = resolver.check_capability(
        request.jurisdiction,
        request.wallet_type,
        request.token_standard,
        request.kyc_tier,
        request.action,
    )
    return CapabilityCheckResponse(**decision.to_dict(), version=resolver.get_version())


@router.get("/version", response_model=CapabilityVersionResponse)
async def get_capability_version(resolver: Resolver):
    """Load-time matrix version, for detecting stale cached decisions."""
    return CapabilityVersionResponse(version=resolver.get_version())
