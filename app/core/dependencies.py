"""Dependency injection helpers and type aliases.

The profile registry and capability resolver are built once in the app
lifespan and read from ``app.state``; everything request-scoped is built per
call on top of the database session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.compliance.capability_resolver import CapabilityResolver
from app.compliance.registry import StandardProfileRegistry
from app.compliance.rule_evaluator import RuleEvaluator
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import ValidationInputError
from app.services.evidence_service import EvidenceService
from app.services.validation_orchestrator import ValidationOrchestrator
from app.utils.clock import Clock, utc_now


def get_registry(request: Request) -> StandardProfileRegistry:
    return request.app.state.registry


def get_capability_resolver(request: Request) -> CapabilityResolver:
    return request.app.state.capability_resolver


def get_clock() -> Clock:
    return utc_now


def get_rule_evaluator(
    registry: Annotated[StandardProfileRegistry, Depends(get_registry)],
) -> RuleEvaluator:
    return RuleEvaluator(registry)


def get_requester(request: Request) -> str:
    """Requester identity forwarded by the upstream gateway."""
    header = get_settings().security.requester_header
    requester = (request.headers.get(header) or "").strip()
    if not requester:
        raise ValidationInputError(
            f"Missing requester identity header: {header}", details={"header": header}
        )
    return requester


def get_evidence_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> EvidenceService:
    return EvidenceService(session)


def get_orchestrator(
    evaluator: Annotated[RuleEvaluator, Depends(get_rule_evaluator)],
    evidence_service: Annotated[EvidenceService, Depends(get_evidence_service)],
    resolver: Annotated[CapabilityResolver, Depends(get_capability_resolver)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ValidationOrchestrator:
    return ValidationOrchestrator(
        evaluator,
        evidence_service,
        resolver,
        validator_version=get_settings().compliance.validator_version,
        clock=clock,
    )


Registry = Annotated[StandardProfileRegistry, Depends(get_registry)]
Resolver = Annotated[CapabilityResolver, Depends(get_capability_resolver)]
Evaluator = Annotated[RuleEvaluator, Depends(get_rule_evaluator)]
Requester = Annotated[str, Depends(get_requester)]
EvidenceStore = Annotated[EvidenceService, Depends(get_evidence_service)]
Orchestrator = Annotated[ValidationOrchestrator, Depends(get_orchestrator)]

__all__ = [
    "Registry",
    "Resolver",
    "Evaluator",
    "Requester",
    "EvidenceStore",
    "Orchestrator",
    "get_registry",
    "get_capability_resolver",
    "get_clock",
    "get_rule_evaluator",
    "get_requester",
    "get_evidence_service",
    "get_orchestrator",
]
