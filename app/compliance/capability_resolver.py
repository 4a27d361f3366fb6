"""Capability resolver - matrix queries and point checks.

Pure functions of the loaded matrix and the input tuple. ``check_capability``
is total: every input yields a decision, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from app.compliance.capability_matrix import (
    CapabilityEntry,
    CapabilityMatrix,
    normalize_dimension,
    normalize_standard,
)
from app.core.errors import CapabilityDeniedError

logger = structlog.get_logger(__name__)

NO_MATCH_REASON = "no matching capability rule"


@dataclass(frozen=True)
class CapabilityDecision:
    allowed: bool
    reason: str
    required_checks: tuple[str, ...] = ()
    rule_id: str | None = None
    matched_entry: CapabilityEntry | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "required_checks": list(self.required_checks),
            "rule_id": self.rule_id,
            "matched_entry": self.matched_entry.to_dict() if self.matched_entry else None,
        }


class CapabilityResolver:
    def __init__(self, matrix: CapabilityMatrix):
        self.matrix = matrix
        self._index = {entry.key: entry for entry in matrix.entries}

    def get_capability_matrix(
        self,
        jurisdiction: str | None = None,
        wallet_type: str | None = None,
        token_standard: str | None = None,
        kyc_tier: str | None = None,
    ) -> list[CapabilityEntry]:
        """Entries matching every supplied filter; ``None`` filters match anything.

        Comparison is case-insensitive; standards also ignore ``-`` and ``_``.
        """
        wanted = (
            _norm_or_none(jurisdiction, normalize_dimension),
            _norm_or_none(wallet_type, normalize_dimension),
            _norm_or_none(token_standard, normalize_standard),
            _norm_or_none(kyc_tier, normalize_dimension),
        )
        return [
            entry
            for entry in self.matrix.entries
            if all(w is None or w == part for w, part in zip(wanted, entry.key, strict=True))
        ]

    def find_entry(
        self, jurisdiction: str, wallet_type: str, token_standard: str, kyc_tier: str
    ) -> CapabilityEntry | None:
        """Exact 4-tuple match, or None."""
        key = (
            normalize_dimension(jurisdiction),
            normalize_dimension(wallet_type),
            normalize_standard(token_standard),
            normalize_dimension(kyc_tier),
        )
        return self._index.get(key)

    def check_capability(
        self,
        jurisdiction: str,
        wallet_type: str,
        token_standard: str,
        kyc_tier: str,
        action: str,
    ) -> CapabilityDecision:
        try:
            entry = self.find_entry(jurisdiction, wallet_type, token_standard, kyc_tier)
        except (AttributeError, TypeError):
            entry = None

        if entry is None:
            decision = CapabilityDecision(allowed=False, reason=NO_MATCH_REASON)
        elif not isinstance(action, str) or not entry.allows(action):
            decision = CapabilityDecision(
                allowed=False,
                reason=f"action '{action}' is not allowed for {entry.rule_id}",
                rule_id=entry.rule_id,
                matched_entry=entry,
            )
        else:
            decision = CapabilityDecision(
                allowed=True,
                reason=f"action '{action}' is allowed",
                required_checks=entry.required_checks,
                rule_id=entry.rule_id,
                matched_entry=entry,
            )

        log = logger.info if decision.allowed else logger.warning
        log(
            "Capability allowed" if decision.allowed else "Capability denied",
            jurisdiction=jurisdiction,
            wallet_type=wallet_type,
            token_standard=token_standard,
            kyc_tier=kyc_tier,
            action=action,
            allowed=decision.allowed,
            rule_id=decision.rule_id,
        )
        return decision

    def require_capability(
        self,
        jurisdiction: str,
        wallet_type: str,
        token_standard: str,
        kyc_tier: str,
        action: str,
    ) -> CapabilityDecision:
        decision = self.check_capability(
            jurisdiction, wallet_type, token_standard, kyc_tier, action
        )
        if not decision.allowed:
            raise CapabilityDeniedError(
                decision.reason,
                details={
                    "jurisdiction": jurisdiction,
                    "wallet_type": wallet_type,
                    "token_standard": token_standard,
                    "kyc_tier": kyc_tier,
                    "action": action,
                    "rule_id": decision.rule_id,
                },
            )
        return decision

    def get_version(self) -> str:
        return self.matrix.version


def _norm_or_none(value: str | None, normalize) -> str | None:
    if value is None or not value.strip():
        return None
    return normalize(value)
