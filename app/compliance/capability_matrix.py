"""Capability matrix - policy table loaded once at startup.

The on-disk document is nested (jurisdictions -> wallet types -> KYC tiers ->
token standards) and is flattened into ``CapabilityEntry`` rows keyed by the
4-tuple ``(jurisdiction, wallet_type, token_standard, kyc_tier)``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from hashlib import sha256
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.errors import CapabilityMatrixLoadError

logger = structlog.get_logger(__name__)


class _DocumentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenStandardCapabilityDoc(_DocumentModel):
    standard: str = Field(min_length=1)
    actions: list[str] = Field(default_factory=list)
    checks: list[str] = Field(default_factory=list)
    notes: str | None = None


class KycTierCapabilityDoc(_DocumentModel):
    tier: str = Field(min_length=1)
    description: str = ""
    token_standards: list[TokenStandardCapabilityDoc] = Field(
        default_factory=list, alias="tokenStandards"
    )


class WalletTypeCapabilityDoc(_DocumentModel):
    type: str = Field(min_length=1)
    description: str = ""
    kyc_tiers: list[KycTierCapabilityDoc] = Field(default_factory=list, alias="kycTiers")


class JurisdictionCapabilityDoc(_DocumentModel):
    code: str = Field(min_length=1)
    name: str = ""
    wallet_types: list[WalletTypeCapabilityDoc] = Field(default_factory=list, alias="walletTypes")


class CapabilityMatrixDoc(_DocumentModel):
    version: str
    generated_at: datetime | None = Field(default=None, alias="generatedAt")
    jurisdictions: list[JurisdictionCapabilityDoc]

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("version is required")
        return value.strip()

    @field_validator("jurisdictions")
    @classmethod
    def validate_jurisdictions(
        cls, value: list[JurisdictionCapabilityDoc]
    ) -> list[JurisdictionCapabilityDoc]:
        if not value:
            raise ValueError("at least one jurisdiction is required")
        return value


def normalize_dimension(value: str) -> str:
    return value.strip().upper()


def normalize_standard(value: str) -> str:
    """Standards compare without separators, so ``ARC-200`` matches ``ARC200``."""
    return normalize_dimension(value).replace("-", "").replace("_", "")


@dataclass(frozen=True)
class CapabilityEntry:
    jurisdiction: str
    wallet_type: str
    token_standard: str
    kyc_tier: str
    allowed_actions: tuple[str, ...]
    required_checks: tuple[str, ...]
    notes: str | None = None

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (
            normalize_dimension(self.jurisdiction),
            normalize_dimension(self.wallet_type),
            normalize_standard(self.token_standard),
            normalize_dimension(self.kyc_tier),
        )

    @property
    def rule_id(self) -> str:
        return "/".join((self.jurisdiction, self.wallet_type, self.token_standard, self.kyc_tier))

    def allows(self, action: str) -> bool:
        wanted = action.strip().lower()
        return any(a.lower() == wanted for a in self.allowed_actions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction,
            "wallet_type": self.wallet_type,
            "token_standard": self.token_standard,
            "kyc_tier": self.kyc_tier,
            "allowed_actions": list(self.allowed_actions),
            "required_checks": list(self.required_checks),
            "notes": self.notes,
        }


class CapabilityMatrix:
    """Flattened, read-only capability entries plus a load-time version."""

    def __init__(self, declared_version: str, entries: list[CapabilityEntry], document_hash: str):
        self.declared_version = declared_version
        self.entries: tuple[CapabilityEntry, ...] = tuple(entries)
        self.document_hash = document_hash

    @property
    def version(self) -> str:
        return f"{self.declared_version}+{self.document_hash[:12]}"

    @classmethod
    def from_file(cls, path: str | Path) -> CapabilityMatrix:
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise CapabilityMatrixLoadError(f"Capability matrix not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise CapabilityMatrixLoadError(f"Capability matrix unreadable: {path}: {e}") from e
        matrix = cls.from_document(raw)
        logger.info(
            "Capability matrix loaded",
            path=str(path),
            version=matrix.version,
            entries=len(matrix.entries),
        )
        return matrix

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> CapabilityMatrix:
        if not isinstance(document, dict):
            raise CapabilityMatrixLoadError("Capability matrix document must be a JSON object")
        try:
            doc = CapabilityMatrixDoc.model_validate(document)
        except ValidationError as e:
            raise CapabilityMatrixLoadError(f"Invalid capability matrix: {e}") from e

        entries = _flatten(doc)
        seen: dict[tuple[str, str, str, str], CapabilityEntry] = {}
        for entry in entries:
            if entry.key in seen:
                raise CapabilityMatrixLoadError(
                    f"Duplicate capability entry for {entry.rule_id}"
                )
            seen[entry.key] = entry

        canonical = json.dumps(
            document, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str
        )
        return cls(doc.version, entries, sha256(canonical.encode("utf-8")).hexdigest())


def _flatten(doc: CapabilityMatrixDoc) -> list[CapabilityEntry]:
    entries: list[CapabilityEntry] = []
    for jurisdiction in doc.jurisdictions:
        for wallet in jurisdiction.wallet_types:
            for tier in wallet.kyc_tiers:
                for standard in tier.token_standards:
                    entries.append(
                        CapabilityEntry(
                            jurisdiction=jurisdiction.code,
                            wallet_type=wallet.type,
                            token_standard=standard.standard,
                            kyc_tier=tier.tier,
                            allowed_actions=tuple(standard.actions),
                            required_checks=tuple(standard.checks),
                            notes=standard.notes,
                        )
                    )
    return entries
