"""Token standard profile schemas."""

from typing import Any

from pydantic import BaseModel, Field


class FieldRuleOut(BaseModel):
    name: str
    type: str
    description: str | None = None
    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    allowed_values: list[str] = Field(default_factory=list)
    min_value: int | None = None
    max_value: int | None = None
    severity: str
    aliases: list[str] = Field(default_factory=list)
    active_when: list[str] = Field(default_factory=list)


class CrossFieldRuleOut(BaseModel):
    name: str
    check: str
    severity: str
    params: dict[str, Any] = Field(default_factory=dict)
    active_when: list[str] = Field(default_factory=list)


class StandardProfileOut(BaseModel):
    profile_id: str
    standard: str
    version: str
    description: str
    active: bool
    required_fields: list[FieldRuleOut]
    optional_fields: list[FieldRuleOut]
    cross_field_rules: list[CrossFieldRuleOut]
    allowed_networks: list[str]
    specification_url: str | None = None


class StandardListResponse(BaseModel):
    standards: list[StandardProfileOut]
    total: int
