"""Standard profile registry.

Built once at startup and read-only afterwards; safe to share across
concurrent requests without locking.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from app.compliance.profiles import builtin_profiles
from app.compliance.standards import (
    STANDARD_ORDER,
    StandardProfile,
    TokenStandard,
    parse_version,
)
from app.core.errors import NotFoundError, ProfileDefinitionError

logger = structlog.get_logger(__name__)


class StandardProfileRegistry:
    """Versioned token standard profiles keyed by standard."""

    def __init__(self, profiles: Iterable[StandardProfile]):
        ordered = list(profiles)
        _validate_profiles(ordered)
        self._profiles: tuple[StandardProfile, ...] = tuple(
            sorted(
                ordered,
                key=lambda p: (STANDARD_ORDER[p.standard], tuple(-part for part in p.version_key)),
            )
        )
        self._active: dict[TokenStandard, StandardProfile] = {
            p.standard: p for p in self._profiles if p.active
        }
        logger.info(
            "Standard profile registry loaded",
            profiles=len(self._profiles),
            active_standards=[s.value for s in self._active],
        )

    @classmethod
    def default(cls) -> StandardProfileRegistry:
        return cls(builtin_profiles())

    def get_all_standards(self, active_only: bool = True) -> list[StandardProfile]:
        """All profiles ordered by standard, then version descending."""
        if active_only:
            return [p for p in self._profiles if p.active]
        return list(self._profiles)

    def get_standard_profile(self, standard: TokenStandard) -> StandardProfile:
        """Return the active profile for ``standard``."""
        profile = self._active.get(standard)
        if profile is None:
            raise NotFoundError(
                f"No active profile for token standard: {standard}",
                details={"standard": str(standard)},
            )
        return profile

    def get_profile_version(self, standard: TokenStandard, version: str) -> StandardProfile:
        """Return a specific profile version, including superseded ones."""
        for profile in self._profiles:
            if profile.standard == standard and profile.version == version:
                return profile
        raise NotFoundError(
            f"Profile not found: {standard} {version}",
            details={"standard": str(standard), "version": version},
        )

    def is_standard_supported(self, standard: TokenStandard) -> bool:
        return standard in self._active


def _validate_profiles(profiles: list[StandardProfile]) -> None:
    seen_versions: set[tuple[TokenStandard, str]] = set()
    active_seen: set[TokenStandard] = set()

    for profile in profiles:
        ident = profile.profile_id
        try:
            parse_version(profile.version)
        except ValueError as e:
            raise ProfileDefinitionError(f"{ident}: version must be numeric semver") from e

        key = (profile.standard, profile.version)
        if key in seen_versions:
            raise ProfileDefinitionError(f"{ident}: duplicate profile version")
        seen_versions.add(key)

        if profile.active:
            if profile.standard in active_seen:
                raise ProfileDefinitionError(
                    f"{ident}: more than one active profile for {profile.standard}"
                )
            active_seen.add(profile.standard)

        names = profile.field_names
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ProfileDefinitionError(f"{ident}: duplicate field names {duplicates}")

        for rule in profile.all_fields:
            if rule.pattern is None:
                continue
            try:
                re.compile(rule.pattern)
            except re.error as e:
                raise ProfileDefinitionError(
                    f"{ident}: invalid pattern for field '{rule.name}'"
                ) from e
