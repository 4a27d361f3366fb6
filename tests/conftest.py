"""Root conftest for tests."""

import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

if os.getenv("APP_ENV", "").strip().lower() == "prod":
    raise RuntimeError("Refusing to run tests with APP_ENV=prod")

os.environ["APP_ENV"] = "local"
os.environ.setdefault("SERVER_PORT", "8010")

FIXED_INSTANT = datetime(2026, 3, 1, 12, 30, 45, 123456, tzinfo=UTC)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    dir_marker_map = {
        "unit": pytest.mark.unit,
        "smoke": pytest.mark.smoke,
        "integration": pytest.mark.integration,
        "e2e": pytest.mark.e2e,
    }
    for item in items:
        test_path = str(item.fspath)
        for dir_name, marker in dir_marker_map.items():
            if f"/{dir_name}/" in test_path or f"\\{dir_name}\\" in test_path:
                item.add_marker(marker)
                break


def make_mock_session(fetchone_row=None, fetchall_rows=None) -> AsyncMock:
    """AsyncMock session whose execute returns a mock result."""
    mock_result = MagicMock()
    mock_result.fetchone.return_value = fetchone_row
    mock_result.fetchall.return_value = fetchall_rows or []

    mock_session = AsyncMock()
    mock_session.execute = AsyncMock(return_value=mock_result)
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    return mock_session


@pytest.fixture
def mock_session():
    """Mock database session returning no rows."""
    return make_mock_session()


@pytest.fixture
def registry():
    from app.compliance.registry import StandardProfileRegistry

    return StandardProfileRegistry.default()


@pytest.fixture
def evaluator(registry):
    from app.compliance.rule_evaluator import RuleEvaluator

    return RuleEvaluator(registry)


@pytest.fixture
def capability_matrix():
    from app.compliance.capability_matrix import CapabilityMatrix
    from app.core.config import DEFAULT_CAPABILITY_MATRIX_PATH

    return CapabilityMatrix.from_file(DEFAULT_CAPABILITY_MATRIX_PATH)


@pytest.fixture
def resolver(capability_matrix):
    from app.compliance.capability_resolver import CapabilityResolver

    return CapabilityResolver(capability_matrix)


@pytest.fixture
def fixed_instant() -> datetime:
    return FIXED_INSTANT


@pytest.fixture
def asa_metadata() -> dict:
    return {
        "name": "Harbor Dollar",
        "unit_name": "HUSD",
        "total": 1_000_000,
        "decimals": 6,
        "url": "https://harbor.example/husd",
    }


@pytest.fixture
def erc20_metadata() -> dict:
    return {
        "name": "Harbor Token",
        "symbol": "HRB",
        "decimals": 18,
        "total_supply": 1_000,
        "max_supply": 10_000,
    }
