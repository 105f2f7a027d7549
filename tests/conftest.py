"""
Shared fixtures. Sources live under src/ (see pythonpath in pyproject.toml).
"""
from datetime import datetime, timezone

import pytest

from core.entities import ExtractionSession
from services.config import RunConfig


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def session(now):
    return ExtractionSession(target_count=10, started_at=now)


@pytest.fixture
def fast_run_config():
    """Run parameters with every delay zeroed."""
    return RunConfig(
        target_count=10,
        request_delay_ms=0,
        settle_delay_ms=0,
        retry_base_delay_s=0,
        wait_timeout_ms=0,
        detail_timeout_s=5,
    )
