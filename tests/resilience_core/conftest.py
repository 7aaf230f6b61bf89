from __future__ import annotations

import pytest

from tests.resilience_core.support.fakes import FakeLogger


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()
