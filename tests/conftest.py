"""Shared fixtures."""

from __future__ import annotations

import pytest

from docwatch.clock import ManualClock

from tests.helpers import T0


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start_ms=T0)
