"""Shared fixtures for the journal-analytics test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest


@pytest.fixture
def fixed_now() -> datetime:
    """Stand-in for the current time when a timestamp is unparsable."""
    return datetime(2024, 3, 13, 15, 0, tzinfo=timezone.utc)
