# tests/conftest.py

"""Shared pytest fixtures for all price_tracker tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so delays and backoff run instantly.

    Tests that assert on waits patch ``time.sleep`` again locally to
    capture the requested durations.
    """
    with patch("time.sleep"):
        yield
