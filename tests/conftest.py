"""
Pytest configuration for the roomchat test suite.

Async tests use the anyio pytest plugin (``@pytest.mark.anyio``); they run
on asyncio only.
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
