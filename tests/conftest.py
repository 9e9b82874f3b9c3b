"""Shared test fixtures for mv-checker tests"""

import pytest

from tests.fakes import FakeScyllaApi


@pytest.fixture
def fake_api():
    return FakeScyllaApi()


# Pytest markers
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "optional: mark test as optional (may be skipped in CI)"
    )
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
