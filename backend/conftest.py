"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
import pytest

from core_backend.tests.fixtures import *  # noqa: F401,F403


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def reset_app_settings():
    """
    Drop cached business settings after each test so a test that edits
    GlobalSettings cannot leak into the next one.
    """
    from settings.config import app_settings

    app_settings.invalidate()
    yield
    app_settings.invalidate()


@pytest.fixture
def api_client():
    """
    Provide DRF API client for testing.

    Usage:
        def test_my_api(api_client, cashier):
            api_client.force_authenticate(user=cashier)
            response = api_client.get('/api/orders/')
    """
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def cashier_client(api_client, cashier):
    api_client.force_authenticate(user=cashier)
    return api_client


@pytest.fixture
def manager_client(manager):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=manager)
    return client
