"""
Pytest fixtures and configuration for The Product Report backend tests

Every test runs against a clean settings object (no third-party keys, no
database) and an empty analytics cache and rate limiter.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from product_report.core.cache import analytics_cache
from product_report.core.config import get_settings
from product_report.core.rate_limit import rate_limiter

AUTH_SECRET = "test-auth-secret"
CRON_SECRET = "test-cron-secret"
PAYLOAD_API_SECRET = "test-payload-secret"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """
    Known secrets, empty API keys and no DATABASE_URL

    Scope: function (settings cache cleared before and after each test)
    """
    monkeypatch.setenv("AUTH_SECRET", AUTH_SECRET)
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("PAYLOAD_API_SECRET", PAYLOAD_API_SECRET)
    for key in (
        "DATABASE_URL",
        "REVENUECAT_API_KEY",
        "MIXPANEL_API_SECRET",
        "STATSIG_CONSOLE_API_KEY",
        "GEMINI_API_KEY",
    ):
        monkeypatch.setenv(key, "")

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_in_memory_state():
    analytics_cache.clear()
    rate_limiter.reset()
    yield
    analytics_cache.clear()
    rate_limiter.reset()


def make_token(secret: str = AUTH_SECRET, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    """Signed session JWT like the ones the CMS issues"""
    payload = {
        "id": "1",
        "email": "editor@theproductreport.org",
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(role='admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token(id='2', email='reader@example.com', role='user')}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def client():
    """
    TestClient for the API without the lifespan background tasks

    Dependency overrides set by a test are removed afterwards.
    """
    from product_report.main import app

    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def token_factory():
    """make_token as a fixture, for tests that need custom claims"""
    return make_token
