"""Pytest configuration and fixtures for tokenauth tests.

Test isolation strategy:
- Every test gets its own TokenProvider (no shared provider state)
- Settings are built explicitly; the settings cache is reset around each test
- HTTP-level tests use TestClient over create_app with an injected provider
"""

import sys
from collections.abc import Generator
from pathlib import Path

# Add python/ to sys.path for importing the tests package (tests.helpers, tests.support)
_python_root = Path(__file__).parent.parent
if str(_python_root) not in sys.path:
    sys.path.insert(0, str(_python_root))

import pytest
from fastapi.testclient import TestClient

from tests.helpers import TEST_SECRET
from tokenauth.app import create_app
from tokenauth.auth.provider import TokenProvider
from tokenauth.config import Settings, clear_settings_cache


def make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "TOKENAUTH_ENV": "test",
        "LOG_JSON": False,
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def provider() -> TokenProvider:
    """Provide a TokenProvider configured with the test secret."""
    return TokenProvider(secret=TEST_SECRET)


@pytest.fixture
def unconfigured_provider() -> TokenProvider:
    """Provide a TokenProvider with no secret set."""
    return TokenProvider()


@pytest.fixture
def settings() -> Settings:
    """Provide test settings."""
    return make_settings()


@pytest.fixture
def authenticated_client(
    provider: TokenProvider, settings: Settings
) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client with auth middleware.

    Use helpers.auth_headers() with a token from the provider fixture.
    """
    app = create_app(provider=provider, settings=settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
