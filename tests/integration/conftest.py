"""Pytest configuration and fixtures for integration tests.

Integration tests call the live AI edge functions. They are skipped unless
AI_EDGE_BASE_URL is set (environment or .env) and the host answers.
"""

import os
from pathlib import Path

import httpx
import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env from the project root before collection."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)


@pytest.fixture(scope="session")
def edge_base_url():
    """Base URL of the live edge functions, or skip.

    Any HTTP answer (even 404/405 on the bare base URL) counts as reachable;
    only connection failures skip.
    """
    base_url = os.getenv("AI_EDGE_BASE_URL", "").rstrip("/")
    if not base_url:
        pytest.skip("Integration tests skipped. AI_EDGE_BASE_URL is not set (add it to your .env file).")

    try:
        httpx.get(base_url, timeout=5)
    except httpx.HTTPError as e:
        pytest.skip(f"Cannot reach AI edge functions at {base_url}: {e}")
    return base_url
