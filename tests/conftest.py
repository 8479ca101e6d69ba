import pytest
from unittest.mock import MagicMock

from tests.fixtures.mock_upstream import UpstreamStub


@pytest.fixture
def anyio_backend():
    return "asyncio"

@pytest.fixture
def upstream_stub():
    """Upstream completion API stub with no queued responses."""
    return UpstreamStub()

@pytest.fixture
def relay_logger():
    """Logger double so tests can assert on emitted diagnostics."""
    return MagicMock()

@pytest.fixture
def user_turns():
    """Standard caller conversation."""
    return [{"role": "user", "content": "Explain photosynthesis for the Grade 12 life sciences paper."}]

@pytest.fixture
def relay_service(upstream_stub, relay_logger):
    """RelayService over the stub with a short candidate list."""
    from services.relay_service import RelayService
    return RelayService(
        client=upstream_stub.client(),
        api_key="test-openai-key",
        candidates=["gpt-5-mini", "gpt-4.1-mini", "gpt-4o-mini", "gpt-4o"],
        logger=relay_logger,
    )

@pytest.fixture
def auth_headers():
    """Authentication headers for relay requests."""
    return {"apikey": "test-key"}

@pytest.fixture
def configured_app(monkeypatch, upstream_stub):
    """The relay app with the upstream replaced by the stub and no access key required."""
    from fastapi.testclient import TestClient
    from auth import APIKeyMiddleware
    from config import Config
    from main import app
    from routes.chat import get_upstream_client

    monkeypatch.setattr(APIKeyMiddleware, "API_KEY", "")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setattr(Config, "CANDIDATE_MODELS", "")
    monkeypatch.setattr(Config, "TEMPERATURE", None)

    stub_client = upstream_stub.client()
    app.dependency_overrides[get_upstream_client] = lambda: stub_client

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
