"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Iterator
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.services.em_classifier import reset_em_classifier_service
from app.services.em_inference import reset_em_inference_service


@pytest.fixture(autouse=True)
def reset_services() -> Iterator[None]:
    """Reset service singletons around each test."""
    reset_em_classifier_service()
    reset_em_inference_service()
    yield
    reset_em_classifier_service()
    reset_em_inference_service()


def make_message(text: str) -> SimpleNamespace:
    """Build an object shaped like an Anthropic Messages API reply."""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def reply():
    """Factory for fake model replies."""
    return make_message


@pytest.fixture
def mock_anthropic_client() -> MagicMock:
    """Create a mock Anthropic client.

    Set ``client.messages.create.return_value = reply(...)`` to script replies.
    """
    client = MagicMock()
    client.messages.create.return_value = make_message("{}")
    return client


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
