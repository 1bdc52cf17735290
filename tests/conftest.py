"""Shared fixtures: fake provider HTTP via httpx.MockTransport, service wiring, no-op sleep."""
import pytest

from genstudio.services.generation import GenerationService, TaskPoller
from genstudio.services.generation.transport import ProviderTransport, build_http_client

from tests.helpers import FakeProvider, RecordingSleep


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_service(sleep):
    """Build a GenerationService whose outbound HTTP goes to a FakeProvider."""

    def _make(fake: FakeProvider) -> GenerationService:
        client = build_http_client(fake.transport)
        return GenerationService(ProviderTransport(client), poller=TaskPoller(sleep=sleep))

    return _make
