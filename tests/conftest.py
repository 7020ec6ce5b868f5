"""Shared test fixtures for all test modules."""

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta

import httpx
import pytest

from gnocchiquery.adapters.templating import VariableTemplateResolver
from gnocchiquery.adapters.transport import HttpxTransport
from gnocchiquery.config import AuthMode, DatasourceSettings
from gnocchiquery.core.models import TimeRange
from gnocchiquery.datasource import GnocchiDatasource
from tests.fakes import BASE_URL, KEYSTONE_URL, T0, FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Provide an empty scripted transport."""
    return FakeTransport()


@pytest.fixture
def time_range() -> TimeRange:
    """One hour starting at T0."""
    return TimeRange(start=T0, end=T0 + timedelta(hours=1))


@pytest.fixture
def resolver() -> VariableTemplateResolver:
    """Resolver without dashboard variables."""
    return VariableTemplateResolver()


@pytest.fixture
def noauth_settings() -> DatasourceSettings:
    """Settings for a Gnocchi instance running without Keystone."""
    return DatasourceSettings(
        url=BASE_URL, mode=AuthMode.NOAUTH, project="demo", username="alice"
    )


@pytest.fixture
def keystone_settings() -> DatasourceSettings:
    """Settings for Keystone authentication."""
    return DatasourceSettings(
        url=KEYSTONE_URL,
        mode=AuthMode.KEYSTONE,
        username="alice",
        password="secret",
        project="demo",
    )


@pytest.fixture
def datasource(
    noauth_settings: DatasourceSettings, fake_transport: FakeTransport
) -> GnocchiDatasource:
    """Datasource wired to the fake transport in noauth mode."""
    return GnocchiDatasource(noauth_settings, fake_transport)


@pytest.fixture
async def mock_http() -> AsyncGenerator[Callable[..., HttpxTransport], None]:
    """Factory fixture building an HttpxTransport over an httpx.MockTransport.

    Usage:
        async def test_something(mock_http):
            transport = mock_http(handler)
            response = await transport.send(request)
    """
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> HttpxTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return HttpxTransport(client=client)

    yield _make
    for client in clients:
        await client.aclose()
