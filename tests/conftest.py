"""Pytest configuration and shared fixtures."""

import pytest

from omp_client.sdk.transport import create_mock_transport


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def transport():
    """Unconnected mock transport that records writes."""
    return create_mock_transport()


def reply(name: str, status: str = "200", status_text: str = "OK", body: str = "", **attrs: str) -> str:
    """Render a reply element the way the manager sends it."""
    extra = "".join(f' {k}="{v}"' for k, v in attrs.items())
    return f'<{name} status="{status}" status_text="{status_text}"{extra}>{body}</{name}>'


@pytest.fixture
def make_reply():
    """Factory for reply text."""
    return reply
