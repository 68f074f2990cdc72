"""Fixtures for the Tailscale provider tests."""

from collections.abc import AsyncIterator

import aiohttp
import pytest

from tailscale_provider import Provider, Tailscale


@pytest.fixture(name="client")
async def fixture_client() -> AsyncIterator[Tailscale]:
    """Tailscale client for the "frenck" tailnet."""
    async with aiohttp.ClientSession() as session:
        yield Tailscale(tailnet="frenck", api_key="abc", session=session)


@pytest.fixture(name="provider")
async def fixture_provider() -> AsyncIterator[Provider]:
    """Provider configured with an API key, sharing one session."""
    async with (
        aiohttp.ClientSession() as session,
        Provider(session=session) as provider,
    ):
        provider.configure(api_key="abc", tailnet="frenck")
        yield provider
