"""Tests for the Exotel REST client"""

from datetime import datetime

import httpx
import pytest

from callsync.errors import ProviderAuthError, ProviderError, ProviderUnavailableError
from callsync.models.provider import ProviderSettings
from callsync.providers.exotel import ExotelClient


def make_client(handler):
    provider_settings = ProviderSettings(api_key="key", api_token="token", account_sid="acme1")
    return ExotelClient(provider_settings, transport=httpx.MockTransport(handler))


async def collect(client):
    return [call async for call in client.list_calls(datetime(2024, 1, 15, 4, 30, 0))]


@pytest.mark.asyncio
async def test_list_calls_request_shape():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"Metadata": {"NextPageUri": None}, "Calls": [{"Sid": "C1"}]})

    calls = await collect(make_client(handler))

    assert calls == [{"Sid": "C1"}]
    request = seen[0]
    assert request.url.host == "api.exotel.com"
    assert request.url.path == "/v1/Accounts/acme1/Calls.json"
    # Window is sent in the account's local time (IST)
    assert request.url.params["DateCreated"] == "gte:2024-01-15 10:00:00"
    assert request.headers["authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_rejected_credentials():
    client = make_client(lambda request: httpx.Response(401, text="Unauthorized"))

    with pytest.raises(ProviderAuthError):
        await collect(client)


@pytest.mark.asyncio
async def test_server_error_is_transient():
    client = make_client(lambda request: httpx.Response(503))

    with pytest.raises(ProviderUnavailableError):
        await collect(client)


@pytest.mark.asyncio
async def test_network_failure_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailableError):
        await collect(make_client(handler))


@pytest.mark.asyncio
async def test_connect_without_sid():
    client = make_client(lambda request: httpx.Response(200, json={"Call": {}}))

    with pytest.raises(ProviderError):
        await client.connect_call("0990", "0980", "http://test/webhooks/exotel/status")
