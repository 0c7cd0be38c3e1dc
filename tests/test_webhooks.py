"""Tests for the Exotel status callback endpoint"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from callsync.models.call import CallRecord, ContactActivity
from callsync.sync.service import CallSyncService


async def count(db, model):
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


@pytest.mark.asyncio
async def test_status_callback_flow(client: AsyncClient, test_db, test_provider_settings, test_contact):
    """Ringing then completed, delivered as form posts"""
    response = await client.post(
        "/webhooks/exotel/status",
        data={
            "CallSid": "C1",
            "AccountSid": "acme1",
            "CallStatus": "ringing",
            "Direction": "inbound",
            "From": "09876543210",
            "To": "08047112233",
            "StartTime": "2024-01-15 15:30:00",
        },
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["call_status"] == "ringing"

    response = await client.post(
        "/webhooks/exotel/status",
        data={
            "CallSid": "C1",
            "CallStatus": "completed",
            "EndTime": "2024-01-15 15:31:00",
            "ConversationDuration": "42",
        },
    )

    data = response.json()
    assert response.status_code == 200
    assert data["call_status"] == "completed"
    assert data["activity_created"] is True

    record = (await test_db.execute(select(CallRecord))).scalar_one()
    assert record.org_id == test_provider_settings.org_id
    assert record.contact_id == test_contact.id
    assert record.conversation_duration_sec == 42
    assert await count(test_db, ContactActivity) == 1


@pytest.mark.asyncio
async def test_duplicate_delivery_is_harmless(client: AsyncClient, test_db, test_provider_settings):
    payload = {"CallSid": "C3", "AccountSid": "acme1", "CallStatus": "completed", "Duration": "9"}

    first = await client.post("/webhooks/exotel/status", data=payload)
    second = await client.post("/webhooks/exotel/status", data=payload)

    assert first.json()["activity_created"] is True
    assert second.status_code == 200
    assert second.json()["activity_created"] is False
    assert await count(test_db, CallRecord) == 1
    assert await count(test_db, ContactActivity) == 1


@pytest.mark.asyncio
async def test_missing_call_sid_rejected(client: AsyncClient, test_db, test_provider_settings):
    response = await client.post(
        "/webhooks/exotel/status",
        data={"CallStatus": "completed", "AccountSid": "acme1"},
    )

    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert await count(test_db, CallRecord) == 0


@pytest.mark.asyncio
async def test_unknown_configuration_is_discarded(client: AsyncClient, test_db, test_provider_settings):
    response = await client.post(
        "/webhooks/exotel/status",
        data={"CallSid": "C9", "AccountSid": "someone-else", "To": "+15550001111", "CallStatus": "ringing"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert await count(test_db, CallRecord) == 0


@pytest.mark.asyncio
async def test_unknown_status_is_processed(client: AsyncClient, test_db, test_provider_settings):
    response = await client.post(
        "/webhooks/exotel/status",
        data={"CallSid": "C10", "AccountSid": "acme1", "CallStatus": "transferring"},
    )

    assert response.status_code == 200
    assert response.json()["call_status"] == "unknown"


@pytest.mark.asyncio
async def test_unsupported_method(client: AsyncClient):
    response = await client.get("/webhooks/exotel/status")
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_zero_date_placeholder_is_accepted(client: AsyncClient, test_db, test_provider_settings):
    response = await client.post(
        "/webhooks/exotel/status",
        data={
            "CallSid": "C11",
            "AccountSid": "acme1",
            "CallStatus": "ringing",
            "StartTime": "0001-01-01 00:00:00",
        },
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    record = (await test_db.execute(select(CallRecord))).scalar_one()
    assert record.status == "ringing"
    assert record.started_at is None


@pytest.mark.asyncio
async def test_lookup_failure_is_deferred(client: AsyncClient, test_db, test_provider_settings, monkeypatch):
    """A store error while routing the call is acknowledged like an apply failure"""

    async def broken_lookup(self, update):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(CallSyncService, "find_provider_settings", broken_lookup)

    response = await client.post(
        "/webhooks/exotel/status",
        data={"CallSid": "C12", "AccountSid": "acme1", "CallStatus": "ringing"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "deferred"
    assert await count(test_db, CallRecord) == 0
