"""Tests for call history, recording and click-to-call endpoints"""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from callsync.models.call import CallRecord, AgentCallSession
from callsync.sync.normalizer import from_webhook
from callsync.sync.service import CallSyncService

RECORDING_URL = "https://recordings.exotel.com/exotelrecordings/acme1/r1.mp3"


@pytest.fixture
async def test_calls(test_db, test_org):
    """A finished call with a recording and one still ringing"""
    service = CallSyncService(test_db)
    finished = await service.apply(
        from_webhook({
            "CallSid": "C1",
            "CallStatus": "completed",
            "Direction": "inbound",
            "From": "09876543210",
            "RecordingUrl": RECORDING_URL,
        }),
        org_id=test_org.id,
    )
    ringing = await service.apply(
        from_webhook({"CallSid": "C2", "CallStatus": "ringing", "Direction": "outbound"}),
        org_id=test_org.id,
    )
    return [finished.record, ringing.record]


@pytest.mark.asyncio
async def test_list_calls(client: AsyncClient, test_org, test_calls):
    response = await client.get(f"/orgs/{test_org.id}/calls")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {item["provider_call_id"] for item in data["items"]} == {"C1", "C2"}


@pytest.mark.asyncio
async def test_list_calls_filtered(client: AsyncClient, test_org, test_calls):
    response = await client.get(f"/orgs/{test_org.id}/calls", params={"status": "completed"})

    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["provider_call_id"] == "C1"
    assert data["items"][0]["activity_id"] is not None


@pytest.mark.asyncio
async def test_get_call_scoped_to_org(client: AsyncClient, test_org, test_calls):
    call_id = test_calls[0].id

    response = await client.get(f"/orgs/{test_org.id}/calls/{call_id}")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    response = await client.get(f"/orgs/{uuid4()}/calls/{call_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_recording_proxied(client: AsyncClient, fake_exotel, test_org, test_provider_settings, test_calls):
    fake_exotel.recordings["/exotelrecordings/acme1/r1.mp3"] = b"ID3-audio-bytes"

    response = await client.get(f"/orgs/{test_org.id}/calls/{test_calls[0].id}/recording")

    assert response.status_code == 200
    assert response.content == b"ID3-audio-bytes"
    assert response.headers["content-type"] == "audio/mpeg"
    assert "attachment" in response.headers["content-disposition"]
    assert fake_exotel.requests[0].headers["authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_recording_fetch_failure(client: AsyncClient, test_org, test_provider_settings, test_calls):
    response = await client.get(f"/orgs/{test_org.id}/calls/{test_calls[0].id}/recording")

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_recording_not_available(client: AsyncClient, test_org, test_provider_settings, test_calls):
    response = await client.get(f"/orgs/{test_org.id}/calls/{test_calls[1].id}/recording")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_initiate_call(client: AsyncClient, test_db, fake_exotel, test_org, test_contact, test_provider_settings):
    agent_id = uuid4()

    response = await client.post(
        f"/orgs/{test_org.id}/calls",
        json={
            "contact_id": str(test_contact.id),
            "agent_id": str(agent_id),
            "agent_phone_number": "09900011122",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["call"]["provider_call_id"] == "out-1"
    assert data["call"]["direction"] == "outbound"
    assert data["call"]["contact_id"] == str(test_contact.id)
    assert data["call"]["agent_id"] == str(agent_id)
    assert data["session"]["status"] == "connected"

    sent = fake_exotel.connected[0]
    assert sent["From"] == "09900011122"
    assert sent["To"] == test_contact.phone
    assert sent["CallerId"] == "08047112233"
    assert sent["StatusCallback"].endswith("/webhooks/exotel/status")

    session = (await test_db.execute(select(AgentCallSession))).scalar_one()
    assert session.agent_id == agent_id


@pytest.mark.asyncio
async def test_initiate_call_then_webhook_completes(client: AsyncClient, test_db, test_org, test_contact, test_provider_settings):
    await client.post(
        f"/orgs/{test_org.id}/calls",
        json={"contact_id": str(test_contact.id), "agent_id": str(uuid4()), "agent_phone_number": "09900011122"},
    )
    response = await client.post(
        "/webhooks/exotel/status",
        data={"CallSid": "out-1", "CallStatus": "completed", "ConversationDuration": "15"},
    )

    assert response.json()["activity_created"] is True
    session = (await test_db.execute(select(AgentCallSession))).scalar_one()
    assert session.status == "ended"
    record = (await test_db.execute(select(CallRecord))).scalar_one()
    assert record.status == "completed"


@pytest.mark.asyncio
async def test_initiate_call_requires_configuration(client: AsyncClient, test_org, test_contact):
    response = await client.post(
        f"/orgs/{test_org.id}/calls",
        json={"contact_id": str(test_contact.id), "agent_id": str(uuid4()), "agent_phone_number": "09900011122"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_initiate_call_unknown_contact(client: AsyncClient, test_org, test_provider_settings):
    response = await client.post(
        f"/orgs/{test_org.id}/calls",
        json={"contact_id": str(uuid4()), "agent_id": str(uuid4()), "agent_phone_number": "09900011122"},
    )

    assert response.status_code == 404
