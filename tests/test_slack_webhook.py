import json

import pytest

from conftest import LEAD_MESSAGE
from leadflow.config import settings
from leadflow.db.repository import count_leads, get_lead_by_id
from leadflow.services.signature import compute_slack_signature, verify_slack_signature

SECRET = "test-signing-secret"
TIMESTAMP = "1771911410"


def lead_event(text=LEAD_MESSAGE, event_id="Ev01", ts="1771911410.224979", **event_fields):
    event = {
        "type": "message",
        "channel": "C05B5QBJVAM",
        "bot_id": "B02JNJTTULW",
        "ts": ts,
        "text": text,
    }
    event.update(event_fields)
    return {"type": "event_callback", "event_id": event_id, "event": event}


def signed(payload, secret=SECRET):
    body = json.dumps(payload)
    headers = {
        "content-type": "application/json",
        "x-slack-request-timestamp": TIMESTAMP,
        "x-slack-signature": compute_slack_signature(secret, TIMESTAMP, body),
    }
    return body, headers


@pytest.fixture(autouse=True)
def signing_secret(monkeypatch):
    monkeypatch.setattr(settings, "slack_signing_secret", SECRET)
    monkeypatch.setattr(settings, "slack_lead_channel_id", "C05B5QBJVAM")
    monkeypatch.setattr(settings, "slack_lead_bot_id", "B02JNJTTULW")


@pytest.mark.unit
class TestSignature:
    def test_known_vector(self):
        expected = compute_slack_signature("secret", "1", "body")
        assert expected.startswith("v0=")
        assert len(expected) == 3 + 64
        assert verify_slack_signature("secret", expected, "1", "body")

    def test_tampered_body(self):
        signature = compute_slack_signature("secret", "1", "body")
        assert not verify_slack_signature("secret", signature, "1", "body!")

    def test_bytes_and_text_bodies_agree(self):
        assert compute_slack_signature("secret", "1", b"{\"a\": 1}") == compute_slack_signature(
            "secret", "1", "{\"a\": 1}"
        )


@pytest.mark.integration
class TestSlackWebhook:
    @pytest.mark.asyncio
    async def test_missing_headers(self, client):
        response = await client.post("/api/slack", content="{}")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_signature(self, client):
        body, headers = signed(lead_event(), secret="wrong-secret")
        response = await client.post("/api/slack", content=body, headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_undecodable_body_with_forged_signature(self, client):
        headers = {"x-slack-request-timestamp": TIMESTAMP, "x-slack-signature": "v0=" + "0" * 64}
        response = await client.post("/api/slack", content=b"\xff\xfe{}", headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_undecodable_body_with_valid_signature(self, client, runner):
        body = b"\xff\xfe{}"
        headers = {
            "x-slack-request-timestamp": TIMESTAMP,
            "x-slack-signature": compute_slack_signature(SECRET, TIMESTAMP, body),
        }
        response = await client.post("/api/slack", content=body, headers=headers)
        assert response.status_code == 400
        assert runner.jobs == []

    @pytest.mark.asyncio
    async def test_unconfigured_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "slack_signing_secret", "")
        body, headers = signed(lead_event())
        response = await client.post("/api/slack", content=body, headers=headers)
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_url_verification_echoes_challenge(self, client):
        body, headers = signed({"type": "url_verification", "challenge": "abc123"})
        response = await client.post("/api/slack", content=body, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"challenge": "abc123"}

    @pytest.mark.asyncio
    async def test_ignores_other_channels(self, client, runner, session_factory):
        body, headers = signed(lead_event(channel="CGENERAL"))
        response = await client.post("/api/slack", content=body, headers=headers)

        assert response.json() == {"ok": True}
        assert runner.jobs == []
        async with session_factory() as session:
            assert await count_leads(session) == 0

    @pytest.mark.asyncio
    async def test_ignores_non_event_callbacks(self, client, runner):
        body, headers = signed({"type": "app_rate_limited"})
        response = await client.post("/api/slack", content=body, headers=headers)
        assert response.json() == {"ok": True}
        assert runner.jobs == []

    @pytest.mark.asyncio
    async def test_valid_lead_is_stored_and_queued(self, client, runner, session_factory):
        body, headers = signed(lead_event())
        response = await client.post("/api/slack", content=body, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["status"] == "pending"
        assert len(runner.jobs) == 1
        _, args, name = runner.jobs[0]
        assert args == (data["leadId"],)
        assert name == f"pipeline:{data['leadId']}"

        async with session_factory() as session:
            lead = await get_lead_by_id(session, data["leadId"])
        assert lead.company == "Acme Mfg"
        assert lead.lead_score == 75
        assert lead.slack_event_id == "Ev01"
        assert lead.slack_timestamp == "1771911410.224979"
        assert lead.pipeline_stage == "unassigned"

    @pytest.mark.asyncio
    async def test_incomplete_lead_stored_invalid(self, client, runner, session_factory):
        body, headers = signed(lead_event(text="*Company:* Globex\n*Email:* a@globex.com"))
        response = await client.post("/api/slack", content=body, headers=headers)

        data = response.json()
        assert data["status"] == "invalid"
        assert runner.jobs == []
        async with session_factory() as session:
            lead = await get_lead_by_id(session, data["leadId"])
        assert lead.validation_errors == "contact_name, job_title, use_case"

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, client, runner, session_factory):
        body, headers = signed(lead_event())
        first = (await client.post("/api/slack", content=body, headers=headers)).json()
        second = (await client.post("/api/slack", content=body, headers=headers)).json()

        assert second["duplicate"] is True
        assert second["leadId"] == first["leadId"]
        assert len(runner.jobs) == 1
        async with session_factory() as session:
            assert await count_leads(session) == 1

    @pytest.mark.asyncio
    async def test_same_message_under_new_event_id_is_duplicate(self, client, runner, session_factory):
        body, headers = signed(lead_event(event_id="Ev01"))
        first = (await client.post("/api/slack", content=body, headers=headers)).json()
        body, headers = signed(lead_event(event_id="Ev02"))
        second = (await client.post("/api/slack", content=body, headers=headers)).json()

        assert second["duplicate"] is True
        assert second["leadId"] == first["leadId"]
        async with session_factory() as session:
            assert await count_leads(session) == 1
