"""
POST /api/slack — lead-alerts webhook.

Signed, idempotent on the Slack event id / message timestamp. Valid leads are
queued for the pipeline and the webhook answers immediately.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.config import settings
from leadflow.db.models import LeadStatus
from leadflow.db.repository import get_lead_by_correlation_keys, try_create_lead
from leadflow.db.session import get_session_factory
from leadflow.routes.deps import get_pipeline
from leadflow.services.idempotency import extract_correlation_keys
from leadflow.services.parser import (
    is_lead_alert_message,
    parse_lead_message,
    validate_parsed_message,
)
from leadflow.services.pipeline import LeadPipeline
from leadflow.services.signature import verify_slack_signature
from leadflow.services.tasks import TaskRunner, get_task_runner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/slack", tags=["slack"])


@router.post("")
async def slack_events(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    pipeline: LeadPipeline = Depends(get_pipeline),
    runner: TaskRunner = Depends(get_task_runner),
):
    # ── 0. Signature ─────────────────────────────────────────────────────────
    raw_body = await request.body()
    signature = request.headers.get("x-slack-signature")
    timestamp = request.headers.get("x-slack-request-timestamp")

    if not signature or not timestamp:
        logger.error("Missing signature or timestamp headers")
        raise HTTPException(status_code=400, detail="Missing signature or timestamp")

    if not settings.slack_signing_secret:
        raise HTTPException(status_code=503, detail="Slack signing secret not configured")

    if not verify_slack_signature(settings.slack_signing_secret, signature, timestamp, raw_body):
        logger.error("Invalid Slack signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    # ── 1. Parse envelope ────────────────────────────────────────────────────
    try:
        body = json.loads(raw_body.decode("utf-8"))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body.")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Payload must be a JSON object.")

    if body.get("type") == "url_verification":
        return {"challenge": body.get("challenge")}

    if body.get("type") != "event_callback":
        return {"ok": True}

    event = body.get("event") or {}
    if not is_lead_alert_message(
        event.get("channel"),
        event.get("bot_id"),
        channel=settings.slack_lead_channel_id,
        bot=settings.slack_lead_bot_id,
    ):
        logger.info("Ignoring message from channel %s or bot %s", event.get("channel"), event.get("bot_id"))
        return {"ok": True}

    # ── 2. Parse lead and insert (idempotent) ────────────────────────────────
    parsed = parse_lead_message(event.get("text") or "")
    valid, missing = validate_parsed_message(parsed)
    event_id, message_ts = extract_correlation_keys(body)

    async with session_factory() as session:
        existing = await get_lead_by_correlation_keys(session, event_id, message_ts)
        if existing is None:
            lead = await try_create_lead(
                session,
                **parsed.to_lead_values(),
                status=LeadStatus.PENDING.value if valid else LeadStatus.INVALID.value,
                validation_errors=None if valid else ", ".join(missing),
                slack_event_id=event_id,
                slack_timestamp=message_ts,
            )
            if lead is None:
                # Lost an insert race with a concurrent re-delivery
                existing = await get_lead_by_correlation_keys(session, event_id, message_ts)
                if existing is None:
                    raise HTTPException(status_code=500, detail="Failed to insert lead")
        await session.commit()

    if existing is not None:
        logger.info("Duplicate delivery for lead %s, skipping", existing.id)
        return {"ok": True, "leadId": existing.id, "status": existing.status, "duplicate": True}

    # ── 3. Queue processing ──────────────────────────────────────────────────
    if valid:
        runner.enqueue(pipeline.run, lead.id, name=f"pipeline:{lead.id}")
    else:
        logger.info("Lead %s missing fields: %s", lead.id, ", ".join(missing))

    return {"ok": True, "leadId": lead.id, "status": lead.status}
