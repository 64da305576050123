"""
Backfill: insert leads from an exported lead-alerts channel history.

Usage:
    python ingest.py export.json [--queue]

`export.json` is either a JSON list of Slack messages or an object with a
`messages` list (the conversations.history shape). Messages from bots other
than the CRM bot are skipped. Safe to run repeatedly: messages whose timestamp
is already stored are skipped.

New leads are inserted as `pending` (or `invalid` when required fields are
missing); pass --queue to run the pipeline for each inserted lead right away.
"""

import argparse
import asyncio
import json
from pathlib import Path

from leadflow.config import settings
from leadflow.db.models import LeadStatus
from leadflow.db.repository import count_leads, get_lead_by_correlation_keys, try_create_lead
from leadflow.db.session import async_session, init_db
from leadflow.services.llm import build_client
from leadflow.services.parser import parse_lead_message, validate_parsed_message
from leadflow.services.pipeline import LeadPipeline


def load_messages(path: Path) -> list[dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("messages") or []
    return [m for m in data if isinstance(m, dict)]


async def ingest(path: Path, queue: bool = False):
    await init_db()
    messages = load_messages(path)
    print(f"Loaded {len(messages)} messages from {path}. Ingesting...\n")

    inserted: list[str] = []
    for message in messages:
        bot_id = message.get("bot_id")
        ts = message.get("ts")
        if not ts or (bot_id and bot_id != settings.slack_lead_bot_id):
            continue

        parsed = parse_lead_message(message.get("text") or "")
        valid, missing = validate_parsed_message(parsed)
        label = parsed.company or ts

        async with async_session() as session:
            existing = await get_lead_by_correlation_keys(session, None, ts)
            if existing:
                print(f"  ⏭  {label} already exists ({existing.id}), skipping.")
                continue

            lead = await try_create_lead(
                session,
                **parsed.to_lead_values(),
                status=LeadStatus.PENDING.value if valid else LeadStatus.INVALID.value,
                validation_errors=None if valid else ", ".join(missing),
                slack_timestamp=ts,
            )
            if lead is None:
                print(f"  ✗ Failed to insert {label}.")
                continue
            await session.commit()

        if valid:
            inserted.append(lead.id)
            print(f"  ✓ {lead.company} (score: {lead.lead_score}) → {lead.id}")
        else:
            print(f"  ✓ {label} stored as invalid (missing: {', '.join(missing)}) → {lead.id}")

    if queue and inserted:
        print(f"\nProcessing {len(inserted)} new lead(s)...")
        pipeline = LeadPipeline(async_session, llm_client=build_client(), model=settings.openai_model)
        for lead_id in inserted:
            try:
                result = await pipeline.run(lead_id)
                print(f"  ✓ {lead_id} → {result.status}")
            except Exception as e:
                print(f"  ✗ {lead_id} failed: {e}")

    async with async_session() as session:
        total = await count_leads(session)
    print(f"\nDone! Total leads in database: {total}")


def main():
    parser = argparse.ArgumentParser(description="Backfill leads from a lead-alerts export.")
    parser.add_argument("path", type=Path, help="JSON export of channel messages")
    parser.add_argument("--queue", action="store_true", help="run the pipeline for new leads")
    args = parser.parse_args()
    asyncio.run(ingest(args.path, queue=args.queue))


if __name__ == "__main__":
    main()
