"""
Migration: Add the sales-pipeline assignment columns to the leads table.

Run this ONCE against your existing database:
    python migrate.py

Safe to run repeatedly; every statement is IF NOT EXISTS.
"""

import asyncio
import os
from dotenv import load_dotenv  # pip install python-dotenv  (only needed to run this script)

load_dotenv()  # reads your .env file

import asyncpg

COLUMNS = [
    ("assigned_to_name", "TEXT DEFAULT NULL"),
    ("assigned_to_email", "TEXT DEFAULT NULL"),
    ("assigned_to_slack_id", "TEXT DEFAULT NULL"),
    ("assigned_at", "TIMESTAMPTZ DEFAULT NULL"),
    ("pipeline_stage", "VARCHAR(32) NOT NULL DEFAULT 'unassigned'"),
]


async def migrate():
    conn = await asyncpg.connect(
        host=os.environ["DB_HOST"],
        port=int(os.environ.get("DB_PORT", 5432)),
        database=os.environ["DB_NAME"],
        user=os.environ["DB_USER"],
        password=os.environ["DB_PASSWORD"],
    )

    print("Connected to database. Running migration...")

    for name, ddl in COLUMNS:
        await conn.execute(f"ALTER TABLE leads ADD COLUMN IF NOT EXISTS {name} {ddl};")
        print(f"  ✓ Column '{name}' ensured.")

    await conn.execute(
        "CREATE INDEX IF NOT EXISTS ix_leads_pipeline_stage ON leads (pipeline_stage);"
    )
    print("  ✓ Index 'ix_leads_pipeline_stage' ensured.")

    await conn.close()
    print("\nMigration complete. You can now restart your FastAPI server.")


if __name__ == "__main__":
    asyncio.run(migrate())
