from datetime import datetime, timezone

from sqlalchemy import cast, delete, func, or_, select, update, String
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.db.models import Lead, Report, Source


# ======================================================
# IDEMPOTENCY HELPERS
# ======================================================

async def get_lead_by_correlation_keys(
    session: AsyncSession,
    event_id: str | None,
    timestamp: str | None,
) -> Lead | None:
    """Return a lead already ingested from the same chat event or message."""
    conditions = []
    if event_id:
        conditions.append(Lead.slack_event_id == event_id)
    if timestamp:
        conditions.append(Lead.slack_timestamp == timestamp)
    if not conditions:
        return None

    stmt = select(Lead).where(or_(*conditions)).order_by(Lead.created_at).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def try_create_lead(session: AsyncSession, **values) -> Lead | None:
    """
    Atomically insert a lead.
    Returns None if the event id already exists (concurrent re-delivery).
    """
    try:
        lead = Lead(**values)
        session.add(lead)
        await session.flush()
        return lead
    except IntegrityError:
        await session.rollback()
        return None


# ======================================================
# LEAD CRUD OPERATIONS
# ======================================================

def _lead_filters(stmt, status, pipeline_stage, search):
    if status:
        stmt = stmt.where(Lead.status == status)
    if pipeline_stage:
        stmt = stmt.where(Lead.pipeline_stage == pipeline_stage)
    if search:
        stmt = stmt.where(
            or_(
                Lead.company.ilike(f"%{search}%"),
                Lead.contact_name.ilike(f"%{search}%"),
                Lead.email.ilike(f"%{search}%"),
                cast(Lead.id, String).ilike(f"%{search}%"),
            )
        )
    return stmt


async def list_leads(
    session: AsyncSession,
    status: str | None = None,
    pipeline_stage: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Lead]:
    stmt = select(Lead).order_by(Lead.created_at.desc()).limit(limit).offset(offset)
    stmt = _lead_filters(stmt, status, pipeline_stage, search)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_leads(
    session: AsyncSession,
    status: str | None = None,
    pipeline_stage: str | None = None,
    search: str | None = None,
) -> int:
    stmt = select(func.count()).select_from(Lead)
    stmt = _lead_filters(stmt, status, pipeline_stage, search)
    result = await session.execute(stmt)
    return result.scalar() or 0


async def get_lead_by_id(session: AsyncSession, lead_id: str) -> Lead | None:
    stmt = select(Lead).where(Lead.id == lead_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def update_lead(session: AsyncSession, lead_id: str, **values) -> Lead | None:
    """Single-row update; returns the fresh row, or None if the lead is gone."""
    if not values:
        raise ValueError("No fields to update")

    stmt = (
        update(Lead)
        .where(Lead.id == lead_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
    await session.flush()
    result = await session.execute(
        select(Lead)
        .where(Lead.id == lead_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_lead_status(
    session: AsyncSession,
    lead_id: str,
    status: str,
    **extra,
) -> Lead | None:
    return await update_lead(session, lead_id, status=status, **extra)


async def assign_lead(
    session: AsyncSession,
    lead_id: str,
    *,
    name: str,
    email: str,
    slack_id: str | None = None,
    pipeline_stage: str | None = None,
) -> Lead | None:
    """
    Assign a salesperson. Without an explicit stage, an `unassigned` lead
    moves to `new`; any other stage is left alone.
    """
    values = {
        "assigned_to_name": name,
        "assigned_to_email": email,
        "assigned_to_slack_id": slack_id or None,
        "assigned_at": datetime.now(timezone.utc),
    }
    if pipeline_stage:
        values["pipeline_stage"] = pipeline_stage
    else:
        current = await get_lead_by_id(session, lead_id)
        if current is not None and current.pipeline_stage == "unassigned":
            values["pipeline_stage"] = "new"
    return await update_lead(session, lead_id, **values)


async def unassign_lead(session: AsyncSession, lead_id: str) -> Lead | None:
    return await update_lead(
        session,
        lead_id,
        assigned_to_name=None,
        assigned_to_email=None,
        assigned_to_slack_id=None,
        assigned_at=None,
        pipeline_stage="unassigned",
    )


# ======================================================
# REPORT / SOURCE OPERATIONS
# ======================================================

async def create_report(session: AsyncSession, lead_id: str, **values) -> Report:
    report = Report(lead_id=lead_id, **values)
    session.add(report)
    await session.flush()
    return report


async def get_report_by_lead(session: AsyncSession, lead_id: str) -> Report | None:
    stmt = select(Report).where(Report.lead_id == lead_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def add_sources(
    session: AsyncSession, lead_id: str, sources: list[dict]
) -> list[Source]:
    if not sources:
        return []
    rows = [Source(lead_id=lead_id, **source) for source in sources]
    session.add_all(rows)
    await session.flush()
    return rows


async def list_sources(session: AsyncSession, lead_id: str) -> list[Source]:
    stmt = (
        select(Source)
        .where(Source.lead_id == lead_id)
        .order_by(Source.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_sources(session: AsyncSession, lead_id: str) -> None:
    await session.execute(delete(Source).where(Source.lead_id == lead_id))
    await session.flush()


async def delete_report(session: AsyncSession, lead_id: str) -> None:
    await session.execute(delete(Report).where(Report.lead_id == lead_id))
    await session.flush()
