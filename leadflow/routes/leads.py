"""
Lead read endpoints and operator actions.

  GET    /api/leads                      list (status / pipeline_stage / search)
  GET    /api/leads/{lead_id}            lead + report + sources
  POST   /api/lead/{lead_id}/status      manual status override
  POST   /api/lead/{lead_id}/assign      assign salesperson
  PATCH  /api/lead/{lead_id}/assign      pipeline stage only
  DELETE /api/lead/{lead_id}/assign      unassign
  POST   /api/lead/{lead_id}/reprocess   drop report + sources, re-run pipeline
  GET    /api/lead/{lead_id}/hubspot     CRM lookup
  GET    /api/lead/{lead_id}/fireflies   meeting lookup
  GET    /api/salespeople                sales roster
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.config import settings
from leadflow.db.models import Lead, LeadStatus
from leadflow.db.repository import (
    assign_lead,
    count_leads,
    delete_report,
    delete_sources,
    get_lead_by_id,
    get_report_by_lead,
    list_leads,
    list_sources,
    unassign_lead,
    update_lead,
    update_lead_status,
)
from leadflow.db.session import get_session_factory
from leadflow.routes.deps import (
    get_fireflies_client,
    get_hubspot_client,
    get_pipeline,
    validate_lead_id,
)
from leadflow.schemas.lead import (
    AssignRequest,
    LeadDetailResponse,
    LeadEnvelope,
    LeadListResponse,
    LeadResponse,
    ReprocessResponse,
    StageUpdateRequest,
    StatusUpdateRequest,
)
from leadflow.schemas.report import ReportResponse, SourceResponse
from leadflow.services.crm import HubSpotClient
from leadflow.services.meetings import FirefliesClient
from leadflow.services.pipeline import LeadPipeline
from leadflow.services.tasks import TaskRunner, get_task_runner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["leads"])

SessionFactory = async_sessionmaker[AsyncSession]


async def _require_lead(session_factory: SessionFactory, lead_id: str) -> Lead:
    validate_lead_id(lead_id)
    async with session_factory() as session:
        lead = await get_lead_by_id(session, lead_id)
        await session.commit()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found.")
    return lead


def _envelope(lead: Lead | None) -> LeadEnvelope:
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found.")
    return LeadEnvelope(lead=LeadResponse.model_validate(lead))


# ============================================================
# LIST / DETAIL
# ============================================================

@router.get("/leads", response_model=LeadListResponse)
async def list_leads_api(
    status: Optional[str] = Query(None, description="Filter: pending | validating | researching | complete | invalid"),
    pipeline_stage: Optional[str] = Query(None, description="Filter by sales pipeline stage"),
    search: Optional[str] = Query(None, description="Search company, contact, email or ID"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Return paginated, optionally filtered list of leads (newest first)."""
    async with session_factory() as session:
        leads = await list_leads(
            session, status=status, pipeline_stage=pipeline_stage, search=search,
            limit=limit, offset=offset,
        )
        total = await count_leads(session, status=status, pipeline_stage=pipeline_stage, search=search)
        await session.commit()

    return LeadListResponse(
        leads=[LeadResponse.model_validate(lead) for lead in leads],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/leads/{lead_id}", response_model=LeadDetailResponse)
async def get_lead_api(lead_id: str, session_factory: SessionFactory = Depends(get_session_factory)):
    """Fetch a lead with its decoded report and sources."""
    validate_lead_id(lead_id)
    async with session_factory() as session:
        lead = await get_lead_by_id(session, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found.")
        report = await get_report_by_lead(session, lead_id)
        sources = await list_sources(session, lead_id)
        await session.commit()

    return LeadDetailResponse(
        lead=LeadResponse.model_validate(lead),
        report=ReportResponse.from_report(report) if report else None,
        sources=[SourceResponse.model_validate(s) for s in sources],
    )


# ============================================================
# STATUS OVERRIDE
# ============================================================

@router.post("/lead/{lead_id}/status")
async def update_status_api(
    lead_id: str,
    data: StatusUpdateRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Manually set the processing status (enumerated values only)."""
    validate_lead_id(lead_id)
    allowed = [s.value for s in LeadStatus]
    if data.status not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(allowed)}",
        )

    async with session_factory() as session:
        updated = await update_lead_status(session, lead_id, data.status)
        await session.commit()

    return {"success": True, "lead": _envelope(updated).lead}


# ============================================================
# ASSIGNMENT / PIPELINE STAGE
# ============================================================

@router.post("/lead/{lead_id}/assign", response_model=LeadEnvelope)
async def assign_api(
    lead_id: str,
    data: AssignRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Assign a salesperson; an unassigned lead moves to `new` unless a stage is given."""
    validate_lead_id(lead_id)
    async with session_factory() as session:
        updated = await assign_lead(
            session,
            lead_id,
            name=data.name,
            email=data.email,
            slack_id=data.slack_id,
            pipeline_stage=data.pipeline_stage,
        )
        await session.commit()
    return _envelope(updated)


@router.patch("/lead/{lead_id}/assign", response_model=LeadEnvelope)
async def update_stage_api(
    lead_id: str,
    data: StageUpdateRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Move a lead along the sales pipeline board."""
    validate_lead_id(lead_id)
    async with session_factory() as session:
        updated = await update_lead(session, lead_id, pipeline_stage=data.pipeline_stage)
        await session.commit()
    return _envelope(updated)


@router.delete("/lead/{lead_id}/assign", response_model=LeadEnvelope)
async def unassign_api(lead_id: str, session_factory: SessionFactory = Depends(get_session_factory)):
    """Clear the assignment and reset the stage to `unassigned`."""
    validate_lead_id(lead_id)
    async with session_factory() as session:
        updated = await unassign_lead(session, lead_id)
        await session.commit()
    return _envelope(updated)


# ============================================================
# REPROCESS
# ============================================================

@router.post("/lead/{lead_id}/reprocess", response_model=ReprocessResponse)
async def reprocess_api(
    lead_id: str,
    session_factory: SessionFactory = Depends(get_session_factory),
    pipeline: LeadPipeline = Depends(get_pipeline),
    runner: TaskRunner = Depends(get_task_runner),
):
    """
    Delete the lead's sources and report, reset it to pending and queue a
    fresh pipeline run. Returns immediately.
    """
    lead = await _require_lead(session_factory, lead_id)

    # One statement per commit; a failure part-way is fixed by reprocessing again
    async with session_factory() as session:
        await delete_sources(session, lead_id)
        await session.commit()
        await delete_report(session, lead_id)
        await session.commit()
        await update_lead_status(session, lead_id, LeadStatus.PENDING.value, validation_errors=None)
        await session.commit()

    runner.enqueue(pipeline.run, lead_id, name=f"reprocess:{lead_id}")
    logger.info("Reprocessing queued for lead %s", lead_id)

    return ReprocessResponse(
        success=True,
        message=f"Reprocessing started for {lead.company}",
        lead_id=lead_id,
    )


# ============================================================
# CRM / MEETING PANELS
# ============================================================

@router.get("/lead/{lead_id}/hubspot")
async def hubspot_api(
    lead_id: str,
    hubspot: HubSpotClient = Depends(get_hubspot_client),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """CRM contact, company, deals, tickets and notes for the lead."""
    lead = await _require_lead(session_factory, lead_id)
    return await hubspot.lookup_lead(lead)


@router.get("/lead/{lead_id}/fireflies")
async def fireflies_api(
    lead_id: str,
    fireflies: FirefliesClient = Depends(get_fireflies_client),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Recorded meetings mentioning the lead's contact or company."""
    lead = await _require_lead(session_factory, lead_id)
    return await fireflies.find_meetings(lead)


# ============================================================
# SALES ROSTER
# ============================================================

@router.get("/salespeople")
async def salespeople_api():
    return {"salespeople": settings.sales_team}
