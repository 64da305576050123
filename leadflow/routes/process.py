"""
/api/process — run the full pipeline for one lead inside the request.

  POST /api/process         {"lead_id": "<uuid>"}  (or "leadId")
  GET  /api/process?lead_id=<uuid>                 (manual testing)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from leadflow.routes.deps import get_pipeline, validate_lead_id
from leadflow.schemas.lead import ProcessRequest, ProcessResponse
from leadflow.services.pipeline import LeadNotFoundError, LeadPipeline, PipelineResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/process", tags=["process"])


def _to_response(result: PipelineResult) -> ProcessResponse:
    if result.status == "invalid":
        return ProcessResponse(
            success=False,
            status=result.status,
            lead_id=result.lead_id,
            reason=result.reason,
            score=result.score,
        )
    return ProcessResponse(
        success=True,
        status=result.status,
        lead_id=result.lead_id,
        report_id=result.report_id,
        opportunity_score=result.opportunity_score,
        recommended_robot=result.recommended_robot,
        news_count=result.news_count,
        source_count=result.source_count,
    )


async def _run(lead_id: str | None, pipeline: LeadPipeline):
    if not lead_id:
        raise HTTPException(status_code=400, detail="Missing lead_id parameter")
    validate_lead_id(lead_id)

    try:
        result = await pipeline.run(lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found.")
    except Exception as e:
        # Lead already rolled back to pending by the pipeline, which logged the traceback
        logger.error("Processing failed for lead %s: %s", lead_id, type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal processing error",
                "message": "Lead processing failed and will be retried.",
            },
        )
    return _to_response(result)


@router.post("", response_model=ProcessResponse, response_model_exclude_none=True)
async def process_lead(data: ProcessRequest, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Validate, research and report on a lead; returns the final status."""
    return await _run(data.resolved_id, pipeline)


@router.get("", response_model=ProcessResponse, response_model_exclude_none=True)
async def process_lead_get(
    lead_id: Optional[str] = Query(None, description="Lead UUID"),
    pipeline: LeadPipeline = Depends(get_pipeline),
):
    """GET form of POST /api/process for manual testing."""
    return await _run(lead_id, pipeline)
