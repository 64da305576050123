"""
Pydantic schemas for lead intake and the operator endpoints.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from leadflow.schemas.report import ReportResponse, SourceResponse

PipelineStageValue = Literal[
    "unassigned",
    "new",
    "contacted",
    "demo_scheduled",
    "proposal",
    "negotiation",
    "closed_won",
    "closed_lost",
]


class ParsedLeadMessage(BaseModel):
    """Structured fields pulled out of a lead-alert chat message."""

    company: str = ""
    contact_name: str = ""
    job_title: str = ""
    phone: str = ""
    email: str = ""
    state: str = ""
    country: str = ""
    use_case: str = ""
    timeline: str = ""
    lead_source: str = ""
    lead_score: int = 0
    tell_us_more: str = ""
    raw_text: str = ""

    def to_lead_values(self) -> dict:
        """Column values for a new `leads` row (optional text stored as NULL)."""
        return {
            "company": self.company,
            "contact_name": self.contact_name,
            "job_title": self.job_title,
            "phone": self.phone or None,
            "email": self.email,
            "state": self.state or None,
            "country": self.country or None,
            "use_case": self.use_case,
            "timeline": self.timeline or None,
            "lead_source": self.lead_source or None,
            "lead_score": self.lead_score,
            "tell_us_more": self.tell_us_more or None,
            "raw_message": self.raw_text,
        }


# ============================================================
# Requests
# ============================================================

class StatusUpdateRequest(BaseModel):
    status: str = Field(..., examples=["pending"])


class AssignRequest(BaseModel):
    name: str = Field(..., min_length=1, examples=["Jane Seller"])
    email: str = Field(..., min_length=1, examples=["jane@example.org"])
    slack_id: Optional[str] = None
    pipeline_stage: Optional[PipelineStageValue] = None


class StageUpdateRequest(BaseModel):
    pipeline_stage: PipelineStageValue


class ProcessRequest(BaseModel):
    lead_id: Optional[str] = None
    leadId: Optional[str] = None

    @property
    def resolved_id(self) -> str | None:
        return self.lead_id or self.leadId


# ============================================================
# Responses
# ============================================================

class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company: str
    contact_name: str
    job_title: str
    phone: Optional[str]
    email: str
    state: Optional[str]
    country: Optional[str]
    website: Optional[str]
    industry: Optional[str]
    company_size: Optional[str]
    use_case: str
    timeline: Optional[str]
    lead_source: Optional[str]
    lead_score: int
    tell_us_more: Optional[str]
    status: str
    validation_errors: Optional[str]
    slack_event_id: Optional[str]
    slack_timestamp: Optional[str]
    assigned_to_name: Optional[str]
    assigned_to_email: Optional[str]
    assigned_to_slack_id: Optional[str]
    assigned_at: Optional[datetime]
    pipeline_stage: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class LeadDetailResponse(BaseModel):
    lead: LeadResponse
    report: Optional[ReportResponse]
    sources: list[SourceResponse]


class LeadListResponse(BaseModel):
    leads: list[LeadResponse]
    total: int
    limit: int
    offset: int


class LeadEnvelope(BaseModel):
    lead: LeadResponse


class ProcessResponse(BaseModel):
    success: bool
    status: str
    lead_id: Optional[str] = None
    reason: Optional[str] = None
    score: Optional[int] = None
    report_id: Optional[str] = None
    opportunity_score: Optional[int] = None
    recommended_robot: Optional[str] = None
    news_count: Optional[int] = None
    source_count: Optional[int] = None


class ReprocessResponse(BaseModel):
    success: bool
    message: str
    lead_id: str
