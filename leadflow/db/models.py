"""
Database models for leads, reports and sources.

A lead owns at most one report and any number of sources.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LeadStatus(str, Enum):
    """Processing status of a lead (distinct from its sales pipeline stage)."""

    PENDING = "pending"
    VALIDATING = "validating"
    RESEARCHING = "researching"
    COMPLETE = "complete"
    INVALID = "invalid"


def _uuid_column():
    return mapped_column(
        Uuid(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )


class Lead(Base):
    """One inbound inquiry captured from the lead-alerts channel."""

    __tablename__ = "leads"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = _uuid_column()

    company: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    job_title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Firmographic guesses
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_size: Mapped[str | None] = mapped_column(String(100), nullable=True)

    use_case: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    timeline: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lead_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lead_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tell_us_more: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LeadStatus.PENDING.value, index=True
    )  # pending | validating | researching | complete | invalid
    validation_errors: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Correlation keys for idempotent re-ingestion
    slack_event_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True
    )
    slack_timestamp: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )

    # Sales pipeline assignment
    assigned_to_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_slack_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pipeline_stage: Mapped[str] = mapped_column(
        String(30), nullable=False, default="unassigned"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class Report(Base):
    """Sales intelligence report generated for a lead."""

    __tablename__ = "reports"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = _uuid_column()
    lead_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    company_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    use_case_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommended_robot: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recommendation_rationale: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendation_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opportunity_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    competitor_context: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Serialized arrays; read through schemas.report.decode_items
    talking_points: Mapped[str | None] = mapped_column(Text, nullable=True)
    roi_angles: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_factors: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_opportunities: Mapped[str | None] = mapped_column(Text, nullable=True)
    recent_news: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class Source(Base):
    """Citation backing a report."""

    __tablename__ = "sources"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = _uuid_column()
    lead_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
