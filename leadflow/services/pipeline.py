"""
Lead processing pipeline.

Flow:
  pending → validating → invalid                       (hard floor / rejected)
                       → researching → complete        (research + report saved)

Every status write is its own single-row transaction. If anything unexpected
fails, the lead goes back to `pending` with a diagnostic note so it can be
retried instead of being stuck mid-pipeline.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, TypeVar

from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.config import settings
from leadflow.db.models import Lead, LeadStatus
from leadflow.db.repository import (
    add_sources,
    create_report,
    delete_report,
    delete_sources,
    get_lead_by_id,
    update_lead_status,
)
from leadflow.schemas.report import ValidationResult
from leadflow.services.report_builder import generate_report
from leadflow.services.research import format_research_summary, run_full_research
from leadflow.services.validator import semantic_validate_lead, validate_lead

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LeadNotFoundError(LookupError):
    """The lead id does not exist. Terminal, never retried."""


@dataclass
class PipelineResult:
    lead_id: str
    status: str
    score: int | None = None
    reason: str | None = None
    report_id: str | None = None
    opportunity_score: int | None = None
    recommended_robot: str | None = None
    news_count: int = 0
    source_count: int = 0


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    label: str,
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call `fn` up to `attempts` times, doubling the delay after each failure."""
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as e:
            last_error = e
            logger.warning("[%s] Attempt %d/%d failed: %s", label, attempt, attempts, e)
            if attempt < attempts:
                await sleep(base_delay * 2 ** (attempt - 1))
    raise last_error


class LeadPipeline:
    """Validate → research → report for one lead at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        llm_client: AsyncOpenAI | None = None,
        research_fn: Callable | None = None,
        report_fn: Callable | None = None,
        model: str | None = None,
        hard_floor: int = settings.pipeline_hard_floor,
        borderline_ceiling: int = settings.pipeline_borderline_ceiling,
        admission_floor: int = settings.pipeline_admission_floor,
        max_attempts: int = settings.pipeline_max_attempts,
        retry_base_delay: float = settings.pipeline_retry_base_delay,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.llm_client = llm_client
        self.model = model
        self.research_fn = research_fn or run_full_research
        self.report_fn = report_fn or partial(generate_report, client=llm_client, model=model)
        self.hard_floor = hard_floor
        self.borderline_ceiling = borderline_ceiling
        self.admission_floor = admission_floor
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    # ── persistence helpers (one session + commit per write) ────────────────

    async def _fetch_lead(self, lead_id: str) -> Lead | None:
        async with self.session_factory() as session:
            lead = await get_lead_by_id(session, lead_id)
            await session.commit()
        return lead

    async def _set_status(self, lead_id: str, status: LeadStatus, **extra) -> None:
        async with self.session_factory() as session:
            updated = await update_lead_status(session, lead_id, status.value, **extra)
            if updated is None:
                raise LeadNotFoundError(lead_id)
            await session.commit()

    async def _retry(self, fn, label: str):
        return await with_retry(
            fn,
            label,
            attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            sleep=self.sleep,
        )

    # ── stages ──────────────────────────────────────────────────────────────

    async def _validate(self, lead: Lead) -> tuple[ValidationResult, bool]:
        """Returns the final validation result and whether the lead is admitted."""
        basic = validate_lead(lead)
        logger.info("[%s] Basic validation: score=%d, valid=%s", lead.id, basic.score, basic.is_valid)

        if basic.score < self.hard_floor or basic.disqualified:
            return basic, False

        final = basic
        if self.hard_floor <= basic.score < self.borderline_ceiling:
            logger.info("[%s] Borderline, running semantic validation...", lead.id)
            final = await semantic_validate_lead(
                lead, self.llm_client, fallback=basic, model=self.model
            )
            logger.info("[%s] Semantic validation: score=%d, valid=%s", lead.id, final.score, final.is_valid)

        admitted = final.is_valid or final.score >= self.admission_floor
        return final, admitted

    async def run(self, lead_id: str) -> PipelineResult:
        """
        Process one lead end to end.

        Raises LeadNotFoundError for unknown ids. Any other failure rolls the
        lead back to `pending` and is re-raised.
        """
        lead = await self._fetch_lead(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)

        try:
            return await self._run(lead)
        except Exception as e:
            logger.exception("[%s] Pipeline error", lead_id)
            try:
                await self._set_status(
                    lead_id,
                    LeadStatus.PENDING,
                    validation_errors=f"Processing failed: {e}. Will retry.",
                )
            except Exception:
                logger.exception("[%s] Could not reset lead to pending", lead_id)
            raise

    async def _run(self, lead: Lead) -> PipelineResult:
        lead_id = lead.id

        # ─── Step 1: Validate ───────────────────────────────────────────────
        logger.info("[%s] Starting validation...", lead_id)
        await self._set_status(lead_id, LeadStatus.VALIDATING)

        validation, admitted = await self._validate(lead)
        if not admitted:
            await self._set_status(
                lead_id, LeadStatus.INVALID, validation_errors=validation.reason
            )
            logger.info("[%s] Rejected: %s", lead_id, validation.reason)
            return PipelineResult(
                lead_id=lead_id,
                status=LeadStatus.INVALID.value,
                score=validation.score,
                reason=validation.reason,
            )

        # ─── Step 2: Research ───────────────────────────────────────────────
        logger.info('[%s] Starting research for "%s"...', lead_id, lead.company)
        await self._set_status(lead_id, LeadStatus.RESEARCHING)

        research = await self._retry(
            lambda: self.research_fn(lead.company, lead.website or None),
            f"{lead_id}/research",
        )
        logger.info("[%s] Research complete: %d news articles found", lead_id, len(research.news))
        logger.debug("[%s] Research summary:\n%s", lead_id, format_research_summary(research))

        # ─── Step 3: Report ─────────────────────────────────────────────────
        logger.info("[%s] Generating report...", lead_id)
        report_draft, sources = await self._retry(
            lambda: self.report_fn(lead, research),
            f"{lead_id}/report",
        )

        # A lead keeps at most one report; earlier output is replaced
        async with self.session_factory() as session:
            await delete_sources(session, lead_id)
            await delete_report(session, lead_id)
            report = await create_report(session, lead_id, **report_draft.model_dump())
            await session.commit()
        logger.info("[%s] Report saved: %s", lead_id, report.id)

        if sources:
            async with self.session_factory() as session:
                await add_sources(session, lead_id, [s.model_dump() for s in sources])
                await session.commit()
            logger.info("[%s] Saved %d sources", lead_id, len(sources))

        # ─── Step 4: Complete ───────────────────────────────────────────────
        await self._set_status(lead_id, LeadStatus.COMPLETE)
        logger.info("[%s] Pipeline complete", lead_id)

        return PipelineResult(
            lead_id=lead_id,
            status=LeadStatus.COMPLETE.value,
            score=validation.score,
            report_id=str(report.id),
            opportunity_score=report.opportunity_score,
            recommended_robot=report.recommended_robot,
            news_count=len(research.news),
            source_count=len(sources),
        )
