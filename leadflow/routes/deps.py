"""
Shared FastAPI dependencies.

Clients are built here and injected into the routes so tests can swap them
through `app.dependency_overrides`.
"""

from functools import lru_cache
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.config import settings
from leadflow.db.session import get_session_factory
from leadflow.services.crm import HubSpotClient
from leadflow.services.llm import build_client
from leadflow.services.meetings import FirefliesClient
from leadflow.services.pipeline import LeadPipeline


def validate_lead_id(lead_id: str) -> None:
    try:
        UUID(lead_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid lead ID format.")


@lru_cache
def get_llm_client() -> AsyncOpenAI | None:
    return build_client()


def get_pipeline(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    llm_client: AsyncOpenAI | None = Depends(get_llm_client),
) -> LeadPipeline:
    return LeadPipeline(session_factory, llm_client=llm_client, model=settings.openai_model)


async def get_hubspot_client():
    if not settings.hubspot_access_token:
        raise HTTPException(status_code=503, detail="HubSpot not configured")
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        yield HubSpotClient(settings.hubspot_access_token, settings.hubspot_portal_id, http)


async def get_fireflies_client():
    if not settings.fireflies_api_key:
        raise HTTPException(status_code=503, detail="Fireflies not configured")
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        yield FirefliesClient(settings.fireflies_api_key, http)
