"""
Shared fixtures: in-memory SQLite database, ASGI client with overridden
dependencies, and fakes for the LLM, research and background runner.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leadflow.db.models import Base, Lead
from leadflow.db.session import get_session_factory
from leadflow.main import app
from leadflow.routes.deps import get_llm_client, get_pipeline
from leadflow.schemas.report import CompanyInfo, NewsArticle, ResearchResult
from leadflow.services.pipeline import LeadPipeline
from leadflow.services.tasks import get_task_runner

LEAD_MESSAGE = "\n".join([
    "Acme Mfg submitted a request via Current Registration Form.",
    "*Company:* Acme Mfg",
    "*Contact Name:* John Doe",
    "*Job Title:* Plant Manager",
    "*Phone:* +1 555-010-2000",
    "*Email:* john@acme.com",
    "*State:* Ohio",
    "*Country / Region:* United States",
    "*Use Case:* Welding",
    "*Timeline:* 0-30 days",
    "*Lead Source:* Google Organic Search",
    "*Overall Lead Score:* 75",
    "*Tell Us More:* We weld steel frames by hand and want to automate",
    "the second shift.",
])


class RecordingRunner:
    """Task runner stand-in that records jobs instead of scheduling them."""

    def __init__(self):
        self.jobs = []

    def enqueue(self, fn, *args, name=None):
        self.jobs.append((fn, args, name))

    @property
    def pending(self):
        return len(self.jobs)

    async def drain(self):
        jobs, self.jobs = self.jobs, []
        for fn, args, _ in jobs:
            await fn(*args)


def llm_response(payload) -> SimpleNamespace:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def fake_llm(*payloads, error: Exception | None = None) -> SimpleNamespace:
    """AsyncOpenAI look-alike answering `chat.completions.create` in order."""
    create = AsyncMock()
    if error is not None:
        create.side_effect = error
    else:
        create.side_effect = [llm_response(p) for p in payloads]
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def acme_research(company: str = "Acme Mfg") -> ResearchResult:
    return ResearchResult(
        company=CompanyInfo(
            name=company,
            website="https://acme.example",
            description="Contract manufacturer of welded steel frames.",
        ),
        news=[
            NewsArticle(
                title=f"{company} opens second plant",
                url="https://news.example/acme-plant",
                source="news.example",
                snippet="The new facility doubles welding capacity.",
                date="2026-01-12",
            ),
        ],
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_lead(session_factory):
    """Insert a lead row; keyword arguments override the defaults."""

    async def _make(**overrides) -> Lead:
        values = {
            "company": "Acme Mfg",
            "contact_name": "John Doe",
            "job_title": "Plant Manager",
            "email": "john@acme.com",
            "use_case": "Welding",
            "lead_score": 75,
            "raw_message": LEAD_MESSAGE,
        }
        values.update(overrides)
        async with session_factory() as session:
            lead = Lead(**values)
            session.add(lead)
            await session.commit()
        return lead

    return _make


@pytest.fixture
def research_fn():
    async def _research(company_name, website=None):
        return acme_research(company_name)

    return AsyncMock(side_effect=_research)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_pipeline(session_factory, research_fn, sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    def _make(**kwargs) -> LeadPipeline:
        kwargs.setdefault("research_fn", research_fn)
        return LeadPipeline(session_factory, sleep=_sleep, **kwargs)

    return _make


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
async def client(session_factory, make_pipeline, runner):
    pipeline = make_pipeline()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_llm_client] = lambda: None
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_task_runner] = lambda: runner

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
