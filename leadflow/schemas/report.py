"""
Schemas for validation, research and report data.

Report array fields are stored as text that is usually, but not always, JSON.
`decode_items` reads them once into fixed item shapes so callers never have to
sniff the stored form.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    is_valid: bool
    reason: str
    score: int = Field(..., ge=0, le=100)
    # Fake/disposable email domain: never admitted, whatever the score
    disqualified: bool = False


# ============================================================
# Research
# ============================================================

class CompanyInfo(BaseModel):
    name: str
    website: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    logo: Optional[str] = None
    location: Optional[str] = None


class NewsArticle(BaseModel):
    title: str
    url: str
    source: str
    snippet: str = ""
    date: Optional[str] = None


class ResearchResult(BaseModel):
    company: CompanyInfo
    news: list[NewsArticle] = Field(default_factory=list)
    logo: Optional[str] = None


# ============================================================
# Report drafts (pipeline output, before persistence)
# ============================================================

class ReportDraft(BaseModel):
    company_summary: Optional[str] = None
    use_case_analysis: Optional[str] = None
    recent_news: Optional[str] = None
    additional_opportunities: Optional[str] = None
    recommended_robot: str
    recommendation_rationale: Optional[str] = None
    recommendation_confidence: int = Field(..., ge=0, le=100)
    opportunity_score: int = Field(..., ge=0, le=100)
    talking_points: Optional[str] = None
    roi_angles: Optional[str] = None
    risk_factors: Optional[str] = None
    competitor_context: Optional[str] = None


class SourceDraft(BaseModel):
    title: str
    url: str
    description: Optional[str] = None


# ============================================================
# Decoded report items
# ============================================================

class TalkingPoint(BaseModel):
    topic: str = ""
    detail: str = ""
    question: str = ""


class RoiAngle(BaseModel):
    angle: str = ""
    explanation: str = ""


class RiskFactor(BaseModel):
    risk: str = ""
    mitigation: str = ""


class Opportunity(BaseModel):
    use_case: str = ""
    robot: str = ""
    description: str = ""


class NewsItem(BaseModel):
    title: str = ""
    url: str = ""
    source: str = ""
    date: str = ""


# item model -> {field: accepted keys}; the first field takes bare strings
ITEM_ALIASES: dict[type[BaseModel], dict[str, tuple[str, ...]]] = {
    TalkingPoint: {
        "topic": ("topic", "title", "point", "name"),
        "detail": ("detail", "details", "description", "text"),
        "question": ("question", "discovery_question", "ask"),
    },
    RoiAngle: {
        "angle": ("angle", "title", "name"),
        "explanation": ("explanation", "detail", "description", "text"),
    },
    RiskFactor: {
        "risk": ("risk", "objection", "title"),
        "mitigation": ("mitigation", "response", "handling", "detail"),
    },
    Opportunity: {
        "use_case": ("use_case", "useCase", "opportunity", "title", "name"),
        "robot": ("robot", "product", "recommended_robot"),
        "description": ("description", "detail", "details", "text"),
    },
    NewsItem: {
        "title": ("title", "headline"),
        "url": ("url", "link"),
        "source": ("source", "publisher"),
        "date": ("date", "published", "publishedDate"),
    },
}


def encode_items(value: Any) -> Optional[str]:
    """Serialize an array field for storage; strings are stored as-is."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _to_item(model: type[BaseModel], raw: Any) -> Optional[BaseModel]:
    aliases = ITEM_ALIASES[model]
    if isinstance(raw, dict):
        values = {}
        for field, keys in aliases.items():
            for key in keys:
                if raw.get(key) not in (None, ""):
                    values[field] = str(raw[key])
                    break
        return model(**values) if values else None
    if raw in (None, ""):
        return None
    first_field = next(iter(aliases))
    return model(**{first_field: str(raw)})


def decode_items(model: type[BaseModel], stored: Optional[str]) -> list:
    """
    Decode a stored array field into a list of `model` items.

    Accepts a JSON array (of objects or strings), a JSON-encoded string holding
    such an array, a single JSON object, or plain text (one item).
    """
    if not stored or not stored.strip():
        return []

    try:
        data = json.loads(stored)
    except ValueError:
        data = stored.strip()

    # LLMs sometimes double-encode arrays
    if isinstance(data, str):
        try:
            inner = json.loads(data)
            if isinstance(inner, (list, dict)):
                data = inner
        except ValueError:
            pass

    if not isinstance(data, list):
        data = [data]

    items = (_to_item(model, raw) for raw in data)
    return [item for item in items if item is not None]


# ============================================================
# Responses
# ============================================================

class ReportResponse(BaseModel):
    id: str
    lead_id: str
    company_summary: Optional[str]
    use_case_analysis: Optional[str]
    recommended_robot: Optional[str]
    recommendation_rationale: Optional[str]
    recommendation_confidence: Optional[int]
    opportunity_score: Optional[int]
    competitor_context: Optional[str]
    talking_points: list[TalkingPoint]
    roi_angles: list[RoiAngle]
    risk_factors: list[RiskFactor]
    additional_opportunities: list[Opportunity]
    recent_news: list[NewsItem]
    created_at: Optional[datetime]

    @classmethod
    def from_report(cls, report) -> "ReportResponse":
        return cls(
            id=str(report.id),
            lead_id=str(report.lead_id),
            company_summary=report.company_summary,
            use_case_analysis=report.use_case_analysis,
            recommended_robot=report.recommended_robot,
            recommendation_rationale=report.recommendation_rationale,
            recommendation_confidence=report.recommendation_confidence,
            opportunity_score=report.opportunity_score,
            competitor_context=report.competitor_context,
            talking_points=decode_items(TalkingPoint, report.talking_points),
            roi_angles=decode_items(RoiAngle, report.roi_angles),
            risk_factors=decode_items(RiskFactor, report.risk_factors),
            additional_opportunities=decode_items(
                Opportunity, report.additional_opportunities
            ),
            recent_news=decode_items(NewsItem, report.recent_news),
            created_at=report.created_at,
        )


class SourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    lead_id: str
    title: str
    url: str
    description: Optional[str]
    created_at: Optional[datetime]
