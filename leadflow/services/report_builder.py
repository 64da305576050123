"""
Sales report generation.

One LLM call produces the whole report. If anything on that path fails, a
deterministic report is built from the lead itself so a lead never ends up
with a half-populated record. Sources always come from research, never from
the LLM.
"""

import logging

from openai import AsyncOpenAI

from leadflow.schemas.report import (
    ReportDraft,
    ResearchResult,
    SourceDraft,
    encode_items,
)
from leadflow.services.llm import complete_json, load_product_reference

logger = logging.getLogger(__name__)

ROBOT_CATALOG = {
    "Spark": {
        "price": "$29,500", "payload": "7kg", "reach": "625mm", "repeatability": "±0.02mm",
        "best_for": ["assembly", "inspection", "testing", "light material handling"],
    },
    "Core/RO1": {
        "price": "$37,000", "payload": "18kg", "reach": "930mm", "repeatability": "±0.02mm",
        "best_for": ["welding", "machine tending", "material handling", "finishing", "deburring"],
    },
    "Thor": {
        "price": "$49,500", "payload": "30kg", "reach": "1300mm", "repeatability": "±0.05mm",
        "best_for": ["palletizing", "heavy material handling", "packaging", "case packing"],
    },
    "Bolt": {
        "price": "Coming 2026", "payload": "Bimanual", "reach": "Full body",
        "repeatability": "Humanoid precision",
        "best_for": ["complex assembly", "dual-arm tasks", "human-like manipulation"],
    },
}
DEFAULT_ROBOT = "Core/RO1"

# Checked in order; first matching keyword wins
USE_CASE_KEYWORDS = [
    ("Thor", ("palletiz", "heavy", "packaging")),
    ("Core/RO1", ("weld", "machine tending", "material handling", "deburr", "finish")),
    ("Spark", ("assembl", "inspect", "test", "light")),
]

MAX_NEWS_SOURCES = 5


def format_catalog() -> str:
    lines = []
    for name, spec in ROBOT_CATALOG.items():
        lines.append(
            f"- {name} ({spec['price']}): {spec['payload']} payload, {spec['reach']} reach, "
            f"{spec['repeatability']} repeatability. Best for: {', '.join(spec['best_for'])}."
        )
    return "\n".join(lines)


SYSTEM_PROMPT = """You are a senior sales intelligence analyst at Standard Bots, a collaborative robotics company.
You are generating a detailed research report for a salesperson to read BEFORE their first call with a prospect.

STANDARD BOTS PRODUCTS:
{catalog}

KEY SELLING POINTS: No-code programming (teach by hand-guiding), far cheaper than traditional industrial robots, deploys in hours not months, collaborative safety (works alongside humans), cloud-connected with OTA updates.
{reference}
You MUST return ONLY valid JSON (no markdown, no backticks) with this exact structure:
{{
  "company_summary": "2-3 paragraph overview of the company, their operations, and industry position",
  "use_case_analysis": "Detailed analysis of how Standard Bots solves their stated need, referencing specific robot capabilities",
  "recent_news": [{{"title": "", "url": "", "source": "", "date": ""}}],
  "additional_opportunities": [{{"use_case": "", "robot": "", "description": ""}}],
  "recommended_robot": "{robots}",
  "recommendation_rationale": "3-4 sentences explaining why this specific robot fits, with specs and pricing",
  "recommendation_confidence": 0,
  "opportunity_score": 0,
  "talking_points": [{{"topic": "", "detail": "", "question": ""}}],
  "roi_angles": [{{"angle": "", "explanation": ""}}],
  "risk_factors": [{{"risk": "", "mitigation": ""}}],
  "competitor_context": "Who else might be pitching this customer and how Standard Bots wins"
}}

IMPORTANT RULES:
- recommended_robot MUST be one of: {robots_list}
- recommendation_confidence and opportunity_score are integers from 0 to 100
- opportunity_score considers: timeline urgency, use case fit, company legitimacy, budget signals, decision-maker access
- give 5 talking_points, 3-4 roi_angles, 2-3 risk_factors and 2-4 additional_opportunities
- talking_points questions should be open-ended discovery questions
- Be specific and actionable; generic advice is useless to salespeople"""


def build_system_prompt() -> str:
    reference = load_product_reference()
    return SYSTEM_PROMPT.format(
        catalog=format_catalog(),
        reference=f"\nPRODUCT REFERENCE:\n{reference}\n" if reference else "",
        robots="|".join(ROBOT_CATALOG),
        robots_list=", ".join(ROBOT_CATALOG),
    )


def format_research_for_prompt(research: ResearchResult) -> str:
    lines = []
    company = research.company
    if company.description:
        lines.append(f"Company Description: {company.description}")
    if company.website:
        lines.append(f"Website: {company.website}")
    if company.industry:
        lines.append(f"Industry: {company.industry}")
    if company.size:
        lines.append(f"Company Size: {company.size}")

    if research.news:
        lines.append("")
        lines.append("Recent News:")
        for n in research.news[:MAX_NEWS_SOURCES]:
            when = f", {n.date}" if n.date else ""
            lines.append(f'- "{n.title}" ({n.source}{when})')
            lines.append(f"  {n.snippet}")

    return "\n".join(lines) if lines else "No additional research data available."


def build_user_prompt(lead, research: ResearchResult) -> str:
    if lead.state:
        location = f"{lead.state}, {lead.country or 'US'}"
    else:
        location = lead.country or "Unknown"

    return f"""Generate a sales intelligence report for this lead:

LEAD DATA:
- Company: {lead.company}
- Contact: {lead.contact_name} ({lead.job_title or 'No title'})
- Email: {lead.email}
- Phone: {lead.phone or 'N/A'}
- Location: {location}
- Use Case: {lead.use_case}
- Timeline: {lead.timeline or 'Not specified'}
- Lead Source: {lead.lead_source or 'Unknown'}
- CRM Lead Score: {lead.lead_score}
- Description: {lead.tell_us_more or 'No additional details provided'}

RESEARCH FINDINGS:
{format_research_for_prompt(research)}"""


def recommend_robot_fallback(use_case: str | None) -> str:
    uc = (use_case or "").lower()
    for robot, keywords in USE_CASE_KEYWORDS:
        if any(keyword in uc for keyword in keywords):
            return robot
    return DEFAULT_ROBOT


def calculate_fallback_score(lead) -> int:
    score = 50
    if (lead.lead_score or 0) > 50:
        score += 15
    timeline = lead.timeline or ""
    if "0-30" in timeline:
        score += 15
    elif "30-60" in timeline:
        score += 10
    if lead.tell_us_more and len(lead.tell_us_more) > 50:
        score += 10
    if lead.phone:
        score += 5
    return min(100, score)


def _clamp_score(value, default: int) -> int:
    try:
        score = int(value)
    except (TypeError, ValueError):
        return default
    return max(0, min(100, score))


def build_sources(lead, research: ResearchResult) -> list[SourceDraft]:
    """Top news items as citations, company website first when known."""
    sources = []
    for article in research.news[:MAX_NEWS_SOURCES]:
        when = f" — {article.date}" if article.date else ""
        sources.append(
            SourceDraft(
                title=article.title,
                url=article.url,
                description=f"{article.source}{when}: {article.snippet[:200]}",
            )
        )

    if research.company.website:
        sources.insert(
            0,
            SourceDraft(
                title=f"{lead.company} — Company Website",
                url=research.company.website,
                description=research.company.description or "Company homepage",
            ),
        )
    return sources


def build_fallback_report(lead, research: ResearchResult) -> ReportDraft:
    robot = recommend_robot_fallback(lead.use_case)
    spec = ROBOT_CATALOG[robot]
    use_case = lead.use_case or "automation"

    summary = f"{lead.company} is a company"
    if lead.state:
        summary += f" based in {lead.state}"
    if lead.industry:
        summary += f" in the {lead.industry} industry"
    summary += f". They submitted an inquiry about {use_case.lower()} automation"
    if lead.tell_us_more:
        summary += f'. They noted: "{lead.tell_us_more[:200]}"'
    summary += "."

    return ReportDraft(
        company_summary=summary,
        use_case_analysis=(
            f"{lead.company} is interested in {use_case} automation. Further research and "
            "discovery call needed to fully assess their requirements and how Standard Bots can help."
        ),
        recent_news=encode_items([
            {"title": n.title, "url": n.url, "source": n.source, "date": n.date}
            for n in research.news[:3]
        ]),
        additional_opportunities=encode_items([]),
        recommended_robot=robot,
        recommendation_rationale=(
            f"The {robot} ({spec['price']}) is recommended based on their stated "
            f"{use_case.lower()} use case. It offers {spec['payload']} payload with "
            f"{spec['reach']} reach. A discovery call will help confirm the best fit."
        ),
        recommendation_confidence=60,
        opportunity_score=calculate_fallback_score(lead),
        talking_points=encode_items([
            {
                "topic": "Primary Use Case",
                "detail": f"Discuss their {use_case} requirements in detail",
                "question": "Can you walk me through your current process and where the bottlenecks are?",
            },
            {
                "topic": "Timeline",
                "detail": f"They indicated a {lead.timeline or 'flexible'} timeline",
                "question": "What is driving your timeline? Is there a specific event or production target?",
            },
        ]),
        roi_angles=encode_items([
            {"angle": "Labor Savings", "explanation": "Automating manual tasks can significantly reduce labor costs"},
        ]),
        risk_factors=encode_items([
            {"risk": "Incomplete information", "mitigation": "Prioritize a discovery call to understand full requirements before quoting"},
        ]),
        competitor_context="Unknown. Determine during the discovery call which alternatives they are evaluating.",
    )


def parse_report(data: dict, lead) -> ReportDraft:
    """Map the LLM's JSON onto a report draft, repairing out-of-contract values."""
    robot = data.get("recommended_robot")
    if robot not in ROBOT_CATALOG:
        if robot:
            logger.warning("LLM recommended unknown robot %r, using keyword mapping", robot)
        robot = recommend_robot_fallback(lead.use_case)

    return ReportDraft(
        company_summary=data.get("company_summary") or None,
        use_case_analysis=data.get("use_case_analysis") or None,
        recent_news=encode_items(data.get("recent_news")),
        additional_opportunities=encode_items(data.get("additional_opportunities")),
        recommended_robot=robot,
        recommendation_rationale=data.get("recommendation_rationale") or None,
        recommendation_confidence=_clamp_score(data.get("recommendation_confidence") or 75, 75),
        opportunity_score=_clamp_score(
            data.get("opportunity_score") or calculate_fallback_score(lead),
            calculate_fallback_score(lead),
        ),
        talking_points=encode_items(data.get("talking_points")),
        roi_angles=encode_items(data.get("roi_angles")),
        risk_factors=encode_items(data.get("risk_factors")),
        competitor_context=data.get("competitor_context") or None,
    )


async def generate_report(
    lead,
    research: ResearchResult,
    *,
    client: AsyncOpenAI | None,
    model: str | None = None,
) -> tuple[ReportDraft, list[SourceDraft]]:
    """Build the report for a lead; falls back to a deterministic report on any failure."""
    sources = build_sources(lead, research)

    try:
        data = await complete_json(
            client,
            system_prompt=build_system_prompt(),
            user_prompt=build_user_prompt(lead, research),
            temperature=0.4,
            max_tokens=4096,
            model=model,
        )
        report = parse_report(data, lead)
    except Exception as e:
        logger.error("Error generating report via LLM, using fallback: %s", e)
        report = build_fallback_report(lead, research)

    return report, sources
