"""
Lead legitimacy scoring.

Deterministic heuristics produce a 0-100 score; borderline leads can get a
second opinion from the LLM, which falls back to the heuristic result on any
failure.
"""

import logging
import math
import re

from openai import AsyncOpenAI

from leadflow.schemas.report import ValidationResult
from leadflow.services.llm import complete_json, load_product_reference

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FAKE_DOMAINS = {
    "test.com", "example.com", "fake.com", "invalid.com",
    "localhost", "noemail.com", "sample.com",
}
DISPOSABLE_DOMAINS = {
    "tempmail.com", "guerrillamail.com", "mailinator.com",
    "10minutemail.com", "throwaway.email", "yopmail.com",
}
PERSONAL_DOMAINS = {
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com",
    "aol.com", "icloud.com", "protonmail.com", "mail.com",
}
GENERIC_COMPANY_NAMES = {
    "test company", "test", "demo", "example", "sample",
    "company", "business", "startup", "n/a", "none",
    "abc", "xyz", "asdf", "qwerty",
}

PERSONAL_EMAIL_PREFIX = "Personal email"


def _text(lead, name: str) -> str:
    value = getattr(lead, name, None)
    return value.strip() if isinstance(value, str) else ""


def validate_email_format(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def check_email_domain(email: str) -> tuple[bool, str, int]:
    """Classify the email domain: (acceptable, reason, penalty)."""
    parts = email.split("@")
    domain = parts[1] if len(parts) > 1 else ""
    if not domain:
        return False, "No domain found", 20

    d = domain.lower()
    if d in FAKE_DOMAINS:
        return False, "Test/fake domain", 25
    if d in DISPOSABLE_DOMAINS:
        return False, "Disposable email provider", 20
    # Lower quality for B2B, but not disqualifying
    if d in PERSONAL_DOMAINS:
        return True, f"{PERSONAL_EMAIL_PREFIX} ({d})", 8
    return True, "Company domain", 0


def is_generic_company_name(name: str) -> bool:
    return name.lower().strip() in GENERIC_COMPANY_NAMES


def assess_lead_quality(lead) -> tuple[int, dict[str, int]]:
    """Four capped buckets of 25 points: basic info, use case, timeline, engagement."""
    details = {"basic_info": 0, "use_case": 0, "timeline": 0, "engagement": 0}

    if _text(lead, "company"):
        details["basic_info"] += 10
    if _text(lead, "contact_name"):
        details["basic_info"] += 8
    if _text(lead, "email"):
        details["basic_info"] += 7

    use_case = _text(lead, "use_case")
    if use_case and use_case != "Other":
        details["use_case"] = 25
    elif use_case:
        details["use_case"] = 10

    timeline = _text(lead, "timeline").lower()
    if timeline:
        if "0-30" in timeline or "immediate" in timeline or "asap" in timeline:
            details["timeline"] = 25
        elif "30-60" in timeline or "60-90" in timeline:
            details["timeline"] = 18
        elif "90+" in timeline or "quarter" in timeline:
            details["timeline"] = 10
        else:
            details["timeline"] = 8

    engagement = 0
    tell_us_more = getattr(lead, "tell_us_more", None) or ""
    if len(tell_us_more) > 30:
        engagement += 15
    elif len(tell_us_more) > 10:
        engagement += 8
    if _text(lead, "phone"):
        engagement += 5
    if _text(lead, "job_title"):
        engagement += 5
    details["engagement"] = min(25, engagement)

    return sum(details.values()), details


def validate_lead(lead) -> ValidationResult:
    """Deterministic validation: penalty score averaged with the quality score."""
    issues: list[str] = []
    disqualified = False
    score = 100

    company = _text(lead, "company")
    email = _text(lead, "email")

    if not company:
        issues.append("Missing company name")
        score -= 20
    if not _text(lead, "contact_name"):
        issues.append("Missing contact name")
        score -= 20
    if not email:
        issues.append("Missing email address")
        score -= 20

    if email:
        if not validate_email_format(email):
            issues.append("Invalid email format")
            score -= 15

        acceptable, reason, penalty = check_email_domain(email)
        if not acceptable:
            issues.append(f"Suspicious email: {reason}")
            disqualified = True
        elif penalty > 0:
            issues.append(reason)
        score -= penalty

    if company and is_generic_company_name(company):
        issues.append("Generic company name (possible test/spam)")
        score -= 15

    lead_score = getattr(lead, "lead_score", None)
    if lead_score is not None and lead_score < 0:
        issues.append(f"Negative lead score ({lead_score})")
        score -= 15

    quality, _ = assess_lead_quality(lead)
    # Round half up
    score = math.floor((score + quality) / 2 + 0.5)
    score = max(0, min(100, score))

    blocking = [i for i in issues if not i.startswith(PERSONAL_EMAIL_PREFIX)]
    is_valid = score >= 50 and len(blocking) <= 1 and not disqualified
    reason = "; ".join(issues) if issues else "Lead validation passed"

    return ValidationResult(
        is_valid=is_valid,
        reason=reason,
        score=score,
        disqualified=disqualified,
    )


SEMANTIC_SYSTEM_PROMPT = """You are a lead qualification expert for Standard Bots, a collaborative robotics company.
Your job is to assess whether an inbound lead is a legitimate business inquiry worth researching.
{reference}
Return ONLY valid JSON with these fields:
- isValid (boolean): true if this is a real business lead worth researching
- reason (string): 1-2 sentence explanation
- score (number): 0-100 confidence that this is a quality lead

Factors that INCREASE score: company domain email, specific use case matching our products (welding, palletizing, machine tending, material handling, inspection), detailed "tell us more", positive CRM lead score, timeline urgency, job title suggesting decision-maker.

Factors that DECREASE score: personal email (gmail, etc), vague or missing description, generic company name, negative CRM lead score, "Other" use case with no detail, no phone number."""


def lead_summary(lead) -> str:
    lead_score = getattr(lead, "lead_score", None)
    return "\n".join([
        f"Company: {_text(lead, 'company') or 'N/A'}",
        f"Contact: {_text(lead, 'contact_name') or 'N/A'} ({_text(lead, 'job_title') or 'No title'})",
        f"Email: {_text(lead, 'email') or 'N/A'}",
        f"Phone: {_text(lead, 'phone') or 'N/A'}",
        f"State: {_text(lead, 'state') or 'N/A'}",
        f"Use Case: {_text(lead, 'use_case') or 'N/A'}",
        f"Timeline: {_text(lead, 'timeline') or 'N/A'}",
        f"Lead Score: {lead_score if lead_score is not None else 'N/A'}",
        f"Tell Us More: {_text(lead, 'tell_us_more') or 'N/A'}",
    ])


async def semantic_validate_lead(
    lead,
    client: AsyncOpenAI | None,
    *,
    fallback: ValidationResult | None = None,
    model: str | None = None,
) -> ValidationResult:
    """Ask the LLM whether the inquiry is a real lead for our product domain."""
    reference = load_product_reference()
    system_prompt = SEMANTIC_SYSTEM_PROMPT.format(
        reference=f"\nProduct Reference:\n{reference}\n" if reference else ""
    )

    try:
        data = await complete_json(
            client,
            system_prompt=system_prompt,
            user_prompt=lead_summary(lead),
            temperature=0.2,
            max_tokens=256,
            model=model,
        )
        score = int(data.get("score") or 0)
        return ValidationResult(
            is_valid=data.get("isValid") is True,
            reason=str(data.get("reason") or "Unable to determine"),
            score=max(0, min(100, score)),
        )
    except Exception as e:
        logger.warning("Semantic validation failed, falling back to basic: %s", e)
        return fallback if fallback is not None else validate_lead(lead)
