from types import SimpleNamespace

import pytest

from conftest import LEAD_MESSAGE, fake_llm
from leadflow.schemas.report import ValidationResult
from leadflow.services.parser import parse_lead_message
from leadflow.services.validator import (
    assess_lead_quality,
    check_email_domain,
    is_generic_company_name,
    semantic_validate_lead,
    validate_email_format,
    validate_lead,
)


def make_lead(**fields):
    base = {
        "company": "Acme Mfg",
        "contact_name": "John Doe",
        "email": "john@acme.com",
        "use_case": "Welding",
        "lead_score": 75,
    }
    base.update(fields)
    return SimpleNamespace(**base)


@pytest.mark.unit
class TestEmailChecks:
    @pytest.mark.parametrize(
        "email,expected",
        [("a@b.co", True), ("john@acme.com", True), ("a b@c.com", False), ("abc", False), ("a@b", False)],
    )
    def test_validate_email_format(self, email, expected):
        assert validate_email_format(email) is expected

    def test_company_domain(self):
        assert check_email_domain("x@acme.com") == (True, "Company domain", 0)

    def test_personal_domain_is_acceptable_with_penalty(self):
        assert check_email_domain("x@gmail.com") == (True, "Personal email (gmail.com)", 8)

    def test_disposable_domain_case_insensitive(self):
        assert check_email_domain("x@YOPMAIL.com") == (False, "Disposable email provider", 20)

    def test_fake_domain(self):
        assert check_email_domain("x@example.com") == (False, "Test/fake domain", 25)

    def test_no_domain(self):
        assert check_email_domain("x") == (False, "No domain found", 20)


@pytest.mark.unit
def test_generic_company_names():
    assert is_generic_company_name("  Test ")
    assert is_generic_company_name("N/A")
    assert not is_generic_company_name("Acme Mfg")


@pytest.mark.unit
class TestAssessLeadQuality:
    def test_complete_lead_scores_full_marks(self):
        score, details = assess_lead_quality(parse_lead_message(LEAD_MESSAGE))
        assert score == 100
        assert details == {"basic_info": 25, "use_case": 25, "timeline": 25, "engagement": 25}

    @pytest.mark.parametrize(
        "timeline,points",
        [("0-30 days", 25), ("ASAP", 25), ("30-60 days", 18), ("90+ days", 10), ("6 Months", 8), ("", 0)],
    )
    def test_timeline_buckets(self, timeline, points):
        _, details = assess_lead_quality(make_lead(timeline=timeline))
        assert details["timeline"] == points

    def test_other_use_case_earns_partial_credit(self):
        _, details = assess_lead_quality(make_lead(use_case="Other"))
        assert details["use_case"] == 10

    def test_short_description_engagement(self):
        _, details = assess_lead_quality(make_lead(tell_us_more="Need a robot", phone="555"))
        assert details["engagement"] == 13


@pytest.mark.unit
class TestValidateLead:
    def test_complete_lead_passes(self):
        result = validate_lead(parse_lead_message(LEAD_MESSAGE))
        assert result.is_valid
        assert result.score == 100
        assert result.reason == "Lead validation passed"

    def test_minimal_company_lead_passes(self):
        result = validate_lead(make_lead())
        assert result.is_valid
        assert result.score == 75
        assert not result.disqualified

    def test_disposable_email_is_disqualified(self):
        result = validate_lead(make_lead(email="john@mailinator.com"))
        assert not result.is_valid
        assert result.disqualified
        assert "disposable" in result.reason.lower()
        assert result.score == 65

    def test_fake_domain_is_disqualified(self):
        result = validate_lead(make_lead(email="john@test.com"))
        assert not result.is_valid
        assert result.disqualified
        assert "Suspicious email: Test/fake domain" in result.reason

    def test_personal_email_does_not_block(self):
        result = validate_lead(
            make_lead(company="Acme", contact_name="Jo", email="jo@gmail.com", use_case="Other")
        )
        # (92 + 35) / 2 = 63.5, rounded half up
        assert result.score == 64
        assert result.is_valid
        assert result.reason == "Personal email (gmail.com)"

    def test_two_issues_block_even_with_passing_score(self):
        result = validate_lead(make_lead(company="Test", email="a@realco.com", lead_score=-20))
        assert result.score == 60
        assert not result.is_valid
        assert "Generic company name" in result.reason
        assert "Negative lead score (-20)" in result.reason

    def test_empty_lead(self):
        result = validate_lead(SimpleNamespace())
        assert not result.is_valid
        assert result.score == 20
        assert result.reason.startswith("Missing company name")

    def test_score_is_clamped(self):
        result = validate_lead(
            make_lead(company="", contact_name="", email="bad", lead_score=-5)
        )
        assert 0 <= result.score <= 100
        assert not result.is_valid


class TestSemanticValidation:
    @pytest.mark.asyncio
    async def test_uses_llm_verdict(self):
        client = fake_llm({"isValid": False, "reason": "Student project", "score": 30})

        result = await semantic_validate_lead(make_lead(), client, model="test-model")

        assert result == ValidationResult(is_valid=False, reason="Student project", score=30)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 256
        assert "Company: Acme Mfg" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_accepts_fenced_json_and_clamps_score(self):
        client = fake_llm('```json\n{"isValid": true, "reason": "Real plant", "score": 150}\n```')

        result = await semantic_validate_lead(make_lead(), client)

        assert result.is_valid
        assert result.score == 100

    @pytest.mark.asyncio
    async def test_string_verdict_is_not_a_yes(self):
        client = fake_llm({"isValid": "false", "reason": "Looks like spam", "score": 45})

        result = await semantic_validate_lead(make_lead(), client)

        assert result.is_valid is False
        assert result.score == 45

    @pytest.mark.asyncio
    async def test_falls_back_on_llm_error(self):
        fallback = ValidationResult(is_valid=True, reason="basic", score=55)
        client = fake_llm(error=RuntimeError("rate limited"))

        result = await semantic_validate_lead(make_lead(), client, fallback=fallback)

        assert result is fallback

    @pytest.mark.asyncio
    async def test_falls_back_without_client(self):
        result = await semantic_validate_lead(make_lead(), None)
        assert result == validate_lead(make_lead())
