import pytest

from conftest import LEAD_MESSAGE
from leadflow.services.parser import (
    is_lead_alert_message,
    normalize_field_name,
    parse_lead_message,
    parse_lead_score,
    validate_parsed_message,
)

CHANNEL = "C05B5QBJVAM"
BOT = "B02JNJTTULW"


@pytest.mark.unit
class TestParseLeadMessage:
    def test_extracts_labelled_fields(self):
        parsed = parse_lead_message(LEAD_MESSAGE)

        assert parsed.company == "Acme Mfg"
        assert parsed.contact_name == "John Doe"
        assert parsed.job_title == "Plant Manager"
        assert parsed.email == "john@acme.com"
        assert parsed.state == "Ohio"
        assert parsed.country == "United States"
        assert parsed.use_case == "Welding"
        assert parsed.timeline == "0-30 days"
        assert parsed.lead_source == "Google Organic Search"
        assert parsed.lead_score == 75
        assert parsed.raw_text == LEAD_MESSAGE

    def test_continuation_lines_join_previous_field(self):
        parsed = parse_lead_message(LEAD_MESSAGE)
        assert parsed.tell_us_more == (
            "We weld steel frames by hand and want to automate\nthe second shift."
        )

    def test_text_before_first_label_is_ignored(self):
        parsed = parse_lead_message("Some preamble\n*Company:* Globex")
        assert parsed.company == "Globex"
        assert parsed.contact_name == ""

    def test_unknown_labels_are_dropped(self):
        parsed = parse_lead_message("*Favourite Colour:* blue\n*Company:* Globex")
        assert parsed.company == "Globex"
        assert "blue" not in parsed.model_dump(exclude={"raw_text"}).values()

    def test_empty_text(self):
        parsed = parse_lead_message("")
        assert parsed.company == ""
        assert parsed.lead_score == 0

    def test_lead_score_label_variants(self):
        assert parse_lead_message("*Lead Score:* -20").lead_score == -20
        assert parse_lead_message("*Overall Lead Score:* 30 (warm)").lead_score == 30

    def test_to_lead_values_stores_missing_optionals_as_null(self):
        values = parse_lead_message("*Company:* Globex").to_lead_values()
        assert values["company"] == "Globex"
        assert values["phone"] is None
        assert values["tell_us_more"] is None
        assert values["raw_message"] == "*Company:* Globex"


@pytest.mark.unit
class TestFieldHelpers:
    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Company", "company"),
            ("Contact  Name", "contact_name"),
            ("COUNTRY/REGION", "country"),
            ("Overall Lead Score", "lead_score"),
            ("Budget", None),
        ],
    )
    def test_normalize_field_name(self, label, expected):
        assert normalize_field_name(label) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [("75", 75), ("-10 points", -10), ("+5", 5), ("n/a", 0), ("", 0), (None, 0)],
    )
    def test_parse_lead_score(self, value, expected):
        assert parse_lead_score(value) == expected


@pytest.mark.unit
class TestValidateParsedMessage:
    def test_complete_message_is_valid(self):
        valid, missing = validate_parsed_message(parse_lead_message(LEAD_MESSAGE))
        assert valid
        assert missing == []

    def test_reports_missing_required_fields(self):
        valid, missing = validate_parsed_message(
            parse_lead_message("*Company:* Globex\n*Email:* a@globex.com")
        )
        assert not valid
        assert missing == ["contact_name", "job_title", "use_case"]

    def test_zero_lead_score_is_not_missing(self):
        text = LEAD_MESSAGE.replace("*Overall Lead Score:* 75", "*Overall Lead Score:* 0")
        valid, missing = validate_parsed_message(parse_lead_message(text))
        assert valid
        assert missing == []


@pytest.mark.unit
class TestIsLeadAlertMessage:
    def test_accepts_channel_and_crm_bot(self):
        assert is_lead_alert_message(CHANNEL, BOT, channel=CHANNEL, bot=BOT)

    def test_accepts_human_post_in_channel(self):
        assert is_lead_alert_message(CHANNEL, None, channel=CHANNEL, bot=BOT)

    def test_rejects_other_bot(self):
        assert not is_lead_alert_message(CHANNEL, "BOTHER", channel=CHANNEL, bot=BOT)

    def test_rejects_other_channel(self):
        assert not is_lead_alert_message("CGENERAL", BOT, channel=CHANNEL, bot=BOT)
