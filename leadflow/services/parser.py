"""
Lead-alert message parsing.

The CRM bot posts one line per field in `*Label:* value` form. Values may
continue on following lines (long "Tell Us More" answers) until the next label.
"""

import re

from leadflow.schemas.lead import ParsedLeadMessage

LABEL_PATTERN = re.compile(r"^\*([^*]+):\*\s*(.*)$")
LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

FIELD_MAP = {
    "company": "company",
    "contact name": "contact_name",
    "job title": "job_title",
    "phone": "phone",
    "email": "email",
    "state": "state",
    "country / region": "country",
    "country/region": "country",
    "country": "country",
    "use case": "use_case",
    "timeline": "timeline",
    "lead source": "lead_source",
    "overall lead score": "lead_score",
    "lead score": "lead_score",
    "tell us more": "tell_us_more",
}

REQUIRED_FIELDS = ["company", "contact_name", "job_title", "email", "use_case"]


def normalize_field_name(label: str) -> str | None:
    """Map a label to its field name; unknown labels return None."""
    normalized = re.sub(r"\s+", " ", label.lower()).strip()
    return FIELD_MAP.get(normalized)


def parse_lead_score(value: str | None) -> int:
    """Leading base-10 integer of the value, 0 when there is none."""
    if not value:
        return 0
    match = LEADING_INT_PATTERN.match(value)
    return int(match.group(1)) if match else 0


def parse_lead_message(text: str) -> ParsedLeadMessage:
    """Parse a lead-alert message into a structured record. Never raises."""
    text = text or ""
    parsed: dict[str, str] = {}

    current_field = ""
    current_value = ""

    def flush():
        key = normalize_field_name(current_field)
        if key:
            parsed[key] = current_value.strip()

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        match = LABEL_PATTERN.match(line)

        if match:
            if current_field:
                flush()
            current_field = match.group(1)
            current_value = match.group(2)
        elif current_field:
            current_value = f"{current_value}\n{line}" if current_value else line

    if current_field:
        flush()

    lead_score = parse_lead_score(parsed.pop("lead_score", None))
    return ParsedLeadMessage(**parsed, lead_score=lead_score, raw_text=text)


def validate_parsed_message(parsed: ParsedLeadMessage) -> tuple[bool, list[str]]:
    """Check the fields a lead needs before it may enter the pipeline."""
    missing = [
        field for field in REQUIRED_FIELDS
        if not str(getattr(parsed, field) or "").strip()
    ]
    return not missing, missing


def is_lead_alert_message(
    channel_id: str | None,
    bot_id: str | None = None,
    *,
    channel: str,
    bot: str,
) -> bool:
    """Accept the lead-alerts channel, and only the CRM bot when a bot posted it."""
    channel_match = channel_id == channel
    bot_match = not bot_id or bot_id == bot
    return channel_match and bot_match
