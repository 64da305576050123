"""
Correlation keys for idempotent lead ingestion.

A Slack retry re-delivers the same event id; a backfill only knows the
message timestamp. Either one identifies a message already ingested.
"""


def extract_correlation_keys(body: dict) -> tuple[str | None, str | None]:
    """
    Return (event_id, message_timestamp) from a Slack event callback.

    The timestamp is taken from the event itself, falling back to the
    envelope. Empty/missing values normalized to None.
    """
    event = body.get("event") or {}
    event_id = _extract_string(body, ["event_id"])
    timestamp = _extract_string(event, ["ts", "event_ts"]) or _extract_string(
        body, ["event_ts", "event_time"]
    )
    return event_id, timestamp


def _extract_string(payload: dict, keys: list[str]) -> str | None:
    """Extract first matching non-empty key value as string."""
    for key in keys:
        val = payload.get(key)
        if val is not None and str(val).strip():
            return str(val).strip()
    return None
