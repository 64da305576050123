"""Fireflies meeting-transcript lookup for a lead."""

import logging
from datetime import datetime

import httpx

logger = logging.getLogger(__name__)

TRANSCRIPT_FIELDS = """
    id
    title
    date
    duration
    organizer_email
    participants
    transcript_url
    summary {
      overview
      action_items
      keywords
    }
"""

BY_TITLE_QUERY = f"""
query SearchTranscripts($title: String) {{
  transcripts(title: $title, limit: 10) {{{TRANSCRIPT_FIELDS}}}
}}
"""

BY_PARTICIPANT_QUERY = f"""
query SearchByParticipant($email: String) {{
  transcripts(participant_email: $email, limit: 10) {{{TRANSCRIPT_FIELDS}}}
}}
"""


def _sort_key(transcript: dict) -> float:
    value = transcript.get("date")
    if isinstance(value, (int, float)):
        # Fireflies dates are epoch milliseconds
        return float(value) / 1000
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    return 0.0


class FirefliesClient:
    """GraphQL client for Fireflies transcripts; errors degrade to no results."""

    api_url = "https://api.fireflies.ai/graphql"

    def __init__(self, api_key: str, http_client: httpx.AsyncClient):
        self.api_key = api_key
        self.http = http_client

    async def query(self, query: str, variables: dict | None = None) -> list[dict]:
        try:
            response = await self.http.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error("Fireflies API error: %s", e)
            return []
        return ((data or {}).get("data") or {}).get("transcripts") or []

    async def find_meetings(self, lead) -> dict:
        """Transcripts matching the contact name, the company or the contact email, newest first."""
        found: dict[str, dict] = {}

        searches = [
            (BY_TITLE_QUERY, {"title": term})
            for term in (lead.contact_name, lead.company) if term
        ]
        if lead.email:
            searches.append((BY_PARTICIPANT_QUERY, {"email": lead.email}))

        for query, variables in searches:
            for transcript in await self.query(query, variables):
                if transcript.get("id"):
                    found.setdefault(transcript["id"], transcript)

        transcripts = sorted(found.values(), key=_sort_key, reverse=True)
        return {
            "meetings": [
                {
                    "id": t["id"],
                    "title": t.get("title"),
                    "date": t.get("date"),
                    "duration": t.get("duration"),
                    "organizer_email": t.get("organizer_email"),
                    "participants": t.get("participants") or [],
                    "transcript_url": t.get("transcript_url"),
                    "overview": (t.get("summary") or {}).get("overview"),
                    "action_items": (t.get("summary") or {}).get("action_items"),
                    "keywords": (t.get("summary") or {}).get("keywords") or [],
                }
                for t in transcripts
            ],
            "total": len(transcripts),
        }
