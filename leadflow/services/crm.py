"""HubSpot CRM lookup for a lead's contact, company, deals, tickets and notes."""

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

CONTACT_PROPERTIES = [
    "firstname", "lastname", "email", "company", "jobtitle",
    "lifecyclestage", "hs_lead_status", "phone", "lastmodifieddate",
    "notes_last_updated", "num_associated_deals",
]
COMPANY_PROPERTIES = [
    "name", "domain", "industry", "numberofemployees", "annualrevenue",
    "city", "state", "country", "description", "website",
    "num_associated_contacts", "num_associated_deals",
]
DEAL_PROPERTIES = [
    "dealname", "amount", "dealstage", "pipeline", "closedate",
    "hs_lastmodifieddate", "hubspot_owner_id",
]
TICKET_PROPERTIES = [
    "subject", "content", "hs_pipeline_stage", "hs_ticket_priority",
    "createdate", "hs_lastmodifieddate",
]
NOTE_PROPERTIES = ["hs_note_body", "hs_timestamp", "hs_lastmodifieddate"]


class HubSpotClient:
    """
    Read-only HubSpot client.

    Every call degrades to an empty result on a non-2xx answer or a network
    error; this is panel data and is never retried.
    """

    base_url = "https://api.hubapi.com"

    def __init__(self, token: str, portal_id: str, http_client: httpx.AsyncClient):
        self.token = token
        self.portal_id = portal_id
        self.http = http_client
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def search(self, object_type: str, query: str, properties: list[str]) -> dict:
        try:
            response = await self.http.post(
                f"{self.base_url}/crm/v3/objects/{object_type}/search",
                headers=self.headers,
                json={"query": query, "limit": 5, "properties": properties},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error("HubSpot %s search failed: %s", object_type, e)
            return {"results": [], "total": 0}

    async def get_associations(self, object_type: str, object_id: str, to_object_type: str) -> list[dict]:
        try:
            response = await self.http.get(
                f"{self.base_url}/crm/v3/objects/{object_type}/{object_id}/associations/{to_object_type}",
                headers=self.headers,
            )
            response.raise_for_status()
            return response.json().get("results") or []
        except httpx.HTTPError as e:
            logger.error("HubSpot %s associations failed: %s", to_object_type, e)
            return []

    async def get_object(self, object_type: str, object_id: str, properties: list[str]) -> dict | None:
        try:
            response = await self.http.get(
                f"{self.base_url}/crm/v3/objects/{object_type}/{object_id}",
                headers=self.headers,
                params=[("properties", p) for p in properties],
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error("HubSpot %s %s fetch failed: %s", object_type, object_id, e)
            return None

    async def _associated(
        self, contact_id: str, to_object_type: str, properties: list[str], limit: int
    ) -> list[dict]:
        assocs = await self.get_associations("contacts", contact_id, to_object_type)
        objects = await asyncio.gather(
            *(self.get_object(to_object_type, a["id"], properties) for a in assocs[:limit] if a.get("id"))
        )
        return [o for o in objects if o]

    def record_url(self, type_id: str, object_id: str) -> str:
        return f"https://app.hubspot.com/contacts/{self.portal_id}/record/{type_id}/{object_id}"

    async def lookup_lead(self, lead) -> dict:
        """Contact by email then by name, company by name, then the contact's records."""
        contacts = {"results": [], "total": 0}
        if lead.email:
            contacts = await self.search("contacts", lead.email, CONTACT_PROPERTIES)
        if not contacts.get("total") and lead.contact_name:
            contacts = await self.search("contacts", lead.contact_name, CONTACT_PROPERTIES)

        companies = await self.search("companies", lead.company, COMPANY_PROPERTIES)

        contact = (contacts.get("results") or [None])[0]
        company = (companies.get("results") or [None])[0]

        deals: list[dict] = []
        tickets: list[dict] = []
        engagements: list[dict] = []
        if contact:
            deals, tickets, notes = await asyncio.gather(
                self._associated(contact["id"], "deals", DEAL_PROPERTIES, 10),
                self._associated(contact["id"], "tickets", TICKET_PROPERTIES, 10),
                self._associated(contact["id"], "notes", NOTE_PROPERTIES, 5),
            )
            engagements = [{"type": "note", **n} for n in notes]

        return {
            "contact": contact,
            "company": company,
            "deals": deals,
            "tickets": tickets,
            "engagements": engagements,
            "links": {
                "contact": self.record_url("0-1", contact["id"]) if contact else None,
                "company": self.record_url("0-2", company["id"]) if company else None,
                "deals": [
                    {"id": d["id"], "url": self.record_url("0-3", d["id"])}
                    for d in deals if d.get("id")
                ],
            },
        }
