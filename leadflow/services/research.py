"""
Company research via the Tavily search API.

Company info, recent news and a logo are looked up concurrently; each lookup
degrades on its own so one failing search never sinks the others.
"""

import asyncio
import logging
from urllib.parse import quote, urlparse

import httpx

from leadflow.config import settings
from leadflow.schemas.report import CompanyInfo, NewsArticle, ResearchResult

logger = logging.getLogger(__name__)


class SearchConfigError(RuntimeError):
    """Raised when the search client cannot be built (missing credentials)."""


class TavilyClient:
    """Client for the Tavily search API."""

    base_url = "https://api.tavily.com"

    def __init__(self, api_key: str, http_client: httpx.AsyncClient | None = None):
        if not api_key:
            raise SearchConfigError("Missing TAVILY_API_KEY environment variable")
        self.api_key = api_key
        self.http_client = http_client

    async def search(
        self,
        query: str,
        max_results: int = 10,
        include_raw_content: bool = False,
    ) -> dict:
        """
        Run a search query.

        Returns:
            Raw response dict with a `results` list of
            {url, title, content, thumbnail, publishedDate}
        """
        payload = {
            "api_key": self.api_key,
            "query": query,
            "max_results": max_results,
            "include_raw_content": include_raw_content,
        }
        if self.http_client is not None:
            response = await self.http_client.post(f"{self.base_url}/search", json=payload)
        else:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await client.post(f"{self.base_url}/search", json=payload)
        response.raise_for_status()
        return response.json()


def build_search_client(http_client: httpx.AsyncClient | None = None) -> TavilyClient:
    return TavilyClient(settings.tavily_api_key, http_client=http_client)


def _hostname(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host.replace("www.", "")


async def search_company(client: TavilyClient, company_name: str) -> CompanyInfo:
    try:
        data = await client.search(f"{company_name} company information website", max_results=5)
    except Exception as e:
        logger.error("Error searching company %r: %s", company_name, e)
        return CompanyInfo(name=company_name)

    results = data.get("results") or []
    if not results:
        return CompanyInfo(name=company_name)

    top = results[0]
    return CompanyInfo(
        name=company_name,
        website=top.get("url"),
        description=(top.get("content") or "")[:300] or None,
        logo=top.get("thumbnail") or None,
    )


async def search_news(client: TavilyClient, company_name: str) -> list[NewsArticle]:
    try:
        data = await client.search(f"{company_name} news recent", max_results=10)
    except Exception as e:
        logger.error("Error searching news for %r: %s", company_name, e)
        return []

    articles = []
    for item in data.get("results") or []:
        url = item.get("url")
        if not url:
            continue
        articles.append(
            NewsArticle(
                title=item.get("title") or url,
                url=url,
                source=_hostname(url),
                snippet=(item.get("content") or "")[:200],
                date=item.get("publishedDate") or None,
            )
        )
    return articles


async def get_company_logo(
    company_name: str,
    website: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> str | None:
    """Favicon of the company site when reachable, else a Clearbit logo URL."""
    try:
        host = urlparse(website).hostname if website else None
        if host:
            favicon_url = f"https://www.google.com/s2/favicons?sz=128&domain={host}"
            try:
                if http_client is not None:
                    response = await http_client.get(favicon_url)
                else:
                    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                        response = await client.get(favicon_url)
                if response.is_success:
                    return favicon_url
            except httpx.HTTPError:
                pass

        return f"https://logo.clearbit.com/{quote(company_name)}"
    except Exception as e:
        logger.error("Error getting company logo for %r: %s", company_name, e)
        return None


async def run_full_research(
    company_name: str,
    website: str | None = None,
    *,
    search_client: TavilyClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ResearchResult:
    """
    Research a company: top search hit, recent news and logo, in parallel.

    Without search credentials only the company name (and the given website)
    comes back; callers treat missing fields as unknown.
    """
    try:
        client = search_client or build_search_client(http_client)
        company, news, logo = await asyncio.gather(
            search_company(client, company_name),
            search_news(client, company_name),
            get_company_logo(company_name, website, http_client),
        )
    except Exception as e:
        logger.error("Error running research for %r: %s", company_name, e)
        return ResearchResult(
            company=CompanyInfo(name=company_name, website=website),
            news=[],
        )

    if not company.website and website:
        company.website = website

    return ResearchResult(company=company, news=news, logo=logo)



def format_research_summary(result: ResearchResult) -> str:
    """Plain-text digest: company facts, then up to three news items."""
    lines = [f"Company: {result.company.name}"]
    if result.company.website:
        lines.append(f"Website: {result.company.website}")
    if result.company.description:
        lines.append(f"Description: {result.company.description}")

    if result.news:
        lines.extend(["", "Recent News:"])
        for article in result.news[:3]:
            lines.append(f"- {article.title}")
            lines.append(f"  Source: {article.source}")
            lines.append(f"  URL: {article.url}")

    return "\n".join(lines) + "\n"
