"""arXiv Atom feed client."""

from datetime import date, datetime
from xml.etree import ElementTree as ET

import httpx

from assistant.exceptions import FeedError
from assistant.models.papers import PaperRecord, SearchCategory, paper_id_from_entry_id
from assistant.utils.logging import get_logger

logger = get_logger(__name__)

ATOM_NAMESPACES = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


def build_search_query(category: SearchCategory, day: date) -> str:
    """Search expression for papers of ``category`` submitted on ``day``."""
    stamp = day.strftime("%Y%m%d")
    return f"{category.search_query} AND submittedDate:[{stamp}0000 TO {stamp}2359]"


def _parse_timestamp(value: str) -> datetime:
    # Atom timestamps look like 2024-03-01T18:59:59Z
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


def parse_feed(xml_text: str) -> list[PaperRecord]:
    """Parse an arXiv Atom response into paper records, in feed order.

    Entries without an abstract-page id (arXiv reports query errors as such
    entries) are skipped.

    Raises:
        FeedError: If the document is not well-formed XML
    """
    if not xml_text.strip():
        return []

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise FeedError(f"Could not parse paper feed: {e}") from e

    records: list[PaperRecord] = []
    for entry in root.findall("atom:entry", ATOM_NAMESPACES):
        entry_id = entry.findtext("atom:id", default="", namespaces=ATOM_NAMESPACES)
        paper_id = paper_id_from_entry_id(entry_id)
        if paper_id is None:
            logger.warning(f"Skipping feed entry without a paper id: {entry_id!r}")
            continue

        title = " ".join((entry.findtext("atom:title", default="", namespaces=ATOM_NAMESPACES)).split())
        summary = (entry.findtext("atom:summary", default="", namespaces=ATOM_NAMESPACES)).strip()
        updated = entry.findtext("atom:updated", default="", namespaces=ATOM_NAMESPACES)
        published = entry.findtext("atom:published", default="", namespaces=ATOM_NAMESPACES) or updated

        authors = []
        for author in entry.findall("atom:author", ATOM_NAMESPACES):
            name = author.findtext("atom:name", default="", namespaces=ATOM_NAMESPACES).strip()
            if name:
                authors.append(name)

        pdf_link = None
        for link in entry.findall("atom:link", ATOM_NAMESPACES):
            if link.get("title") == "pdf" or link.get("type") == "application/pdf":
                pdf_link = link.get("href")
                break

        primary = entry.find("arxiv:primary_category", ATOM_NAMESPACES)
        categories = [c.get("term") for c in entry.findall("atom:category", ATOM_NAMESPACES) if c.get("term")]

        try:
            record = PaperRecord(
                id=paper_id,
                title=title,
                summary=summary,
                authors=authors,
                updated=_parse_timestamp(updated),
                published=_parse_timestamp(published),
                pdf_link=pdf_link,
                primary_category=primary.get("term") if primary is not None else None,
                categories=categories,
            )
        except ValueError as e:
            raise FeedError(f"Invalid timestamp in feed entry {paper_id}: {e}") from e
        records.append(record)

    return records


class ArxivClient:
    """Fetches papers from the arXiv query API."""

    def __init__(
        self,
        api_url: str = "http://export.arxiv.org/api/query",
        max_results: int = 40,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            api_url: arXiv query endpoint
            max_results: Cap on records returned by a category search
            http_client: Shared HTTP client (one is created if omitted)
        """
        self.api_url = api_url
        self.max_results = max_results
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(follow_redirects=True)

    async def fetch_by_query(self, category: SearchCategory, day: date) -> list[PaperRecord]:
        """Fetch papers of a category submitted on a given day, newest first."""
        params = {
            "search_query": build_search_query(category, day),
            "start": 0,
            "max_results": self.max_results,
            "sortBy": "submittedDate",
            "sortOrder": "descending",
        }
        logger.info(f"Fetching {category} papers for {day.isoformat()}")
        return await self._fetch(params)

    async def fetch_by_id(self, paper_id: str) -> list[PaperRecord]:
        """Fetch the papers matching an id. A list because a lookup may be ambiguous."""
        logger.info(f"Fetching paper {paper_id}")
        return await self._fetch({"id_list": paper_id})

    async def _fetch(self, params: dict[str, str | int]) -> list[PaperRecord]:
        try:
            response = await self.http_client.get(self.api_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # arXiv answers 400 for malformed id_list values
            if e.response.status_code == 400 and "id_list" in params:
                logger.info(f"Feed rejected id {params['id_list']!r}, treating as no match")
                return []
            raise FeedError(f"Paper feed returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedError(f"Paper feed request failed: {e}") from e

        records = parse_feed(response.text)
        logger.debug(f"Feed returned {len(records)} record(s)")
        return records

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
