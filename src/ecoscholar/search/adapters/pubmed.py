"""PubMed candidate source over NCBI E-utilities.

Each page takes two requests: ``esearch`` resolves the query window
(``retstart``/``retmax``, newest first) to PMIDs, and ``efetch`` returns
the article XML for those PMIDs.  Requests go through a token bucket
(3 req/s, or 10 with an API key) and transient HTTP failures are retried
with exponential backoff before surfacing as ``CandidateSourceError``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ...config.settings import settings
from ...core.ids import document_url, generate_document_id
from ...core.models import Document
from ...exceptions import CandidateSourceError
from ...utils.rate_limit import RateLimiter
from ...utils.logging import get_logger
from ..base import CandidateSource

logger = get_logger(__name__)


def _text(node: Optional[ET.Element]) -> str:
    if node is None:
        return ""
    return " ".join("".join(node.itertext()).split())


def parse_pubmed_xml(xml_text: str) -> List[Document]:
    """Convert an ``efetch`` PubmedArticleSet into documents."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise CandidateSourceError(f"PubMed returned malformed XML: {exc}") from exc
    documents: List[Document] = []
    for idx, article in enumerate(root.iter("PubmedArticle")):
        pmid = _text(article.find("MedlineCitation/PMID"))
        title = _text(article.find(".//ArticleTitle")) or "Untitled"
        abstract = " ".join(
            _text(node) for node in article.findall(".//Abstract/AbstractText") if _text(node)
        )
        authors: List[str] = []
        for author in article.findall(".//AuthorList/Author"):
            name = f"{_text(author.find('LastName'))} {_text(author.find('Initials'))}".strip()
            if not name:
                name = _text(author.find("CollectiveName"))
            if name:
                authors.append(name)
        year_text = _text(article.find(".//JournalIssue/PubDate/Year"))
        if not year_text:
            year_text = _text(article.find(".//JournalIssue/PubDate/MedlineDate"))[:4]
        year = int(year_text) if year_text.isdigit() else None
        doi = None
        for article_id in article.findall(".//ArticleIdList/ArticleId"):
            if article_id.get("IdType") == "doi":
                doi = _text(article_id)
                break
        external_id = pmid or f"unknown-{idx}"
        documents.append(
            Document(
                id=generate_document_id("pubmed", external_id),
                title=title,
                abstract=abstract or "No abstract available.",
                authors=authors or ["Unknown"],
                year=year,
                url=document_url(doi, pmid),
                source="pubmed",
                doi=doi,
            )
        )
    return documents


class PubMedSource(CandidateSource):
    """PubMed client with offset pagination, rate limiting and retries."""

    ESEARCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esearch.fcgi"
    EFETCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi"

    def __init__(self, config: Optional[dict] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(config)
        self.api_key = settings.ncbi_api_key
        self.email = settings.ncbi_email
        self.rate_limiter = RateLimiter.for_ncbi(self.api_key, self.config.get("rate_limit"))
        self.client = client or httpx.AsyncClient(
            timeout=30.0,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        self._pages_fetched = 0

    def _common_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"db": "pubmed", "tool": "ecoscholar"}
        if self.api_key:
            params["api_key"] = self.api_key
        if self.email:
            params["email"] = self.email
        return params

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
        reraise=True,
    )
    async def _search_ids(self, query: str, offset: int, limit: int) -> List[str]:
        params = {
            **self._common_params(),
            "term": query,
            "retmode": "json",
            "retstart": offset,
            "retmax": limit,
            "sort": "date",
        }
        async with self.rate_limiter:
            response = await self.client.get(self.ESEARCH_URL, params=params)
        response.raise_for_status()
        return response.json().get("esearchresult", {}).get("idlist", [])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
        reraise=True,
    )
    async def _fetch_articles(self, ids: List[str]) -> str:
        params = {**self._common_params(), "id": ",".join(ids), "retmode": "xml"}
        async with self.rate_limiter:
            response = await self.client.get(self.EFETCH_URL, params=params)
        response.raise_for_status()
        return response.text

    async def fetch_page(self, query: str, offset: int, limit: int) -> List[Document]:
        logger.debug("Fetching PubMed page", extra={"query": query, "offset": offset, "limit": limit})
        try:
            ids = await self._search_ids(query, offset, limit)
            if not ids:
                return []
            xml_text = await self._fetch_articles(ids)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"PubMed request failed: {exc}")
            raise CandidateSourceError(f"PubMed failed: {exc}") from exc
        documents = parse_pubmed_xml(xml_text)
        self._pages_fetched += 1
        logger.info(f"Fetched {len(documents)} papers from PubMed", extra={"offset": offset})
        return documents

    async def close(self) -> None:
        await self.client.aclose()
