"""
RAG Crawler
===========

Bounded breadth-first crawl from a seed URL.

Flow per depth level:
1. Claim page slots for frontier URLs (stops at max_pages)
2. Fetch claimed pages concurrently
3. Extract visible text and same-origin links
4. Enqueue unseen links for the next level

Google Docs / Drive links (from any origin) are exported through the
Drive API and never followed further. A broken page is logged and skipped;
the crawl only fails when the seed itself fails or nothing was collected.
"""

import asyncio
import logging
import re
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from .errors import CrawlError, DocumentAccessError, FetchError
from .google_docs import GoogleDocsExporter, extract_google_doc_id, is_google_docs_url
from .models import Document

logger = logging.getLogger(__name__)


NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "svg", "head", "iframe"]
DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Canonical form used for de-duplication.

    Lowercases scheme and host, drops default ports, fragments and a
    trailing slash (except on the root path). The query string is kept.
    """
    url, _ = urldefrag(url.strip())
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    netloc = host
    if parsed.port and parsed.port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parsed.port}"
    if parsed.username:
        netloc = f"{parsed.username}@{netloc}"
    path = parsed.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ""))


def html_to_text(html: str) -> str:
    """
    Extract visible text from HTML.

    Headings become markdown headings and list items become bullets so the
    markdown splitter can find structure in scraped pages.
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()

    for level in range(1, 7):
        for heading in soup.find_all(f"h{level}"):
            heading.string = "#" * level + " " + heading.get_text(" ", strip=True)
    for item in soup.find_all("li"):
        first = item.find(string=lambda s: s.strip())
        if first is not None:
            first.replace_with("- " + first.strip())

    text = soup.get_text("\n")
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.splitlines()]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_links(html: str, base_url: str) -> List[str]:
    """Absolute, normalized http(s) links found in anchor tags."""
    soup = BeautifulSoup(html, "lxml")
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("mailto:", "javascript:", "tel:", "#")):
            continue
        try:
            absolute = urljoin(base_url, href)
            if urlparse(absolute).scheme not in ("http", "https"):
                continue
            links.append(normalize_url(absolute))
        except ValueError:
            # malformed href, e.g. a non-numeric port
            logger.debug(f"Ignoring malformed link {href!r} on {base_url}")
    return links


class PageFetcher:
    """Blocking HTTP fetcher for HTML pages."""

    def __init__(self, timeout: float = 15.0, user_agent: str = "rag-context-crawler/1.0"):
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def fetch(self, url: str) -> str:
        """
        Fetch a page and return its HTML (or plain text).

        Raises:
            FetchError: network failure, timeout, non-2xx status or
                non-text content
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchError(url, f"timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        content_type = response.headers.get("Content-Type", "text/html").lower()
        if "html" not in content_type and not content_type.startswith("text/"):
            raise FetchError(url, f"unsupported content type {content_type}")

        return response.text


class Crawler:
    """
    Breadth-bounded crawler.

    The dispatch loop is the only writer of the page counter, so
    concurrently running fetches can never claim the same last slot.
    """

    def __init__(
        self,
        max_depth: int = 1,
        max_pages: int = 100,
        fetcher: Optional[PageFetcher] = None,
        exporter: Optional[GoogleDocsExporter] = None,
        allowed_domains: Iterable[str] = (),
    ):
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.fetcher = fetcher or PageFetcher()
        self.exporter = exporter
        self.allowed_domains = {d.lower() for d in allowed_domains}

        self._pages_fetched = 0
        self._pages_failed = 0

    @classmethod
    def from_settings(cls, settings=None) -> "Crawler":
        from ..config import get_settings

        settings = settings or get_settings()
        cfg = settings.crawler
        return cls(
            max_depth=cfg.max_depth,
            max_pages=cfg.max_pages,
            fetcher=PageFetcher(timeout=cfg.request_timeout, user_agent=cfg.user_agent),
            exporter=GoogleDocsExporter.from_settings(settings),
            allowed_domains=cfg.allowed_domains,
        )

    async def crawl(
        self,
        seed_url: str,
        max_depth: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> List[Document]:
        """
        Crawl from seed_url.

        Args:
            seed_url: Starting page (or a Google Docs link)
            max_depth: Link levels to follow (0 = seed only)
            max_pages: Maximum pages fetched in total

        Returns:
            One Document per successfully fetched page with text

        Raises:
            CrawlError: seed unreachable or no pages collected
        """
        max_depth = self.max_depth if max_depth is None else max_depth
        max_pages = self.max_pages if max_pages is None else max_pages
        if max_pages <= 0:
            raise ValueError("max_pages must be positive")

        seed = normalize_url(seed_url)
        logger.info(f"Crawling {seed} (max_depth={max_depth}, max_pages={max_pages})")

        visited: Set[str] = {seed}
        frontier: List[str] = [seed]
        documents: List[Document] = []
        pages_claimed = 0
        depth = 0

        while frontier and depth <= max_depth and pages_claimed < max_pages:
            batch = []
            for url in frontier:
                if pages_claimed >= max_pages:
                    break
                batch.append(url)
                pages_claimed += 1

            results = await asyncio.gather(
                *(self._fetch(url) for url in batch), return_exceptions=True
            )

            next_frontier: List[str] = []
            for url, result in zip(batch, results):
                if isinstance(result, (FetchError, DocumentAccessError)):
                    self._pages_failed += 1
                    if url == seed:
                        raise CrawlError(seed_url, f"Seed URL could not be fetched: {result}") from result
                    logger.warning(f"Skipping page: {result}", extra={"url": url})
                    continue
                if isinstance(result, BaseException):
                    raise result

                document, links = result
                self._pages_fetched += 1
                if document.content.strip():
                    documents.append(document)
                else:
                    logger.debug(f"No visible text on {url}")

                if depth < max_depth:
                    for link in links:
                        if link not in visited and self._is_allowed(link, seed):
                            visited.add(link)
                            next_frontier.append(link)

            frontier = next_frontier
            depth += 1

        if not documents:
            raise CrawlError(
                seed_url,
                f"No pages were crawled from URL: {seed_url}. Check if the URL is accessible.",
            )

        logger.info(
            f"Crawled {len(documents)} page(s) from {seed} "
            f"({self._pages_failed} failed, {len(frontier)} left unvisited)"
        )
        return documents

    async def _fetch(self, url: str) -> Tuple[Document, List[str]]:
        """Fetch one page; returns its Document and outgoing links."""
        if is_google_docs_url(url):
            return await self._fetch_google_doc(url), []

        html = await asyncio.to_thread(self.fetcher.fetch, url)
        return Document(content=html_to_text(html), source_url=url), extract_links(html, url)

    async def _fetch_google_doc(self, url: str) -> Document:
        doc_id = extract_google_doc_id(url)
        if doc_id is None:
            raise FetchError(url, "Google Docs link without a document id")
        if self.exporter is None:
            self.exporter = GoogleDocsExporter.from_settings()

        logger.info(f"Fetching Google Doc {doc_id} via export API", extra={"url": url})
        html = await asyncio.to_thread(self.exporter.export, doc_id, "text/html")
        return Document(content=html_to_text(html), source_url=url)

    def _is_allowed(self, url: str, seed: str) -> bool:
        # Linked Google Docs are leaves, followed from any origin
        if is_google_docs_url(url):
            return True
        parsed, seed_parsed = urlparse(url), urlparse(seed)
        if parsed.netloc == seed_parsed.netloc and parsed.scheme == seed_parsed.scheme:
            return True
        return (parsed.hostname or "") in self.allowed_domains

    @property
    def stats(self) -> dict:
        return {"pages_fetched": self._pages_fetched, "pages_failed": self._pages_failed}
