"""
Q&A search scraper for Thread Harvester.

This module scrapes question summaries from a Stack Overflow style search
results page and enriches each one with the body of the first post on the
question page.

Flow for one call:
1. Append ``startdate=<unix seconds>`` for the lookback window to the URL
2. Fetch and parse the search page
3. For every ``.question-summary`` extract id, title and excerpt
4. Follow each question link and take the first ``.js-post-body``
"""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from harvester.api.exceptions import ParseError, RemoteFetchError
from harvester.api.records import QARecord, clean_text
from harvester.metrics.registry import SourceMetrics
from harvester.utils.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

SUMMARY_SELECTOR = ".question-summary"
LINK_SELECTOR = ".question-hyperlink"
EXCERPT_SELECTOR = ".excerpt"
POST_BODY_SELECTOR = ".js-post-body"

QUESTION_ID_RE = re.compile(r"^/questions/(\d+)")


def with_startdate(search_url: str, since: datetime) -> str:
    """Return ``search_url`` with ``startdate`` set to ``since`` in unix seconds."""
    parsed = urlparse(search_url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "startdate"]
    query.append(("startdate", str(int(since.timestamp()))))
    return urlunparse(parsed._replace(query=urlencode(query)))


def parse_question_id(href: Optional[str]) -> int:
    """Parse the integer after ``/questions/`` in a relative link, or 0."""
    if not href:
        return 0
    match = QUESTION_ID_RE.match(href)
    return int(match.group(1)) if match else 0


def site_root_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def parse_summaries(html: str) -> List[Tuple[QARecord, Optional[str]]]:
    """Extract question summaries from a search results page.

    Args:
        html: Search page HTML

    Returns:
        ``(record, href)`` pairs in page order; ``answer_body`` is left empty

    Raises:
        ParseError: If the document cannot be parsed
    """
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as e:
        raise ParseError(f"Could not parse search page: {e}") from e

    summaries = []
    for summary in soup.select(SUMMARY_SELECTOR):
        link = summary.select_one(LINK_SELECTOR)
        excerpt = summary.select_one(EXCERPT_SELECTOR)
        href = link.get("href") if link else None

        record = QARecord(
            question_id=parse_question_id(href),
            title=clean_text(link.get_text().strip()) if link else "",
            question_body=clean_text(excerpt.get_text().strip()) if excerpt else "",
        )
        if record.question_id == 0:
            logger.debug(f"Could not parse question id from href {href!r}")
        summaries.append((record, href))

    return summaries


def parse_answer_body(html: str) -> str:
    """Text of the first post body on a question page, or empty string."""
    soup = BeautifulSoup(html, "html.parser")
    post = soup.select_one(POST_BODY_SELECTOR)
    return clean_text(post.get_text().strip()) if post else ""


class QAScraper:
    """Scraper for Q&A search result pages."""

    def __init__(self, metrics: Optional[SourceMetrics] = None,
                 connection_manager: Optional[ConnectionManager] = None,
                 site_root: Optional[str] = None, timeout: float = 30,
                 answer_timeout: float = 15, answer_workers: int = 1):
        """Initialize the scraper.

        Args:
            metrics: Series updated on every call
            connection_manager: Optional manager for HTTP connections
            site_root: Base for question links (defaults to the search URL's host)
            timeout: Deadline for the search page request in seconds
            answer_timeout: Deadline for each question page request in seconds
            answer_workers: Concurrent question page fetches (1 means sequential)
        """
        self.metrics = metrics
        self.connection_manager = connection_manager or ConnectionManager()
        self.site_root = site_root
        self.timeout = timeout
        self.answer_timeout = answer_timeout
        self.answer_workers = max(1, answer_workers)

    def fetch_questions(self, search_url: str, label: str, window_seconds: float,
                        now: Optional[datetime] = None) -> List[QARecord]:
        """Scrape one search page and the top answer of every question on it.

        Args:
            search_url: Search results URL
            label: Metric label, usually the search topic
            window_seconds: Lookback window in seconds
            now: Reference time, defaults to the current UTC time

        Returns:
            QARecords in page order

        Raises:
            RemoteFetchError: If the search page request fails
            ParseError: If the search page cannot be parsed
        """
        # Counted before the request so failed calls still show up
        if self.metrics:
            self.metrics.record_call(label)

        since = (now or datetime.now(timezone.utc)) - timedelta(seconds=window_seconds)
        url = with_startdate(search_url, since)
        start_time = time.time()

        html = self._get(url, self.timeout)
        summaries = parse_summaries(html)

        root = self.site_root or site_root_of(search_url)
        if self.answer_workers > 1 and len(summaries) > 1:
            with ThreadPoolExecutor(max_workers=self.answer_workers) as executor:
                answers = list(executor.map(lambda item: self._fetch_answer(root, item[1]), summaries))
        else:
            answers = [self._fetch_answer(root, href) for _, href in summaries]

        records = []
        for (record, _), answer in zip(summaries, answers):
            record.answer_body = answer
            records.append(record)

        if self.metrics:
            self.metrics.record_items(label, len(records))

        logger.info(f"Scraped {len(records)} questions for {label} in {time.time() - start_time:.2f}s")
        return records

    def _fetch_answer(self, root: str, href: Optional[str]) -> str:
        """Fetch the first post body for a question, or empty string on any failure."""
        if not href:
            return ""
        answer_url = urljoin(root + "/", href)
        try:
            return parse_answer_body(self._get(answer_url, self.answer_timeout))
        except Exception as e:
            logger.warning(f"Could not fetch answer from {answer_url}: {e}")
            return ""

    def _get(self, url: str, timeout: float) -> str:
        try:
            # requests sessions are not shared between pool threads
            session = self.connection_manager.get_session(per_thread=self.answer_workers > 1)
            response = session.get(url, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteFetchError(f"Request to {url} timed out after {timeout}s", url=url) from e
        except requests.exceptions.RequestException as e:
            raise RemoteFetchError(f"Request to {url} failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            raise RemoteFetchError(f"HTTP {response.status_code} from {url}",
                                   url=url, status_code=response.status_code)
        return response.text
