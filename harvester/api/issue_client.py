"""
GitHub issue client for Thread Harvester.

This module fetches the issues of a single repository that were created or
updated inside a lookback window and normalizes them into IssueRecords.
Only the first page of results is requested.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import requests

from harvester.api.exceptions import DecodeError, InvalidRepoURLError, RemoteFetchError
from harvester.api.records import IssueRecord, clean_text
from harvester.metrics.registry import SourceMetrics
from harvester.utils.connection_manager import ConnectionManager
from harvester.utils.error_handling import mask_secret

logger = logging.getLogger(__name__)

GITHUB_REST_API_URL = "https://api.github.com"


def parse_repo_url(repo_url: str) -> Tuple[str, str]:
    """Split ``https://<host>/<owner>/<repo>`` into ``(owner, repo)``.

    Args:
        repo_url: Repository URL

    Returns:
        Owner and repository name

    Raises:
        InvalidRepoURLError: If the path is not exactly two non-empty segments
    """
    parsed = urlparse(repo_url or "")
    if not parsed.scheme or not parsed.netloc:
        raise InvalidRepoURLError(repo_url)

    path = parsed.path
    if path.endswith("/"):
        path = path[:-1]
    parts = path.lstrip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidRepoURLError(repo_url)

    return parts[0], parts[1]


def normalize_issues(payload) -> List[IssueRecord]:
    """Convert a list-issues payload into IssueRecords.

    Issues missing ``id``, ``title`` or ``body`` are dropped, as are those
    with a null id or title. A null body becomes an empty string.

    Raises:
        DecodeError: If the payload is not a list of objects
    """
    if not isinstance(payload, list):
        raise DecodeError(f"Expected a list of issues, got {type(payload).__name__}")

    records = []
    dropped = 0
    for issue in payload:
        if not isinstance(issue, dict):
            raise DecodeError(f"Expected an issue object, got {type(issue).__name__}")

        if not all(key in issue for key in ("id", "title", "body")):
            dropped += 1
            continue
        issue_id, title, body = issue["id"], issue["title"], issue["body"]
        if issue_id is None or title is None:
            dropped += 1
            continue

        try:
            issue_id = int(issue_id)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Issue id is not an integer: {issue_id!r}") from e

        records.append(IssueRecord(
            issue_id=issue_id,
            title=clean_text(str(title)),
            body=clean_text(str(body)) if body is not None else "",
        ))

    if dropped:
        logger.debug(f"Dropped {dropped} issues with missing fields")
    return records


class IssueClient:
    """Client for the GitHub REST list-issues endpoint."""

    def __init__(self, token: str, metrics: Optional[SourceMetrics] = None,
                 connection_manager: Optional[ConnectionManager] = None,
                 api_base_url: str = GITHUB_REST_API_URL, per_page: int = 30,
                 timeout: float = 30):
        """Initialize the client.

        Args:
            token: Bearer credential
            metrics: Series updated after each successful fetch
            connection_manager: Optional manager for HTTP connections
            api_base_url: REST API base URL
            per_page: Issues requested on the single page fetched
            timeout: Request deadline in seconds
        """
        self.token = token
        self.metrics = metrics
        self.connection_manager = connection_manager or ConnectionManager()
        self.api_base_url = api_base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout

    def fetch_issues(self, repo_url: str, window_seconds: float, label: Optional[str] = None,
                     now: Optional[datetime] = None) -> List[IssueRecord]:
        """Fetch issues created or updated since ``now - window``.

        Args:
            repo_url: Repository URL, ``https://<host>/<owner>/<repo>``
            window_seconds: Lookback window in seconds
            label: Metric label (defaults to ``owner/repo``)
            now: Reference time, defaults to the current UTC time

        Returns:
            IssueRecords in the order the API returned them

        Raises:
            InvalidRepoURLError: Malformed URL; no request is made
            RemoteFetchError: Transport, timeout, authentication or status error
            DecodeError: Response body is not a JSON list of issues
        """
        owner, repo = parse_repo_url(repo_url)
        label = label or f"{owner}/{repo}"

        since = (now or datetime.now(timezone.utc)) - timedelta(seconds=window_seconds)
        url = f"{self.api_base_url}/repos/{owner}/{repo}/issues"
        params = {
            "since": since.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "per_page": self.per_page,
        }
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

        logger.debug(f"Fetching issues for {owner}/{repo} since {params['since']} "
                     f"with token {mask_secret(self.token)}")
        start_time = time.time()

        try:
            session = self.connection_manager.get_session(self.token)
            response = session.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteFetchError(f"Request to {url} timed out after {self.timeout}s", url=url) from e
        except requests.exceptions.RequestException as e:
            raise RemoteFetchError(f"Request to {url} failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            message = self._error_message(response)
            if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
                message = f"rate limit exceeded: {message}"
            raise RemoteFetchError(
                f"GitHub API error {response.status_code} for {owner}/{repo}: {message}",
                url=url, status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Malformed JSON from {url}: {e}") from e

        records = normalize_issues(payload)

        if self.metrics:
            self.metrics.record_call(label)
            self.metrics.record_items(label, len(records))

        logger.info(f"Fetched {len(records)} issues for {owner}/{repo} in {time.time() - start_time:.2f}s")
        return records

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return (response.text or "").strip()[:200]
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return str(body)[:200]
