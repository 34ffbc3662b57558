"""Record types produced by the source adapters."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

ISSUES = "issues"
QA = "qa"

SOURCE_KINDS = (ISSUES, QA)


def clean_text(value: str) -> str:
    """Replace characters UTF-8 cannot encode, such as lone surrogates, with ``?``."""
    return value.encode("utf-8", "replace").decode("utf-8")


@dataclass
class IssueRecord:
    issue_id: int
    title: str
    body: str = ""

    def describe(self, label: str) -> str:
        """Human-readable dump used by the scheduler."""
        return (f"Repository: {label}\nIssue ID: {self.issue_id}\n"
                f"Title: {self.title}\nBody: {self.body}\n")


@dataclass
class QARecord:
    question_id: int = 0
    title: str = ""
    question_body: str = ""
    answer_body: str = ""

    def describe(self, label: str) -> str:
        """Human-readable dump used by the scheduler."""
        return (f"Query: {label}\nQuestion ID: {self.question_id}\n"
                f"Title: {self.title}\nQuestion Body: {self.question_body}\n"
                f"Answer Body: {self.answer_body}\n")


@dataclass
class Source:
    """One entry of the collection matrix.

    Attributes:
        kind: Adapter kind, ``issues`` or ``qa``
        url: Repository URL or search URL
        label: Metric label; derived from the URL when empty
    """
    kind: str
    url: str
    label: str = ""

    def __post_init__(self):
        if self.kind not in SOURCE_KINDS:
            raise ValueError(f"unknown source kind: {self.kind}")
        if not self.label:
            self.label = default_label(self.kind, self.url)


def default_label(kind: str, url: str) -> str:
    """Derive a metric label from a source URL.

    Issue sources are labelled ``owner/repo``; Q&A sources by their ``q``
    search parameter. The URL itself is returned when neither applies.
    """
    parsed = urlparse(url)
    if kind == ISSUES:
        parts = [p for p in parsed.path.split("/") if p]
        if len(parts) == 2:
            return "/".join(parts)
        return url

    query: Optional[list] = parse_qs(parsed.query).get("q")
    if query and query[0]:
        return query[0]
    return url
