"""Unit tests for the Q&A scraper."""

from datetime import datetime, timezone

import pytest
import requests

from conftest import make_response
from harvester.api.exceptions import RemoteFetchError
from harvester.api.qa_scraper import (
    QAScraper, parse_answer_body, parse_question_id, parse_summaries, with_startdate
)
from harvester.api.records import QARecord

SEARCH_URL = "https://qa.example/search?q=topic"
NOW = datetime(2024, 1, 8, tzinfo=timezone.utc)
SEVEN_DAYS = 7 * 86400


def summary_html(*questions):
    """Search page with one ``.question-summary`` per ``(href, title, excerpt)``."""
    blocks = "".join(
        f"""
        <div class="question-summary">
            <h3><a class="question-hyperlink" href="{href}">{title}</a></h3>
            <div class="excerpt">{excerpt}</div>
        </div>
        """
        for href, title, excerpt in questions
    )
    return f"<html><body><div id='questions'>{blocks}</div></body></html>"


def question_page(*posts):
    bodies = "".join(f'<div class="s-prose js-post-body">{post}</div>' for post in posts)
    return f"<html><body>{bodies}</body></html>"


class TestParsing:
    """Test HTML extraction helpers."""

    def test_parse_question_id(self):
        assert parse_question_id("/questions/42") == 42
        assert parse_question_id("/questions/77003/how-to-scrape") == 77003

    @pytest.mark.parametrize("href", [None, "", "/q/42", "https://qa.example/questions/42", "/questions/abc"])
    def test_unparseable_question_id_is_zero(self, href):
        assert parse_question_id(href) == 0

    def test_parse_summaries(self):
        html = summary_html(("/questions/42", "T", "E"), ("/questions/43/x", " Second ", "\n excerpt two \n"))

        summaries = parse_summaries(html)

        assert summaries == [
            (QARecord(42, "T", "E", ""), "/questions/42"),
            (QARecord(43, "Second", "excerpt two", ""), "/questions/43/x"),
        ]

    def test_summary_without_link(self):
        html = '<div class="question-summary"><div class="excerpt">orphan</div></div>'

        assert parse_summaries(html) == [(QARecord(0, "", "orphan", ""), None)]

    def test_unencodable_text_is_replaced(self):
        html = summary_html(("/questions/7", "broken \ud83d", "\ud83d excerpt"))

        assert parse_summaries(html)[0][0] == QARecord(7, "broken ?", "? excerpt", "")
        assert parse_answer_body(question_page("\ud83d")) == "?"

    def test_answer_body_takes_first_post(self):
        assert parse_answer_body(question_page("question text", "answer text")) == "question text"

    def test_answer_body_missing(self):
        assert parse_answer_body("<html><body>nothing</body></html>") == ""

    def test_with_startdate(self):
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert with_startdate(SEARCH_URL, since) == "https://qa.example/search?q=topic&startdate=1704067200"

    def test_with_startdate_replaces_existing(self):
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)
        url = with_startdate("https://qa.example/search?q=topic&startdate=5", since)
        assert url == "https://qa.example/search?q=topic&startdate=1704067200"

    def test_with_startdate_without_query(self):
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert with_startdate("https://qa.example/search", since) == "https://qa.example/search?startdate=1704067200"


class TestQAScraper:
    """Test scraping through a mocked session."""

    @pytest.fixture
    def scraper(self, connection_manager, metrics):
        return QAScraper(metrics=metrics.qa, connection_manager=connection_manager)

    def test_question_with_answer(self, scraper, fake_session, metrics):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(("/questions/42", "T", "E")))
        fake_session.routes["https://qa.example/questions/42"] = make_response(text=question_page("A"))

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert records == [QARecord(42, "T", "E", "A")]
        assert metrics.qa.calls_total("topic") == 1
        assert metrics.qa.items_total("topic") == 1

    def test_sequential_scraper_shares_one_session(self, scraper, fake_session, connection_manager):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html())

        scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        connection_manager.get_session.assert_called_once_with(per_thread=False)

    def test_search_request_has_startdate_and_timeout(self, scraper, fake_session):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html())

        scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        url, kwargs = fake_session.calls[0]
        assert url == "https://qa.example/search?q=topic&startdate=1704067200"
        assert kwargs["timeout"] == 30

    def test_answer_timeout_leaves_answer_empty(self, scraper, fake_session, metrics):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(("/questions/42", "T", "E")))
        fake_session.routes["https://qa.example/questions/42"] = requests.exceptions.Timeout("read timed out")

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert records == [QARecord(42, "T", "E", "")]
        assert metrics.qa.calls_total("topic") == 1
        assert metrics.qa.items_total("topic") == 1

    def test_answer_request_uses_follow_up_timeout(self, scraper, fake_session):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(("/questions/42", "T", "E")))
        fake_session.routes["https://qa.example/questions/42"] = make_response(text=question_page("A"))

        scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        url, kwargs = fake_session.calls[1]
        assert url == "https://qa.example/questions/42"
        assert kwargs["timeout"] == 15

    def test_answer_http_error_leaves_answer_empty(self, scraper, fake_session):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(
            ("/questions/1", "one", "e1"), ("/questions/2", "two", "e2"),
        ))
        fake_session.routes["https://qa.example/questions/1"] = make_response(status_code=404, text="gone")
        fake_session.routes["https://qa.example/questions/2"] = make_response(text=question_page("second answer"))

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert records == [QARecord(1, "one", "e1", ""), QARecord(2, "two", "e2", "second answer")]

    def test_unparseable_id_is_kept_as_zero(self, scraper, fake_session, metrics):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(("/q/abc", "T", "E")))
        fake_session.routes["https://qa.example/q/abc"] = make_response(text=question_page("A"))

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert records == [QARecord(0, "T", "E", "A")]
        assert metrics.qa.items_total("topic") == 1

    def test_search_failure_raises_after_counting_call(self, scraper, fake_session, metrics):
        fake_session.routes["https://qa.example/search"] = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RemoteFetchError):
            scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert metrics.qa.calls_total("topic") == 1
        assert metrics.qa.items_total("topic") == 0

    def test_search_http_error(self, scraper, fake_session):
        fake_session.routes["https://qa.example/search"] = make_response(status_code=503, text="busy")

        with pytest.raises(RemoteFetchError) as exc_info:
            scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert exc_info.value.status_code == 503

    def test_empty_page(self, scraper, fake_session, metrics):
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html())

        assert scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW) == []
        assert metrics.qa.calls_total("topic") == 1
        assert metrics.qa.items_total("topic") == 0

    def test_configured_site_root(self, connection_manager, fake_session, metrics):
        scraper = QAScraper(metrics=metrics.qa, connection_manager=connection_manager,
                            site_root="https://mirror.example")
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(("/questions/42", "T", "E")))
        fake_session.routes["https://mirror.example/questions/42"] = make_response(text=question_page("A"))

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert records[0].answer_body == "A"

    def test_parallel_answers_keep_page_order(self, connection_manager, fake_session, metrics):
        scraper = QAScraper(metrics=metrics.qa, connection_manager=connection_manager, answer_workers=4)
        questions = [(f"/questions/{i}", f"title {i}", f"excerpt {i}") for i in range(1, 7)]
        fake_session.routes["https://qa.example/search"] = make_response(text=summary_html(*questions))
        fake_session.routes["https://qa.example/questions/"] = (
            lambda url, **kwargs: make_response(text=question_page(f"answer for {url.rsplit('/', 1)[1]}"))
        )

        records = scraper.fetch_questions(SEARCH_URL, "topic", SEVEN_DAYS, now=NOW)

        assert [r.question_id for r in records] == [1, 2, 3, 4, 5, 6]
        assert [r.answer_body for r in records] == [f"answer for {i}" for i in range(1, 7)]
        assert metrics.qa.items_total("topic") == 6
        connection_manager.get_session.assert_called_with(per_thread=True)
