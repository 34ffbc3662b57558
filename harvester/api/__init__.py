"""
Source adapters for Thread Harvester.

This package provides the issue API client, the Q&A scraper, the record
types they produce and the exception taxonomy shared by every component.
"""

from harvester.api.exceptions import InvalidRepoURLError, RemoteFetchError, DecodeError, ParseError
from harvester.api.issue_client import IssueClient
from harvester.api.qa_scraper import QAScraper
from harvester.api.records import IssueRecord, QARecord, Source
