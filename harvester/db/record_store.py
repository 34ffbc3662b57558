"""
Append-only storage for collected records.

Each record is written with its own INSERT and committed on its own, in the
order the adapter produced it. A batch is therefore not atomic: when a row
fails, the rows before it stay committed and the rows after it are not
attempted.
"""

import logging
import time
from typing import Iterable, List

from sqlalchemy import insert

from harvester.api.exceptions import InsertError
from harvester.api.records import IssueRecord, QARecord
from harvester.db.database import DatabaseManager, session_scope
from harvester.db.models import GitHubIssue, Question

logger = logging.getLogger(__name__)


class RecordStore:
    """Writes issue and question records through a DatabaseManager."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def save_issues(self, records: Iterable[IssueRecord]) -> int:
        """Insert issue records into ``github_issues``.

        Args:
            records: Issue records in production order

        Returns:
            Number of rows inserted

        Raises:
            SchemaError: When the table cannot be created
            InsertError: On the first row that fails
        """
        rows = [
            {"issue_id": r.issue_id, "title": r.title, "body": r.body}
            for r in records
        ]
        return self._insert_rows(GitHubIssue, rows)

    def save_questions(self, records: Iterable[QARecord]) -> int:
        """Insert question records into ``questions``.

        Args:
            records: Question records in production order

        Returns:
            Number of rows inserted

        Raises:
            SchemaError: When the table cannot be created
            InsertError: On the first row that fails
        """
        rows = [
            {
                "question_id": r.question_id,
                "title": r.title,
                "question_body": r.question_body,
                "answer_body": r.answer_body,
            }
            for r in records
        ]
        return self._insert_rows(Question, rows)

    def _insert_rows(self, model, rows: List[dict]) -> int:
        self.db_manager.ensure_table(model)
        table = model.__tablename__
        statement = insert(model)
        start_time = time.time()

        inserted = 0
        for index, row in enumerate(rows):
            try:
                with session_scope(self.db_manager) as session:
                    session.execute(statement, row)
            except Exception as e:
                # Driver encoding errors reach here unwrapped by SQLAlchemy
                raise InsertError(
                    f"Failed to insert row {index + 1}/{len(rows)} into {table}: {e}",
                    table=table, index=index, inserted=inserted,
                ) from e
            inserted += 1

        logger.debug(f"Inserted {inserted} rows into {table} in {time.time() - start_time:.2f}s")
        return inserted
