"""
SQL-backed report storage
Row-level locks give each report read-modify-write atomicity.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from src.core.exceptions import NotFoundError
from src.reports.models import Report

from .connection import DatabaseConnection, get_db
from .models import ReportRecord

logger = logging.getLogger(__name__)


class SqlReportStore:
    """Report storage on PostgreSQL, same interface as InMemoryReportStore."""

    def __init__(self, db: Optional[DatabaseConnection] = None):
        self.db = db or get_db()

    def add(self, report: Report) -> None:
        with self.db.get_session() as session:
            session.add(ReportRecord.from_report(report))

    def get(self, report_id: str) -> Optional[Report]:
        with self.db.get_session() as session:
            record = session.get(ReportRecord, report_id)
            return record.to_report() if record else None

    def find(
        self,
        active_only: bool = True,
        reported_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Report]:
        """Return matching reports, newest first."""
        with self.db.get_session() as session:
            query = session.query(ReportRecord)
            if active_only:
                query = query.filter(ReportRecord.is_active.is_(True))
            if reported_by is not None:
                query = query.filter(ReportRecord.reported_by == reported_by)
            query = query.order_by(ReportRecord.reported_at.desc())
            if limit is not None:
                query = query.limit(limit)
            return [record.to_report() for record in query.all()]

    def find_by_submission_key(self, reported_by: str, submission_key: str) -> Optional[Report]:
        with self.db.get_session() as session:
            record = (
                session.query(ReportRecord)
                .filter(
                    ReportRecord.reported_by == reported_by,
                    ReportRecord.submission_key == submission_key,
                )
                .one_or_none()
            )
            return record.to_report() if record else None

    @contextmanager
    def locked(self, report_id: str) -> Iterator[Report]:
        """
        Read-modify-write a single report.

        The row is held with SELECT ... FOR UPDATE until the session commits,
        so concurrent mutations of the same report run one after another.
        """
        with self.db.get_session() as session:
            record = (
                session.query(ReportRecord)
                .filter(ReportRecord.id == report_id)
                .with_for_update()
                .one_or_none()
            )
            if record is None:
                raise NotFoundError(f"Report {report_id} not found")

            report = record.to_report()
            yield report
            report.prepare_for_save()
            record.update_from(report)
