"""
Traffic report handler
Creates, lists, moderates and engages with reports, one report at a time.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from src.core.config import settings
from src.core.exceptions import NotFoundError, PermissionDeniedError
from src.core.geo_utils import sanitize_coordinates
from src.reports import engagement
from src.reports.engagement import EngagementCounts
from src.reports.models import (
    Location,
    Photo,
    Report,
    ReportStatus,
    Severity,
    validate_report_fields,
)
from src.storage.photo_store import MockPhotoStore, validate_photo

logger = logging.getLogger(__name__)


class InMemoryReportStore:
    """
    Process-local report storage.

    Mutations take a per-report lock and work on a copy that replaces the
    stored report only when the mutation completes, so readers never see a
    partially applied change.
    """

    def __init__(self):
        self._reports: Dict[str, Report] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, report_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(report_id, threading.Lock())

    def add(self, report: Report) -> None:
        with self._lock_for(report.id):
            self._reports[report.id] = copy.deepcopy(report)

    def get(self, report_id: str) -> Optional[Report]:
        report = self._reports.get(report_id)
        return copy.deepcopy(report) if report else None

    def find(
        self,
        active_only: bool = True,
        reported_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Report]:
        """Return matching reports, newest first."""
        reports = [
            r for r in reversed(list(self._reports.values()))
            if (not active_only or r.is_active)
            and (reported_by is None or r.reported_by == reported_by)
        ]
        reports = sorted(reports, key=lambda r: r.reported_at, reverse=True)
        if limit is not None:
            reports = reports[:limit]
        return [copy.deepcopy(r) for r in reports]

    def find_by_submission_key(self, reported_by: str, submission_key: str) -> Optional[Report]:
        for report in list(self._reports.values()):
            if report.reported_by == reported_by and report.submission_key == submission_key:
                return copy.deepcopy(report)
        return None

    @contextmanager
    def locked(self, report_id: str) -> Iterator[Report]:
        """Read-modify-write a single report under its lock."""
        with self._lock_for(report_id):
            current = self._reports.get(report_id)
            if current is None:
                raise NotFoundError(f"Report {report_id} not found")
            working = copy.deepcopy(current)
            yield working
            working.prepare_for_save()
            self._reports[report_id] = working


class ReportHandler:
    """
    Handles traffic reports from users.

    Receives new reports, serves listings and applies engagement and
    moderation changes through the configured store.
    """

    def __init__(
        self,
        store: Optional[Any] = None,
        photo_store: Optional[Any] = None,
        page_size: Optional[int] = None
    ):
        """
        Initialize report handler.

        Args:
            store: Report storage backend (in-memory or SQL)
            photo_store: Backend implementing store(bytes, metadata)
            page_size: Maximum number of reports returned by listings
        """
        self.store = store or InMemoryReportStore()
        self.photo_store = photo_store or MockPhotoStore()
        self.page_size = page_size or settings.report_page_size
        self._submission_lock = threading.Lock()

        logger.info("ReportHandler initialized")

    def create_report(
        self,
        user_id: str,
        report_type: str,
        description: str,
        location: Union[Location, Dict[str, Any]],
        severity: str = Severity.MEDIUM.value,
        coordinates: Any = None,
        photo_data: Optional[bytes] = None,
        photo_content_type: Optional[str] = None,
        photo_filename: Optional[str] = None,
        submission_key: Optional[str] = None,
        **kwargs
    ) -> Report:
        """
        Create a new report.

        Args:
            user_id: Authenticated author id
            report_type: One of the report types
            description: Free-text description
            location: Address with optional city, state and country
            severity: low, medium or high
            coordinates: Raw coordinate payload, dropped when invalid
            photo_data: Optional photo bytes
            photo_content_type: MIME type of the photo
            photo_filename: Original file name of the photo
            submission_key: Client idempotency key; a repeated key from the
                same user returns the report created the first time
            **kwargs: Additional report fields (title, priority, tags, ...)

        Returns:
            Created Report
        """
        if isinstance(location, dict):
            location = Location.from_dict(location)
        validate_report_fields(report_type, description, location.address, severity)

        if photo_data is not None:
            validate_photo(photo_content_type, len(photo_data))

        report = Report(
            reported_by=user_id,
            type=report_type,
            description=description.strip(),
            location=location,
            severity=severity,
            coordinates=sanitize_coordinates(coordinates),
            submission_key=submission_key,
            **kwargs
        )
        photo = (photo_data, photo_content_type, photo_filename)

        if not submission_key:
            return self._persist_new(report, *photo)

        with self._submission_lock:
            existing = self.store.find_by_submission_key(user_id, submission_key)
            if existing is not None:
                logger.info(f"Duplicate submission {submission_key} from {user_id}, returning {existing.id}")
                return existing
            return self._persist_new(report, *photo)

    def _persist_new(
        self,
        report: Report,
        photo_data: Optional[bytes],
        photo_content_type: Optional[str],
        photo_filename: Optional[str]
    ) -> Report:
        if photo_data is not None:
            stored = self.photo_store.store(photo_data, {
                "content_type": photo_content_type,
                "filename": photo_filename,
                "report_id": report.id,
                "user_id": report.reported_by,
            })
            report.photos.append(Photo(url=stored.url, storage_id=stored.storage_id))

        report.prepare_for_save()
        self.store.add(report)

        point = report.coordinates
        where = f"({point.longitude}, {point.latitude})" if point else "no coordinates"
        logger.info(f"New report created: {report.id} [{report.type.value}] at {where}")

        return report

    def get_report(self, report_id: str) -> Report:
        """Get an active report by ID."""
        report = self.store.get(report_id)
        if report is None or not report.is_active:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    def list_reports(self, limit: Optional[int] = None) -> List[Report]:
        """Active reports, newest first, capped at the page size."""
        limit = min(limit or self.page_size, self.page_size)
        return self.store.find(active_only=True, limit=limit)

    def list_user_reports(self, user_id: str) -> List[Report]:
        """Active reports authored by a user, newest first."""
        return self.store.find(active_only=True, reported_by=user_id, limit=self.page_size)

    def _engage(
        self,
        report_id: str,
        operation: Callable[..., EngagementCounts],
        *args
    ) -> EngagementCounts:
        with self.store.locked(report_id) as report:
            counts = operation(report, *args)
        logger.debug(f"Report {report_id} {operation.__name__}: {counts}")
        return counts

    def like(self, report_id: str, user_id: str) -> EngagementCounts:
        return self._engage(report_id, engagement.like, user_id)

    def unlike(self, report_id: str, user_id: str) -> EngagementCounts:
        return self._engage(report_id, engagement.unlike, user_id)

    def toggle_like(self, report_id: str, user_id: str) -> EngagementCounts:
        return self._engage(report_id, engagement.toggle_like, user_id)

    def vote(self, report_id: str, user_id: str, direction: str) -> EngagementCounts:
        return self._engage(report_id, engagement.vote, user_id, direction)

    def comment(self, report_id: str, user_id: str, text: str) -> EngagementCounts:
        return self._engage(report_id, engagement.comment, user_id, text)

    def record_view(self, report_id: str, user_id: str) -> EngagementCounts:
        return self._engage(report_id, engagement.record_view, user_id)

    def update_status(
        self,
        report_id: str,
        new_status: Union[ReportStatus, str],
        moderator_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Report:
        """
        Apply a moderation transition.

        Args:
            report_id: Report ID
            new_status: Target status
            moderator_id: Who performed the transition
            notes: Resolution notes, kept when resolving

        Returns:
            Updated report
        """
        with self.store.locked(report_id) as report:
            if not report.is_active:
                raise NotFoundError(f"Report {report_id} not found")
            report.transition_status(new_status, moderator_id=moderator_id, notes=notes)
        return self.store.get(report_id)

    def deactivate_report(self, report_id: str, user_id: str) -> None:
        """Soft-delete a report. Only its author may do this."""
        with self.store.locked(report_id) as report:
            if not report.is_active:
                raise NotFoundError(f"Report {report_id} not found")
            if report.reported_by != user_id:
                raise PermissionDeniedError()
            report.is_active = False
        logger.info(f"Report {report_id} deactivated by {user_id}")
