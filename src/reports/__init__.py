"""
Raasta Sathi - Reports Module
Traffic report aggregate, engagement operations and report handling.
"""

from src.reports.models import (
    Report,
    ReportType,
    ReportStatus,
    Severity,
    VoteDirection,
    Location,
)
from src.reports.engagement import (
    EngagementCounts,
    like,
    unlike,
    toggle_like,
    vote,
    comment,
    record_view,
)
from src.reports.report_handler import (
    ReportHandler,
    InMemoryReportStore,
)

__all__ = [
    # Models
    "Report",
    "ReportType",
    "ReportStatus",
    "Severity",
    "VoteDirection",
    "Location",
    # Engagement
    "EngagementCounts",
    "like",
    "unlike",
    "toggle_like",
    "vote",
    "comment",
    "record_view",
    # Handler
    "ReportHandler",
    "InMemoryReportStore",
]
