"""
SQLAlchemy models for Raasta Sathi
Uses GeoAlchemy2 for PostGIS spatial types
"""

from typing import Any, Dict

from sqlalchemy import (
    Column, Integer, Float, String, Text, Boolean,
    DateTime, Index, JSON
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
from geoalchemy2 import Geometry
from geoalchemy2.shape import from_shape
from shapely.geometry import Point

from src.reports.models import Report

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
EmbeddedJSON = JSON().with_variant(JSONB(), "postgresql")


class ReportRecord(Base):
    """
    Persisted traffic report.

    Engagement collections are embedded as JSON columns so a single row is
    the unit of locking for likes, votes, comments and views.
    """
    __tablename__ = "reports"

    id = Column(String(32), primary_key=True)

    # Classification
    type = Column(String(20), nullable=False)
    title = Column(String(200))
    description = Column(Text, nullable=False)
    severity = Column(String(10), nullable=False, default="medium")
    status = Column(String(10), nullable=False, default="pending")

    # Location; point columns stay NULL when coordinates are absent
    location = Column(EmbeddedJSON, nullable=False)
    point = Column(Geometry("POINT", srid=4326), nullable=True)
    longitude = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    photos = Column(EmbeddedJSON, default=list)

    # Ownership and moderation
    reported_by = Column(String(64), nullable=False)
    verified_by = Column(String(64))
    verified_at = Column(DateTime(timezone=True))
    estimated_resolution_time = Column(String(100))
    actual_resolution_time = Column(DateTime(timezone=True))
    resolution_notes = Column(Text)
    priority = Column(Integer, default=1)
    tags = Column(EmbeddedJSON, default=list)

    # Engagement
    likes = Column(EmbeddedJSON, default=list)
    votes = Column(EmbeddedJSON, default=dict)
    comments = Column(EmbeddedJSON, default=list)
    views = Column(Integer, default=0)
    viewed_by = Column(EmbeddedJSON, default=list)

    submission_key = Column(String(64))
    is_active = Column(Boolean, default=True)
    reported_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_report_point", point, postgresql_using="gist"),
        Index("idx_report_type_status", type, status),
        Index("idx_report_reported_by", reported_by),
        Index("idx_report_reported_at", reported_at),
        Index("idx_report_severity_status", severity, status),
        Index("uq_report_submission", reported_by, submission_key, unique=True),
    )

    def __repr__(self):
        return f"<ReportRecord({self.id}, type={self.type}, status={self.status})>"

    @classmethod
    def from_report(cls, report: Report) -> "ReportRecord":
        """Create a record from a domain report."""
        record = cls(id=report.id)
        record.update_from(report)
        return record

    def update_from(self, report: Report) -> None:
        """Copy every persisted field of a domain report onto this row."""
        data = report.to_dict()

        self.type = data["type"]
        self.title = data["title"]
        self.description = data["description"]
        self.severity = data["severity"]
        self.status = data["status"]
        self.location = data["location"]
        self.photos = data["photos"]
        self.reported_by = data["reported_by"]
        self.verified_by = data["verified_by"]
        self.verified_at = report.verified_at
        self.estimated_resolution_time = data["estimated_resolution_time"]
        self.actual_resolution_time = report.actual_resolution_time
        self.resolution_notes = data["resolution_notes"]
        self.priority = data["priority"]
        self.tags = data["tags"]
        self.likes = data["likes"]
        self.votes = data["votes"]
        self.comments = data["comments"]
        self.views = data["views"]
        self.viewed_by = data["viewed_by"]
        self.submission_key = data["submission_key"]
        self.is_active = data["is_active"]
        self.reported_at = report.reported_at
        self.updated_at = report.updated_at

        if report.coordinates is not None:
            self.longitude = report.coordinates.longitude
            self.latitude = report.coordinates.latitude
            self.point = from_shape(Point(self.longitude, self.latitude), srid=4326)
        else:
            self.longitude = None
            self.latitude = None
            self.point = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary form understood by Report.from_dict."""
        data = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "location": self.location or {},
            "photos": self.photos or [],
            "reported_by": self.reported_by,
            "verified_by": self.verified_by,
            "verified_at": self.verified_at,
            "estimated_resolution_time": self.estimated_resolution_time,
            "actual_resolution_time": self.actual_resolution_time,
            "resolution_notes": self.resolution_notes,
            "priority": self.priority or 1,
            "tags": self.tags or [],
            "likes": self.likes or [],
            "votes": self.votes or {},
            "comments": self.comments or [],
            "views": self.views or 0,
            "viewed_by": self.viewed_by or [],
            "submission_key": self.submission_key,
            "is_active": self.is_active if self.is_active is not None else True,
            "reported_at": self.reported_at,
            "updated_at": self.updated_at,
        }
        if self.longitude is not None and self.latitude is not None:
            data["coordinates"] = {"type": "Point", "coordinates": [self.longitude, self.latitude]}
        return data

    def to_report(self) -> Report:
        return Report.from_dict(self.to_dict())
