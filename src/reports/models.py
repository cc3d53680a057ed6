"""
Traffic report aggregate
A report owns its likes, votes, comments and views as embedded collections.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from src.core.constants import (
    COMMENT_MAX_LENGTH,
    DEFAULT_COUNTRY,
    DESCRIPTION_MAX_LENGTH,
    PRIORITY_MAX,
    PRIORITY_MIN,
    STATUS_TRANSITIONS,
)
from src.core.exceptions import StateConflictError, ValidationError
from src.core.geo_utils import GeoPoint, sanitize_coordinates

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ReportType(str, Enum):
    """Kind of traffic condition being reported."""
    ACCIDENT = "accident"
    POLICE = "police"
    POTHOLE = "pothole"
    CONSTRUCTION = "construction"
    CONGESTION = "congestion"
    CLOSURE = "closure"
    WEATHER = "weather"
    VIP = "vip"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReportStatus(str, Enum):
    """Moderation status of a report."""
    PENDING = "pending"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self.value not in STATUS_TRANSITIONS


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


def _coerce_enum(enum_cls, value: Any, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Must be one of: {allowed}",
            field=field_name,
        )


def validate_report_fields(
    report_type: Any,
    description: Optional[str],
    address: Optional[str],
    severity: Any = Severity.MEDIUM,
) -> None:
    """
    Check the fields every new report must carry.

    Raises:
        ValidationError: naming the first offending field
    """
    if not report_type:
        raise ValidationError("Report type is required", field="type")
    _coerce_enum(ReportType, report_type, "type")
    _coerce_enum(Severity, severity, "severity")

    if not isinstance(description, str) or not description.strip():
        raise ValidationError("Description is required", field="description")
    if len(description.strip()) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description cannot be more than {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )

    if not isinstance(address, str) or not address.strip():
        raise ValidationError("Location address is required", field="location.address")


def validate_comment_text(text: Optional[str]) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Comment text is required", field="text")
    text = text.strip()
    if len(text) > COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment cannot be more than {COMMENT_MAX_LENGTH} characters",
            field="text",
        )
    return text


@dataclass
class Location:
    """Human-readable location of a report."""
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = DEFAULT_COUNTRY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        for key in ("address", "city", "state", "country"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ValidationError(f"Location {key} must be text", field=f"location.{key}")
        return cls(
            address=data.get("address", ""),
            city=data.get("city"),
            state=data.get("state"),
            country=data.get("country") or DEFAULT_COUNTRY,
        )


@dataclass
class Photo:
    """Handle returned by the photo store."""
    url: str
    storage_id: str
    uploaded_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "storage_id": self.storage_id,
            "uploaded_at": _isoformat(self.uploaded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Photo":
        return cls(
            url=data["url"],
            storage_id=data["storage_id"],
            uploaded_at=_parse_datetime(data.get("uploaded_at")) or utc_now(),
        )


@dataclass
class UserStamp:
    """A (user, timestamp) entry, used for likes, votes and views."""
    user: str
    at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"user": self.user, "at": _isoformat(self.at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserStamp":
        return cls(user=data["user"], at=_parse_datetime(data.get("at")) or utc_now())


@dataclass
class Comment:
    user: str
    text: str
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "text": self.text,
            "created_at": _isoformat(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            user=data["user"],
            text=data["text"],
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass
class Votes:
    """Up and down voters. A user is in at most one of the two lists."""
    up: List[UserStamp] = field(default_factory=list)
    down: List[UserStamp] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "up": [v.to_dict() for v in self.up],
            "down": [v.to_dict() for v in self.down],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Votes":
        return cls(
            up=[UserStamp.from_dict(v) for v in data.get("up", [])],
            down=[UserStamp.from_dict(v) for v in data.get("down", [])],
        )


@dataclass
class Report:
    """
    Traffic report submitted by a user.

    Engagement collections are embedded so one report is one consistency
    boundary. Counters are derived from the collections, never stored.
    """
    reported_by: str
    type: ReportType
    description: str
    location: Location

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    title: Optional[str] = None
    severity: Severity = Severity.MEDIUM
    status: ReportStatus = ReportStatus.PENDING
    coordinates: Optional[GeoPoint] = None
    photos: List[Photo] = field(default_factory=list)

    # Moderation
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    estimated_resolution_time: Optional[str] = None
    actual_resolution_time: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    priority: int = PRIORITY_MIN
    tags: List[str] = field(default_factory=list)

    # Engagement
    likes: List[UserStamp] = field(default_factory=list)
    votes: Votes = field(default_factory=Votes)
    comments: List[Comment] = field(default_factory=list)
    views: int = 0
    viewed_by: List[UserStamp] = field(default_factory=list)

    submission_key: Optional[str] = None

    is_active: bool = True
    reported_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.type = _coerce_enum(ReportType, self.type, "type")
        self.severity = _coerce_enum(Severity, self.severity, "severity")
        self.status = _coerce_enum(ReportStatus, self.status, "status")
        if not self.title:
            self.title = f"{self.type.value.capitalize()} Report"
        if not PRIORITY_MIN <= self.priority <= PRIORITY_MAX:
            raise ValidationError(
                f"Priority must be between {PRIORITY_MIN} and {PRIORITY_MAX}",
                field="priority",
            )

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    @property
    def vote_score(self) -> int:
        return len(self.votes.up) - len(self.votes.down)

    def prepare_for_save(self) -> None:
        """Re-check coordinates and stamp updated_at before persisting."""
        if self.coordinates is not None:
            point = sanitize_coordinates(self.coordinates)
            if point is None:
                logger.warning(f"Removing invalid coordinates from report {self.id}")
            self.coordinates = point
        self.updated_at = utc_now()

    def transition_status(
        self,
        new_status: ReportStatus,
        moderator_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        """
        Move the report along the moderation lifecycle.

        pending -> verified | rejected, verified -> resolved. Rejected and
        resolved are terminal.

        Raises:
            StateConflictError: if the transition is not allowed
        """
        new_status = _coerce_enum(ReportStatus, new_status, "status")
        allowed = STATUS_TRANSITIONS.get(self.status.value, ())
        if new_status.value not in allowed:
            raise StateConflictError(
                f"Cannot move report from '{self.status.value}' to '{new_status.value}'"
            )

        if new_status == ReportStatus.VERIFIED:
            self.verified_by = moderator_id
            self.verified_at = utc_now()
        elif new_status == ReportStatus.RESOLVED:
            self.actual_resolution_time = utc_now()
            if notes:
                self.resolution_notes = notes

        logger.info(f"Report {self.id} status: {self.status.value} -> {new_status.value}")
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary. Coordinates are omitted when absent."""
        data = {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "description": self.description,
            "severity": self.severity.value,
            "status": self.status.value,
            "location": self.location.to_dict(),
            "photos": [p.to_dict() for p in self.photos],
            "reported_by": self.reported_by,
            "verified_by": self.verified_by,
            "verified_at": _isoformat(self.verified_at),
            "estimated_resolution_time": self.estimated_resolution_time,
            "actual_resolution_time": _isoformat(self.actual_resolution_time),
            "resolution_notes": self.resolution_notes,
            "priority": self.priority,
            "tags": list(self.tags),
            "likes": [like.to_dict() for like in self.likes],
            "votes": self.votes.to_dict(),
            "comments": [c.to_dict() for c in self.comments],
            "views": self.views,
            "viewed_by": [v.to_dict() for v in self.viewed_by],
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "vote_score": self.vote_score,
            "submission_key": self.submission_key,
            "is_active": self.is_active,
            "reported_at": _isoformat(self.reported_at),
            "updated_at": _isoformat(self.updated_at),
        }
        if self.coordinates is not None:
            data["coordinates"] = self.coordinates.to_geojson()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """Rebuild a report from its dictionary form. Derived counters are ignored."""
        return cls(
            id=data["id"],
            reported_by=data["reported_by"],
            type=data["type"],
            description=data["description"],
            location=Location.from_dict(data.get("location") or {}),
            title=data.get("title"),
            severity=data.get("severity", Severity.MEDIUM),
            status=data.get("status", ReportStatus.PENDING),
            coordinates=sanitize_coordinates(data.get("coordinates")),
            photos=[Photo.from_dict(p) for p in data.get("photos", [])],
            verified_by=data.get("verified_by"),
            verified_at=_parse_datetime(data.get("verified_at")),
            estimated_resolution_time=data.get("estimated_resolution_time"),
            actual_resolution_time=_parse_datetime(data.get("actual_resolution_time")),
            resolution_notes=data.get("resolution_notes"),
            priority=data.get("priority", PRIORITY_MIN),
            tags=list(data.get("tags", [])),
            likes=[UserStamp.from_dict(like) for like in data.get("likes", [])],
            votes=Votes.from_dict(data.get("votes") or {}),
            comments=[Comment.from_dict(c) for c in data.get("comments", [])],
            views=data.get("views", 0),
            viewed_by=[UserStamp.from_dict(v) for v in data.get("viewed_by", [])],
            submission_key=data.get("submission_key"),
            is_active=data.get("is_active", True),
            reported_at=_parse_datetime(data.get("reported_at")) or utc_now(),
            updated_at=_parse_datetime(data.get("updated_at")) or utc_now(),
        )
