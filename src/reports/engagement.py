"""
Engagement operations on a report: like, vote, comment and view.

Every operation is safe to retry. Likes, unlikes and votes are idempotent,
comments append and views count once per user. Each operation refuses to
touch an inactive report.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from src.core.exceptions import NotFoundError, ValidationError
from src.reports.models import (
    Comment,
    Report,
    UserStamp,
    VoteDirection,
    utc_now,
    validate_comment_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngagementCounts:
    """Derived counters returned after every engagement operation."""
    like_count: int
    comment_count: int
    vote_score: int
    views: int

    @classmethod
    def of(cls, report: Report) -> "EngagementCounts":
        return cls(
            like_count=report.like_count,
            comment_count=report.comment_count,
            vote_score=report.vote_score,
            views=report.views,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "vote_score": self.vote_score,
            "views": self.views,
        }


def _require_active(report: Report, user_id: str) -> None:
    if not report.is_active:
        raise NotFoundError(f"Report {report.id} not found")
    if not user_id:
        raise ValidationError("Acting user is required", field="user")


def _has_user(entries, user_id: str) -> bool:
    return any(entry.user == user_id for entry in entries)


def like(report: Report, user_id: str) -> EngagementCounts:
    """Add a like from user. Liking twice keeps a single entry."""
    _require_active(report, user_id)
    if not _has_user(report.likes, user_id):
        report.likes.append(UserStamp(user=user_id))
        report.updated_at = utc_now()
    return EngagementCounts.of(report)


def unlike(report: Report, user_id: str) -> EngagementCounts:
    """Remove user's like. Removing an absent like is a no-op."""
    _require_active(report, user_id)
    if _has_user(report.likes, user_id):
        report.likes = [entry for entry in report.likes if entry.user != user_id]
        report.updated_at = utc_now()
    return EngagementCounts.of(report)


def toggle_like(report: Report, user_id: str) -> EngagementCounts:
    """Like if not yet liked, otherwise unlike."""
    _require_active(report, user_id)
    if _has_user(report.likes, user_id):
        return unlike(report, user_id)
    return like(report, user_id)


def vote(report: Report, user_id: str, direction: Any) -> EngagementCounts:
    """
    Cast or switch a vote.

    The user is removed from both sides before being added to the requested
    one, so a user never appears as both an up and a down voter.
    """
    _require_active(report, user_id)
    try:
        direction = VoteDirection(direction)
    except ValueError:
        raise ValidationError(
            f"Invalid vote type '{direction}'. Must be 'up' or 'down'",
            field="vote_type",
        )

    if direction == VoteDirection.UP:
        same, opposite = report.votes.up, report.votes.down
    else:
        same, opposite = report.votes.down, report.votes.up
    if _has_user(same, user_id) and not _has_user(opposite, user_id):
        return EngagementCounts.of(report)

    up = [entry for entry in report.votes.up if entry.user != user_id]
    down = [entry for entry in report.votes.down if entry.user != user_id]
    if direction == VoteDirection.UP:
        up.append(UserStamp(user=user_id))
    else:
        down.append(UserStamp(user=user_id))

    report.votes.up = up
    report.votes.down = down
    report.updated_at = utc_now()
    return EngagementCounts.of(report)


def comment(report: Report, user_id: str, text: str) -> EngagementCounts:
    """Append a comment. Identical texts produce separate comments."""
    _require_active(report, user_id)
    text = validate_comment_text(text)
    report.comments.append(Comment(user=user_id, text=text))
    report.updated_at = utc_now()
    return EngagementCounts.of(report)


def record_view(report: Report, user_id: str) -> EngagementCounts:
    """Count a view. Only the first view by each user increments the counter."""
    _require_active(report, user_id)
    if not _has_user(report.viewed_by, user_id):
        report.viewed_by.append(UserStamp(user=user_id))
        report.views += 1
    return EngagementCounts.of(report)
