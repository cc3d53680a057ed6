"""
Tests for the Raasta Sathi API client and session context
"""
import json

import httpx
import pytest

import sys
sys.path.insert(0, '.')

from src.client.api_client import RaastaClient
from src.client.session import SessionContext
from src.client.submission import ReportDraft
from src.core.exceptions import (
    NetworkError,
    RequestRejectedError,
    RequestTimeoutError,
    UnknownRequestError,
    ValidationError,
)
from src.reports.models import Location, Report

BASE_URL = "http://api.test/api/v1"


def _report_dict(report_id="r-1", **overrides):
    report = Report(
        id=report_id,
        reported_by="u1",
        type="closure",
        description="Road closed for repairs",
        location=Location(address="Lodhi Road"),
        **overrides
    )
    return report.to_dict()


def _counts(**overrides):
    counts = {"like_count": 0, "comment_count": 0, "vote_score": 0, "views": 0}
    counts.update(overrides)
    return {"status": "success", "data": counts}


class TestSessionContext:
    """Test suite for SessionContext."""

    def test_token_lifecycle(self):
        """Test set, read and clear."""
        session = SessionContext()
        assert session() is None
        assert not session.is_authenticated

        session.set_token("abc")
        assert session.get_token() == "abc"
        assert session() == "abc"

        session.clear()
        assert session.get_token() is None


class TestRaastaClient:
    """Test suite for RaastaClient."""

    def setup_method(self):
        """Setup test fixtures."""
        self.requests = []
        self.routes = {}
        self.session = SessionContext("token-1")
        self.client = RaastaClient(
            base_url=BASE_URL,
            session=self.session,
            sleep=lambda seconds: None,
            transport=httpx.MockTransport(self._handle),
        )

    def teardown_method(self):
        self.client.close()

    def _handle(self, request):
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"status": "error", "message": "Report not found"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def test_get_reports(self):
        """Test listings are parsed into reports."""
        self.routes[("GET", "/api/v1/reports")] = {
            "status": "success",
            "count": 2,
            "data": {"reports": [_report_dict("r-2"), _report_dict("r-1")]},
        }

        reports = self.client.get_reports()

        assert [r.id for r in reports] == ["r-2", "r-1"]
        assert self.requests[0].headers["Authorization"] == "Bearer token-1"

    def test_get_report_with_coordinates(self):
        """Test coordinates come back as a GeoPoint."""
        data = _report_dict()
        data["coordinates"] = {"type": "Point", "coordinates": [77.2197, 28.5918]}
        self.routes[("GET", "/api/v1/reports/r-1")] = {"status": "success", "data": {"report": data}}

        report = self.client.get_report("r-1")

        assert report.coordinates.longitude == 77.2197
        assert report.coordinates.latitude == 28.5918

    def test_get_report_not_found(self):
        """Test a 404 is a rejected request."""
        with pytest.raises(RequestRejectedError) as exc_info:
            self.client.get_report("missing")

        assert exc_info.value.status_code == 404

    def test_like_and_unlike(self):
        """Test engagement endpoints return counts."""
        self.routes[("POST", "/api/v1/reports/r-1/like")] = _counts(like_count=1)
        self.routes[("DELETE", "/api/v1/reports/r-1/like")] = _counts(like_count=0)

        assert self.client.like_report("r-1").like_count == 1
        assert self.client.unlike_report("r-1").like_count == 0

    def test_vote_sends_direction(self):
        """Test vote payload."""
        self.routes[("POST", "/api/v1/reports/r-1/vote")] = _counts(vote_score=1)

        counts = self.client.vote_report("r-1", "up")

        assert counts.vote_score == 1
        assert json.loads(self.requests[0].content) == {"vote_type": "up"}

    def test_vote_invalid_direction_is_local(self):
        """Test an invalid vote never reaches the server."""
        with pytest.raises(ValidationError):
            self.client.vote_report("r-1", "sideways")
        assert self.requests == []

    def test_comment_is_trimmed_and_validated(self):
        """Test comment text is checked before sending."""
        self.routes[("POST", "/api/v1/reports/r-1/comments")] = _counts(comment_count=1)

        self.client.add_comment("r-1", "  Cleared  ")
        assert json.loads(self.requests[0].content) == {"text": "Cleared"}

        with pytest.raises(ValidationError):
            self.client.add_comment("r-1", "x" * 201)
        assert len(self.requests) == 1

    def test_record_view(self):
        """Test view endpoint."""
        self.routes[("POST", "/api/v1/reports/r-1/view")] = _counts(views=3)

        assert self.client.record_view("r-1").views == 3

    def test_update_status(self):
        """Test moderation call returns the updated report."""
        self.routes[("PUT", "/api/v1/reports/r-1/status")] = {
            "status": "success",
            "data": {"report": _report_dict(status="verified", verified_by="mod-1")},
        }

        report = self.client.update_status("r-1", "verified", notes="Confirmed on site")

        assert report.verified_by == "mod-1"
        assert json.loads(self.requests[0].content) == {
            "status": "verified",
            "notes": "Confirmed on site",
        }

    def test_conflict_surfaces_status(self):
        """Test a 409 keeps the server's message."""
        self.routes[("PUT", "/api/v1/reports/r-1/status")] = lambda request: httpx.Response(
            409, json={"status": "error", "message": "Cannot move report from 'pending' to 'resolved'"}
        )

        with pytest.raises(RequestRejectedError) as exc_info:
            self.client.update_status("r-1", "resolved")

        assert exc_info.value.status_code == 409
        assert "pending" in exc_info.value.message

    def test_unauthorized_clears_session(self):
        """Test a 401 forgets the token."""
        self.routes[("GET", "/api/v1/reports/mine")] = lambda request: httpx.Response(
            401, json={"status": "error", "message": "Not authorized to access this route"}
        )

        with pytest.raises(RequestRejectedError) as exc_info:
            self.client.get_my_reports()

        assert exc_info.value.message == "Session expired - please login again"
        assert self.session.get_token() is None

    def test_network_errors_are_typed(self):
        """Test transport failures never leak httpx exceptions."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.routes[("GET", "/api/v1/reports")] = refuse
        with pytest.raises(NetworkError):
            self.client.get_reports()

        def stall(request):
            raise httpx.ReadTimeout("timed out", request=request)

        self.routes[("GET", "/api/v1/reports")] = stall
        with pytest.raises(RequestTimeoutError):
            self.client.get_reports()

    def test_malformed_listing(self):
        """Test a listing without reports is an unknown error."""
        self.routes[("GET", "/api/v1/reports")] = {"status": "success", "data": {}}

        with pytest.raises(UnknownRequestError):
            self.client.get_reports()

    def test_health_check_at_root(self):
        """Test health lives outside the API prefix."""
        self.routes[("GET", "/health")] = {"status": "healthy"}

        assert self.client.health_check()["status"] == "healthy"

    def test_create_report_uses_pipeline(self):
        """Test submissions reuse the session token and retry on 5xx."""
        attempts = []

        def create(request):
            attempts.append(request)
            if len(attempts) == 1:
                return httpx.Response(500)
            return httpx.Response(201, json={"status": "success", "data": {"report": _report_dict()}})

        self.routes[("POST", "/api/v1/reports")] = create
        draft = ReportDraft(type="closure", description="Road closed for repairs", address="Lodhi Road")

        report = self.client.create_report(draft)

        assert report.id == "r-1"
        assert len(attempts) == 2
        assert all(r.headers["Authorization"] == "Bearer token-1" for r in attempts)
