"""
Tests for the report submission pipeline
"""
import json
import threading
import time

import httpx
import pytest

import sys
sys.path.insert(0, '.')

from src.client.submission import PhotoAttachment, ReportDraft, ReportSubmitter
from src.core.exceptions import (
    NetworkError,
    RequestRejectedError,
    RequestTimeoutError,
    ServerError,
    SubmissionCancelledError,
    UnknownRequestError,
    ValidationError,
)
from src.reports.models import Location, Report

BASE_URL = "http://api.test/api/v1"


def _draft(**overrides):
    fields = {
        "type": "pothole",
        "description": "Crater on the service road",
        "address": "Sector 18, Noida",
        "coordinates": {"type": "Point", "coordinates": [77.3260, 28.5708]},
    }
    fields.update(overrides)
    return ReportDraft(**fields)


def _created(report_id="r-1"):
    report = Report(
        id=report_id,
        reported_by="u1",
        type="pothole",
        description="Crater on the service road",
        location=Location(address="Sector 18, Noida"),
    )
    return httpx.Response(201, json={"status": "success", "data": {"report": report.to_dict()}})


def _form_fields(request):
    """Text parts of a multipart body, keyed by field name."""
    boundary = request.headers["Content-Type"].split("boundary=")[1].encode()
    fields = {}
    for part in request.content.split(b"--" + boundary):
        head, _, value = part.partition(b"\r\n\r\n")
        if b"filename=" in head or b"name=\"" not in head:
            continue
        name = head.split(b"name=\"")[1].split(b"\"")[0].decode()
        fields[name] = value.rstrip(b"\r\n").decode()
    return fields


class TestReportSubmitter:
    """Test suite for ReportSubmitter."""

    def setup_method(self):
        """Setup test fixtures."""
        self.requests = []
        self.sleeps = []

    def _submitter(self, respond, **kwargs):
        def handler(request):
            self.requests.append(request)
            return respond(request, len(self.requests))

        options = {
            "base_url": BASE_URL,
            "credentials": lambda: "token-1",
            "backoff_seconds": 1.0,
            "max_attempts": 2,
            "sleep": self.sleeps.append,
            "transport": httpx.MockTransport(handler),
        }
        options.update(kwargs)
        return ReportSubmitter(**options)

    def test_success_first_attempt(self):
        """Test a clean submission sends every field once."""
        submitter = self._submitter(lambda request, attempt: _created())

        report = submitter.submit(_draft())

        assert report.id == "r-1"
        assert submitter.attempts == 1
        assert self.sleeps == []

        request = self.requests[0]
        assert request.url == "http://api.test/api/v1/reports"
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.headers["Idempotency-Key"]

        fields = _form_fields(request)
        assert fields["type"] == "pothole"
        assert fields["severity"] == "medium"
        assert json.loads(fields["location"]) == {"address": "Sector 18, Noida"}
        assert json.loads(fields["coordinates"]) == {
            "type": "Point",
            "coordinates": [77.3260, 28.5708],
        }

    def test_placeholder_coordinates_omitted(self):
        """Test (0, 0) never leaves the client."""
        submitter = self._submitter(lambda request, attempt: _created())

        submitter.submit(_draft(coordinates=[0, 0]))

        assert "coordinates" not in _form_fields(self.requests[0])

    def test_photo_sent_as_multipart(self):
        """Test a photo travels as a file part next to the text fields."""
        submitter = self._submitter(lambda request, attempt: _created())
        photo = PhotoAttachment(data=b"\xff\xd8\xff" + b"\x00" * 256, content_type="image/jpeg")

        submitter.submit(_draft(photo=photo))

        request = self.requests[0]
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="photo"' in request.content
        assert b'name="type"' in request.content

    def test_timeout_then_success(self):
        """Test a timeout is retried once after a one-unit backoff."""
        def respond(request, attempt):
            if attempt == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return _created()

        submitter = self._submitter(respond)

        report = submitter.submit(_draft())

        assert report.id == "r-1"
        assert submitter.attempts == 2
        assert self.sleeps == [1.0]
        keys = {r.headers["Idempotency-Key"] for r in self.requests}
        assert len(keys) == 1

    def test_timeout_exhausted(self):
        """Test repeated timeouts surface as RequestTimeoutError."""
        def respond(request, attempt):
            raise httpx.ConnectTimeout("timed out", request=request)

        submitter = self._submitter(respond)

        with pytest.raises(RequestTimeoutError):
            submitter.submit(_draft())
        assert submitter.attempts == 2

    def test_client_error_not_retried(self):
        """Test a 400 fails immediately with the server's field errors."""
        def respond(request, attempt):
            return httpx.Response(400, json={
                "status": "error",
                "message": "Validation failed",
                "errors": [{"field": "description", "message": "Description is required"}],
            })

        submitter = self._submitter(respond)

        with pytest.raises(RequestRejectedError) as exc_info:
            submitter.submit(_draft())

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Validation failed"
        assert exc_info.value.errors[0]["field"] == "description"
        assert len(self.requests) == 1
        assert self.sleeps == []

    def test_server_errors_exhausted(self):
        """Test 5xx responses use every attempt then raise ServerError."""
        submitter = self._submitter(
            lambda request, attempt: httpx.Response(503, text="upstream down")
        )

        with pytest.raises(ServerError) as exc_info:
            submitter.submit(_draft())

        assert exc_info.value.status_code == 503
        assert "upstream" not in exc_info.value.message
        assert len(self.requests) == 2
        assert self.sleeps == [1.0]

    def test_backoff_grows_with_attempts(self):
        """Test the wait before attempt n+1 is n backoff units."""
        def respond(request, attempt):
            raise httpx.ConnectError("connection refused", request=request)

        submitter = self._submitter(respond, backoff_seconds=0.5)

        with pytest.raises(NetworkError):
            submitter.submit(_draft(), max_attempts=4)

        assert self.sleeps == [0.5, 1.0, 1.5]
        assert submitter.attempts == 4

    def test_malformed_response_retried(self):
        """Test a success status with an unusable body counts as a failed attempt."""
        def respond(request, attempt):
            if attempt == 1:
                return httpx.Response(200, text="<html>proxy page</html>")
            return _created()

        submitter = self._submitter(respond)

        assert submitter.submit(_draft()).id == "r-1"
        assert submitter.attempts == 2

    def test_malformed_response_exhausted(self):
        """Test a body without a report surfaces as UnknownRequestError."""
        submitter = self._submitter(
            lambda request, attempt: httpx.Response(201, json={"status": "success", "data": {}})
        )

        with pytest.raises(UnknownRequestError):
            submitter.submit(_draft())

    @pytest.mark.parametrize("overrides,field", [
        ({"type": "meteor"}, "type"),
        ({"address": ""}, "location.address"),
        ({"description": "  "}, "description"),
        ({"photo": PhotoAttachment(data=b"%PDF", content_type="application/pdf")}, "photo"),
        ({"photo": PhotoAttachment(data=b"\x00" * (10 * 1024 * 1024 + 1), content_type="image/png")}, "photo"),
    ])
    def test_local_validation(self, overrides, field):
        """Test invalid drafts never reach the network."""
        submitter = self._submitter(lambda request, attempt: _created())

        with pytest.raises(ValidationError) as exc_info:
            submitter.submit(_draft(**overrides))

        assert exc_info.value.field == field
        assert self.requests == []

    def test_progress_reported(self):
        """Test progress climbs to 1.0 for the attempt in flight."""
        progress = []
        submitter = self._submitter(lambda request, attempt: _created(), chunk_size=32)

        submitter.submit(_draft(), on_progress=lambda attempt, fraction: progress.append((attempt, fraction)))

        assert len(progress) > 1
        assert all(attempt == 1 for attempt, _ in progress)
        fractions = [fraction for _, fraction in progress]
        assert fractions == sorted(fractions)
        assert fractions[-1] == pytest.approx(1.0)

    def test_progress_per_attempt(self):
        """Test each retry reports its own attempt number."""
        progress = []

        def respond(request, attempt):
            if attempt == 1:
                return httpx.Response(502)
            return _created()

        submitter = self._submitter(respond)

        submitter.submit(_draft(), on_progress=lambda attempt, fraction: progress.append(attempt))

        assert progress[0] == 1
        assert progress[-1] == 2

    def test_cancel_during_upload(self):
        """Test cancelling aborts the body at the next chunk."""
        submitter = self._submitter(lambda request, attempt: _created(), chunk_size=16)

        def on_progress(attempt, fraction):
            submitter.cancel()

        with pytest.raises(SubmissionCancelledError):
            submitter.submit(_draft(), on_progress=on_progress)

        assert self.sleeps == []
        assert submitter.attempts == 1

    def test_cancel_during_backoff(self):
        """Test cancelling while waiting stops further attempts."""
        def respond(request, attempt):
            raise httpx.ConnectError("connection refused", request=request)

        submitter = self._submitter(respond, max_attempts=5)

        def sleep(seconds):
            self.sleeps.append(seconds)
            submitter.cancel()

        submitter._sleep = sleep

        with pytest.raises(SubmissionCancelledError):
            submitter.submit(_draft())

        assert len(self.requests) == 1
        assert submitter.attempts == 1

    def test_cancel_cuts_default_backoff_short(self):
        """Test cancel() wakes the default backoff wait."""
        def respond(request, attempt):
            threading.Timer(0.05, submitter.cancel).start()
            raise httpx.ConnectError("connection refused", request=request)

        submitter = self._submitter(respond, sleep=None, backoff_seconds=30.0)

        started = time.monotonic()
        with pytest.raises(SubmissionCancelledError):
            submitter.submit(_draft())

        assert time.monotonic() - started < 5
        assert len(self.requests) == 1
        assert submitter.attempts == 1

    def test_unauthorized_callback(self):
        """Test a 401 notifies the session owner and is not retried."""
        cleared = []
        submitter = self._submitter(
            lambda request, attempt: httpx.Response(401, json={"status": "error", "message": "expired"}),
            on_unauthorized=lambda: cleared.append(True),
        )

        with pytest.raises(RequestRejectedError) as exc_info:
            submitter.submit(_draft())

        assert exc_info.value.status_code == 401
        assert cleared == [True]
        assert len(self.requests) == 1

    def test_no_token_no_header(self):
        """Test anonymous submissions omit the Authorization header."""
        submitter = self._submitter(lambda request, attempt: _created(), credentials=lambda: None)

        submitter.submit(_draft())

        assert "Authorization" not in self.requests[0].headers
