"""
Report Submission Pipeline for Raasta Sathi

Sends a report draft to the server as one multipart request, retried a
bounded number of times with growing backoff. Every attempt of a
submission carries the same Idempotency-Key so a retry after a lost
response returns the report created by the earlier attempt.

Retry policy:
- timeout, connection failure, malformed response, 5xx: retried
- 4xx: raised immediately
- cancel(): stops the loop, aborts an in-flight upload at the next chunk
"""

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
    wait_incrementing,
)

from src.client.errors import parse_response, translate_transport_error
from src.core.config import settings
from src.core.exceptions import (
    ReportError,
    RequestRejectedError,
    SubmissionCancelledError,
    UnknownRequestError,
    ValidationError,
)
from src.core.geo_utils import sanitize_coordinates
from src.reports.models import Report, ReportType, Severity, validate_report_fields
from src.storage.photo_store import validate_photo

logger = logging.getLogger(__name__)

REPORTS_PATH = "/reports"
DEFAULT_CHUNK_SIZE = 64 * 1024

CredentialProvider = Callable[[], Optional[str]]
ProgressCallback = Callable[[int, float], None]


@dataclass
class PhotoAttachment:
    """Photo picked by the user, sent as the ``photo`` multipart part."""
    data: bytes
    content_type: str
    filename: str = "photo.jpg"


@dataclass
class ReportDraft:
    """
    Fields collected by the client before a report is sent.

    Attributes:
        type: Report type (accident, police, pothole, ...)
        description: Free-text description
        address: Human-readable address, required
        severity: low, medium or high
        city: Optional city
        state: Optional state
        coordinates: Raw coordinates from the device, any shape
        photo: Optional photo attachment
        title: Optional title, the server derives one when missing
    """
    type: str
    description: str
    address: str
    severity: str = Severity.MEDIUM.value
    city: Optional[str] = None
    state: Optional[str] = None
    coordinates: Any = None
    photo: Optional[PhotoAttachment] = None
    title: Optional[str] = None

    def validate(self) -> None:
        """
        Check the draft before anything is sent.

        Raises:
            ValidationError: naming the offending field
        """
        validate_report_fields(self.type, self.description, self.address, self.severity)
        if self.photo is not None:
            validate_photo(self.photo.content_type, len(self.photo.data))

    def form_fields(self) -> Dict[str, str]:
        """Multipart text fields. Coordinates are left out when invalid."""
        location = {"address": self.address.strip()}
        if self.city:
            location["city"] = self.city
        if self.state:
            location["state"] = self.state

        fields = {
            "type": ReportType(self.type).value,
            "description": self.description.strip(),
            "severity": Severity(self.severity).value,
            "location": json.dumps(location),
        }
        if self.title:
            fields["title"] = self.title

        point = sanitize_coordinates(self.coordinates)
        if point is not None:
            fields["coordinates"] = json.dumps(point.to_geojson(), separators=(",", ":"))
        return fields


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ReportError) and getattr(exc, "retryable", False)


def _report_from_envelope(body: Dict[str, Any]) -> Report:
    try:
        return Report.from_dict(body["data"]["report"])
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        logger.warning(f"Malformed report in response: {exc!r}")
        raise UnknownRequestError() from exc


class ReportSubmitter:
    """
    Submits report drafts with bounded retry and progress reporting.

    Usage:
        with ReportSubmitter(credentials=session) as submitter:
            report = submitter.submit(draft, on_progress=show_progress)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        credentials: Optional[CredentialProvider] = None,
        timeout: Optional[float] = None,
        backoff_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_unauthorized: Optional[Callable[[], None]] = None,
        client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the submitter.

        Args:
            base_url: API root, e.g. http://localhost:5001/api/v1
            credentials: Callable returning the current bearer token or None
            timeout: Per-attempt timeout in seconds
            backoff_seconds: Backoff unit; attempt n waits n units before the next
            max_attempts: Default attempt bound for submit()
            sleep: Sleep function used between attempts; defaults to a wait
                that cancel() cuts short
            chunk_size: Upload chunk size, progress is reported per chunk
            on_unauthorized: Called when the server answers 401
            client: Shared httpx client; created (and owned) when omitted
            transport: httpx transport for an owned client
        """
        self.base_url = base_url or settings.api_base_url
        self.credentials = credentials or (lambda: None)
        self.timeout = timeout or settings.request_timeout_seconds
        self.backoff_seconds = (
            settings.submit_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.max_attempts = max_attempts or settings.submit_max_attempts
        self.chunk_size = chunk_size
        self.on_unauthorized = on_unauthorized
        self.attempts = 0

        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abandon the submission in progress."""
        self._cancelled.set()
        logger.info("Report submission cancelled")

    def submit(
        self,
        draft: ReportDraft,
        on_progress: Optional[ProgressCallback] = None,
        max_attempts: Optional[int] = None,
    ) -> Report:
        """
        Send a draft to the server.

        Args:
            draft: Report fields, coordinates and optional photo
            on_progress: Called with (attempt, fraction of body sent)
            max_attempts: Overrides the configured attempt bound

        Returns:
            Report as created by the server

        Raises:
            ValidationError: draft rejected locally, nothing was sent
            RequestRejectedError: server answered 4xx
            RequestTimeoutError, NetworkError, UnknownRequestError,
            ServerError: last failure once attempts are exhausted
            SubmissionCancelledError: cancel() was called
        """
        draft.validate()

        self._cancelled.clear()
        self.attempts = 0

        body, content_type = self._encode(draft)
        submission_key = uuid.uuid4().hex

        retrying = Retrying(
            stop=stop_any(
                stop_after_attempt(max_attempts or self.max_attempts),
                self._stop_if_cancelled,
            ),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    report = self._send(body, content_type, submission_key, on_progress)
        except ReportError as exc:
            if self.cancelled and not isinstance(exc, SubmissionCancelledError):
                raise SubmissionCancelledError() from exc
            logger.error(f"Report submission failed after {self.attempts} attempt(s): {exc.message}")
            raise

        logger.info(f"Report {report.id} submitted in {self.attempts} attempt(s)")
        return report

    def _encode(self, draft: ReportDraft) -> Tuple[bytes, str]:
        """Encode the request body once; every attempt resends the same bytes."""
        # Text fields go in as filename-less parts so the body is multipart
        # with or without a photo
        parts = [
            (name, (None, value.encode("utf-8")))
            for name, value in draft.form_fields().items()
        ]
        if draft.photo is not None:
            parts.append(("photo", (draft.photo.filename, draft.photo.data, draft.photo.content_type)))

        request = self._client.build_request("POST", REPORTS_PATH, files=parts)
        return request.read(), request.headers["Content-Type"]

    def _send(
        self,
        body: bytes,
        content_type: str,
        submission_key: str,
        on_progress: Optional[ProgressCallback],
    ) -> Report:
        if self.cancelled:
            raise SubmissionCancelledError()

        self.attempts += 1
        attempt = self.attempts
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(len(body)),
            "Idempotency-Key": submission_key,
        }
        token = self.credentials()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.info(f"Submitting report, attempt {attempt} ({len(body)} bytes)")
        try:
            response = self._client.post(
                REPORTS_PATH,
                content=self._stream_body(body, attempt, on_progress),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning(f"Submission attempt {attempt} failed: {exc!r}")
            raise translate_transport_error(exc) from exc

        try:
            envelope = parse_response(response)
        except RequestRejectedError as exc:
            if exc.status_code == 401 and self.on_unauthorized:
                self.on_unauthorized()
            raise
        return _report_from_envelope(envelope)

    def _stream_body(
        self,
        body: bytes,
        attempt: int,
        on_progress: Optional[ProgressCallback],
    ) -> Iterator[bytes]:
        total = len(body)
        sent = 0
        for start in range(0, total, self.chunk_size):
            if self.cancelled:
                raise SubmissionCancelledError()
            chunk = body[start:start + self.chunk_size]
            yield chunk
            sent += len(chunk)
            if on_progress:
                on_progress(attempt, sent / total)

    def _stop_if_cancelled(self, retry_state: RetryCallState) -> bool:
        return self.cancelled

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({exc}), "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )
