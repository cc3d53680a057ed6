"""
Raasta Sathi API Client

Client for the reports API: listing, engagement, moderation and report
submission through the retrying pipeline.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from src.client.errors import parse_response, translate_transport_error
from src.client.session import SessionContext
from src.client.submission import ProgressCallback, ReportDraft, ReportSubmitter
from src.core.config import settings
from src.core.exceptions import UnknownRequestError, ValidationError
from src.reports.engagement import EngagementCounts
from src.reports.models import Report, VoteDirection, validate_comment_text

logger = logging.getLogger(__name__)


class RaastaClient:
    """
    Client for the Raasta Sathi reports API.

    Usage:
        session = SessionContext(token)
        with RaastaClient(session=session) as client:
            reports = client.get_reports()
            client.like_report(reports[0].id)

    A 401 from any endpoint clears the session.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[SessionContext] = None,
        timeout: Optional[float] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. http://localhost:5001/api/v1
            session: Session holding the bearer token
            timeout: HTTP request timeout in seconds
            sleep: Sleep function used between submission attempts
            transport: Optional httpx transport
        """
        self.base_url = base_url or settings.api_base_url
        self.session = session or SessionContext()
        self.timeout = timeout or settings.request_timeout_seconds
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )
        self.submitter = ReportSubmitter(
            credentials=self.session,
            sleep=sleep,
            on_unauthorized=self.session.clear,
            client=self._client,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {}
        token = self.session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"{method} {path} failed: {exc!r}")
            raise translate_transport_error(exc) from exc

        if response.status_code == 401:
            self.session.clear()
        return parse_response(response)

    @staticmethod
    def _data(body: Dict[str, Any]) -> Dict[str, Any]:
        data = body.get("data")
        if not isinstance(data, dict):
            raise UnknownRequestError()
        return data

    def _report(self, body: Dict[str, Any]) -> Report:
        try:
            return Report.from_dict(self._data(body)["report"])
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise UnknownRequestError() from exc

    def _reports(self, body: Dict[str, Any]) -> List[Report]:
        try:
            return [Report.from_dict(r) for r in self._data(body)["reports"]]
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise UnknownRequestError() from exc

    def _counts(self, body: Dict[str, Any]) -> EngagementCounts:
        try:
            return EngagementCounts(**self._data(body))
        except TypeError as exc:
            raise UnknownRequestError() from exc

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def health_check(self) -> Dict[str, Any]:
        """Server health; lives at the site root, outside the API prefix."""
        return self._request("GET", self._client.base_url.join("/health"))

    def get_reports(self) -> List[Report]:
        """Active reports, newest first."""
        reports = self._reports(self._request("GET", "/reports"))
        logger.info(f"Retrieved {len(reports)} reports")
        return reports

    def get_my_reports(self) -> List[Report]:
        return self._reports(self._request("GET", "/reports/mine"))

    def get_report(self, report_id: str) -> Report:
        return self._report(self._request("GET", f"/reports/{report_id}"))

    def create_report(
        self,
        draft: ReportDraft,
        on_progress: Optional[ProgressCallback] = None,
        max_attempts: Optional[int] = None,
    ) -> Report:
        """Submit a new report through the retrying pipeline."""
        return self.submitter.submit(draft, on_progress=on_progress, max_attempts=max_attempts)

    def cancel_submission(self) -> None:
        self.submitter.cancel()

    def update_status(
        self,
        report_id: str,
        status: str,
        notes: Optional[str] = None,
    ) -> Report:
        """Moderation transition, e.g. pending -> verified."""
        payload: Dict[str, Any] = {"status": status}
        if notes:
            payload["notes"] = notes
        return self._report(self._request("PUT", f"/reports/{report_id}/status", json=payload))

    def delete_report(self, report_id: str) -> None:
        self._request("DELETE", f"/reports/{report_id}")
        logger.info(f"Report {report_id} deleted")

    # ------------------------------------------------------------------
    # Engagement
    # ------------------------------------------------------------------

    def like_report(self, report_id: str) -> EngagementCounts:
        return self._counts(self._request("POST", f"/reports/{report_id}/like"))

    def unlike_report(self, report_id: str) -> EngagementCounts:
        return self._counts(self._request("DELETE", f"/reports/{report_id}/like"))

    def vote_report(self, report_id: str, vote_type: str) -> EngagementCounts:
        """
        Vote a report up or down.

        Raises:
            ValidationError: if vote_type is not 'up' or 'down'
        """
        try:
            direction = VoteDirection(vote_type)
        except ValueError:
            raise ValidationError("Vote type must be 'up' or 'down'", field="vote_type")
        return self._counts(self._request(
            "POST", f"/reports/{report_id}/vote", json={"vote_type": direction.value}
        ))

    def add_comment(self, report_id: str, text: str) -> EngagementCounts:
        text = validate_comment_text(text)
        return self._counts(self._request(
            "POST", f"/reports/{report_id}/comments", json={"text": text}
        ))

    def record_view(self, report_id: str) -> EngagementCounts:
        return self._counts(self._request("POST", f"/reports/{report_id}/view"))
