"""
Raasta Sathi - REST API

FastAPI application exposing report creation, listing, moderation and
engagement (likes, votes, comments, views).

Run with: uvicorn src.api.main:app --reload
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.core.config import settings
from src.core.constants import MAX_PHOTOS_PER_REPORT
from src.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.core.logging import setup_logging
from src.reports.report_handler import InMemoryReportStore, ReportHandler
from src.storage.photo_store import LocalPhotoStore

setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# FastAPI app
app = FastAPI(
    title="Raasta Sathi",
    description="Community traffic reports with likes, votes and comments",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    storage: str
    environment: str


class VoteRequest(BaseModel):
    """Request to vote on a report."""
    vote_type: str = Field(..., pattern="^(up|down)$")


class CommentRequest(BaseModel):
    """Request to comment on a report."""
    text: str


class StatusUpdateRequest(BaseModel):
    """Moderation status change."""
    status: str = Field(..., pattern="^(pending|verified|resolved|rejected)$")
    notes: Optional[str] = None


class EngagementCountsModel(BaseModel):
    like_count: int
    comment_count: int
    vote_score: int
    views: int


class EngagementResponse(BaseModel):
    """Derived counters after an engagement action."""
    status: str = "success"
    data: EngagementCountsModel


class ReportResponse(BaseModel):
    """Single report wrapped in the response envelope."""
    status: str = "success"
    data: Dict[str, Any]


class ReportListResponse(BaseModel):
    """List of reports."""
    status: str = "success"
    count: int
    data: Dict[str, List[Dict[str, Any]]]


# ============================================================================
# Dependencies
# ============================================================================

def _build_report_handler() -> ReportHandler:
    if settings.database_url:
        from src.database import SqlReportStore, init_db

        db = init_db(settings.database_url)
        db.create_tables()
        store = SqlReportStore(db)
    else:
        store = InMemoryReportStore()
    return ReportHandler(store=store, photo_store=LocalPhotoStore())


# Global instance for stateful services
_report_handler = _build_report_handler()


def get_report_handler() -> ReportHandler:
    return _report_handler


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Acting user id, set by the authentication layer in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")
    return x_user_id


# ============================================================================
# Error Handlers
# ============================================================================

def _error_body(message: str, errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return body


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content=_error_body(exc.message, [exc.to_dict()]),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", [])[1:]) or None,
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Validation failed", errors))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content=_error_body("Report not found"))


@app.exception_handler(StateConflictError)
async def state_conflict_handler(request: Request, exc: StateConflictError):
    return JSONResponse(status_code=409, content=_error_body(exc.message))


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content=_error_body(exc.message))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


# ============================================================================
# Helper Functions
# ============================================================================

def _parse_json_field(raw: Optional[str], field: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(f"Invalid JSON format for {field}", field=field)


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(handler: ReportHandler = Depends(get_report_handler)):
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        storage=type(handler.store).__name__,
        environment=settings.app_env,
    )


# ============================================================================
# Report Routes
# ============================================================================

@app.post("/api/v1/reports", response_model=ReportResponse, status_code=201, tags=["Reports"])
async def create_report(
    report_type: str = Form(..., alias="type"),
    description: str = Form(...),
    severity: str = Form("medium"),
    location: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    coordinates: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    photo: Optional[List[UploadFile]] = File(None),
    idempotency_key: Optional[str] = Header(None, max_length=64),
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    """
    Create a new traffic report.

    Multipart form with the report fields, an optional single photo and
    optional coordinates as GeoJSON (``{"type": "Point", "coordinates":
    [lng, lat]}``). Invalid or placeholder coordinates are dropped.
    A repeated ``Idempotency-Key`` header returns the report created by
    the first request instead of a duplicate.
    """
    location_data = _parse_json_field(location, "location") or {}
    if not isinstance(location_data, dict):
        raise ValidationError("Invalid JSON format for location", field="location")
    if address and not location_data.get("address"):
        location_data["address"] = address

    # Coordinates nested in the location payload are accepted as a fallback
    raw_coordinates = coordinates if coordinates is not None else location_data.get("coordinates")

    photos = photo or []
    if len(photos) > MAX_PHOTOS_PER_REPORT:
        raise ValidationError("Only one photo may be attached", field="photo")

    photo_kwargs = {}
    if photos:
        upload = photos[0]
        photo_kwargs = {
            "photo_data": await upload.read(),
            "photo_content_type": upload.content_type,
            "photo_filename": upload.filename,
        }

    report = handler.create_report(
        user_id=user_id,
        report_type=report_type,
        description=description,
        location=location_data,
        severity=severity,
        coordinates=raw_coordinates,
        title=title,
        submission_key=idempotency_key,
        **photo_kwargs,
    )

    return ReportResponse(data={"report": report.to_dict()})


@app.get("/api/v1/reports", response_model=ReportListResponse, tags=["Reports"])
async def list_reports(handler: ReportHandler = Depends(get_report_handler)):
    """Active reports, newest first, at most one page."""
    reports = handler.list_reports()
    return ReportListResponse(
        count=len(reports),
        data={"reports": [r.to_dict() for r in reports]},
    )


@app.get("/api/v1/reports/mine", response_model=ReportListResponse, tags=["Reports"])
async def list_my_reports(
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    """Active reports authored by the acting user."""
    reports = handler.list_user_reports(user_id)
    return ReportListResponse(
        count=len(reports),
        data={"reports": [r.to_dict() for r in reports]},
    )


@app.get("/api/v1/reports/{report_id}", response_model=ReportResponse, tags=["Reports"])
async def get_report(report_id: str, handler: ReportHandler = Depends(get_report_handler)):
    """Get a specific report by ID."""
    report = handler.get_report(report_id)
    return ReportResponse(data={"report": report.to_dict()})


@app.put("/api/v1/reports/{report_id}/status", response_model=ReportResponse, tags=["Moderation"])
async def update_report_status(
    report_id: str,
    request: StatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    """Apply a moderation transition to a report."""
    report = handler.update_status(report_id, request.status, moderator_id=user_id, notes=request.notes)
    return ReportResponse(data={"report": report.to_dict()})


@app.delete("/api/v1/reports/{report_id}", tags=["Reports"])
async def delete_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    """Deactivate a report. Only its author may do this."""
    handler.deactivate_report(report_id, user_id)
    return {"status": "success", "message": "Report deleted"}


# ============================================================================
# Engagement Routes
# ============================================================================

@app.post("/api/v1/reports/{report_id}/like", response_model=EngagementResponse, tags=["Engagement"])
async def like_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    counts = handler.like(report_id, user_id)
    return EngagementResponse(data=counts.to_dict())


@app.delete("/api/v1/reports/{report_id}/like", response_model=EngagementResponse, tags=["Engagement"])
async def unlike_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    counts = handler.unlike(report_id, user_id)
    return EngagementResponse(data=counts.to_dict())


@app.post("/api/v1/reports/{report_id}/vote", response_model=EngagementResponse, tags=["Engagement"])
async def vote_report(
    report_id: str,
    request: VoteRequest,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    counts = handler.vote(report_id, user_id, request.vote_type)
    return EngagementResponse(data=counts.to_dict())


@app.post("/api/v1/reports/{report_id}/comments", response_model=EngagementResponse, tags=["Engagement"])
async def comment_report(
    report_id: str,
    request: CommentRequest,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    counts = handler.comment(report_id, user_id, request.text)
    return EngagementResponse(data=counts.to_dict())


@app.post("/api/v1/reports/{report_id}/view", response_model=EngagementResponse, tags=["Engagement"])
async def view_report(
    report_id: str,
    user_id: str = Depends(get_current_user_id),
    handler: ReportHandler = Depends(get_report_handler),
):
    counts = handler.record_view(report_id, user_id)
    return EngagementResponse(data=counts.to_dict())


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
