"""
Raasta Sathi - Client
Session context, submission pipeline and API client.
"""

from src.client.session import SessionContext
from src.client.submission import PhotoAttachment, ReportDraft, ReportSubmitter
from src.client.api_client import RaastaClient

__all__ = [
    "SessionContext",
    "PhotoAttachment",
    "ReportDraft",
    "ReportSubmitter",
    "RaastaClient",
]
