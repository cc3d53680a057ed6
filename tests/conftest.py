"""
Pytest configuration and fixtures
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.reports.models import Location, Report
from src.reports.report_handler import InMemoryReportStore, ReportHandler
from src.storage.photo_store import MockPhotoStore


# New Delhi, Connaught Place
DELHI_LNG = 77.2090
DELHI_LAT = 28.6139


@pytest.fixture
def delhi_coordinates():
    """GeoJSON point for central Delhi."""
    return {"type": "Point", "coordinates": [DELHI_LNG, DELHI_LAT]}


@pytest.fixture
def sample_location():
    """Address-only location payload."""
    return {
        "address": "Connaught Place, Block A",
        "city": "New Delhi",
        "state": "Delhi",
    }


@pytest.fixture
def sample_report():
    """Active pending report without coordinates."""
    return Report(
        reported_by="author",
        type="pothole",
        description="Deep pothole in the left lane",
        location=Location(address="Ring Road near AIIMS", city="New Delhi"),
    )


@pytest.fixture
def photo_store():
    return MockPhotoStore()


@pytest.fixture
def handler(photo_store):
    """Report handler on a fresh in-memory store."""
    return ReportHandler(store=InMemoryReportStore(), photo_store=photo_store)


@pytest.fixture
def jpeg_bytes():
    """A few bytes with a JPEG header, enough for the photo contract."""
    return b"\xff\xd8\xff\xe0" + b"\x00" * 1024
