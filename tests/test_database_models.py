"""
Tests for the SQL report record mapping
"""
import pytest
from unittest.mock import MagicMock

import sys
sys.path.insert(0, '.')

from geoalchemy2.shape import to_shape

from src.core.exceptions import NotFoundError
from src.core.geo_utils import GeoPoint
from src.database.models import ReportRecord
from src.database.report_store import SqlReportStore
from src.reports import engagement


class TestReportRecord:
    """Test suite for ReportRecord <-> Report conversion."""

    def test_point_columns_with_coordinates(self, sample_report):
        """Test valid coordinates populate the geometry and lng/lat columns."""
        sample_report.coordinates = GeoPoint(77.2090, 28.6139)

        record = ReportRecord.from_report(sample_report)

        assert record.longitude == 77.2090
        assert record.latitude == 28.6139
        point = to_shape(record.point)
        assert (point.x, point.y) == (77.2090, 28.6139)

    def test_point_columns_without_coordinates(self, sample_report):
        """Test absent coordinates leave every point column empty."""
        record = ReportRecord.from_report(sample_report)

        assert record.point is None
        assert record.longitude is None
        assert record.latitude is None
        assert "coordinates" not in record.to_dict()

    def test_roundtrip_with_engagement(self, sample_report):
        """Test embedded collections survive the JSON columns."""
        sample_report.coordinates = GeoPoint(77.2090, 28.6139)
        engagement.like(sample_report, "u1")
        engagement.vote(sample_report, "u2", "down")
        engagement.comment(sample_report, "u3", "Fixed yet?")
        engagement.record_view(sample_report, "u1")

        restored = ReportRecord.from_report(sample_report).to_report()

        assert restored == sample_report
        assert restored.vote_score == -1

    def test_update_from_clears_coordinates(self, sample_report):
        """Test removing coordinates also clears the geometry."""
        sample_report.coordinates = GeoPoint(77.2090, 28.6139)
        record = ReportRecord.from_report(sample_report)

        sample_report.coordinates = None
        record.update_from(sample_report)

        assert record.point is None
        assert record.longitude is None


class TestSqlReportStore:
    """Test suite for the SQL store with a mocked session."""

    def setup_method(self):
        """Setup test fixtures."""
        self.session = MagicMock()
        self.db = MagicMock()
        self.db.get_session.return_value.__enter__.return_value = self.session
        self.db.get_session.return_value.__exit__.return_value = False
        self.store = SqlReportStore(db=self.db)

    def _locked_query(self):
        return self.session.query.return_value.filter.return_value.with_for_update.return_value

    def test_add(self, sample_report):
        """Test add stores a ReportRecord."""
        self.store.add(sample_report)

        record = self.session.add.call_args[0][0]
        assert isinstance(record, ReportRecord)
        assert record.id == sample_report.id

    def test_locked_writes_back(self, sample_report):
        """Test a locked mutation is copied onto the row."""
        record = ReportRecord.from_report(sample_report)
        self._locked_query().one_or_none.return_value = record

        with self.store.locked(sample_report.id) as report:
            engagement.like(report, "u1")

        assert len(record.likes) == 1
        assert record.likes[0]["user"] == "u1"
        self.session.query.return_value.filter.return_value.with_for_update.assert_called_once()

    def test_locked_missing_row(self):
        """Test an unknown id raises NotFoundError."""
        self._locked_query().one_or_none.return_value = None

        with pytest.raises(NotFoundError):
            with self.store.locked("missing"):
                pass
