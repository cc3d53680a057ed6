"""
Database module for Raasta Sathi
PostgreSQL + PostGIS for report persistence
"""

from .connection import DatabaseConnection, get_db, init_db
from .models import Base, ReportRecord
from .report_store import SqlReportStore

__all__ = [
    "DatabaseConnection",
    "get_db",
    "init_db",
    "Base",
    "ReportRecord",
    "SqlReportStore",
]
