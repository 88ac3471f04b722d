"""
Database module for trackx-crawler.

This module handles:
- Database connection management and schema bootstrap
- SQLAlchemy models
- Site queue and run bookkeeping
- Bulk site import and health checks
"""

from db.models import Base, Site, Run
from db.database_manager import DatabaseManager, create_db_manager
from db.crawl_store import (
    CrawlStore,
    QueuedSite,
    RunCounter,
    SiteOrder,
)
from db.site_import import ImportResult, import_sites
from db.health_check import HealthReport, run_health_check

__version__ = "0.1.0"

__all__ = [
    "Base",
    "Site",
    "Run",
    "DatabaseManager",
    "create_db_manager",
    "CrawlStore",
    "QueuedSite",
    "RunCounter",
    "SiteOrder",
    "ImportResult",
    "import_sites",
    "HealthReport",
    "run_health_check",
]
