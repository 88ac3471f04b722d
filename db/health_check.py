"""
Database health check.

Verifies the crawl database is usable before a run:
- Integrity check
- Write, read and delete round trip
- Site counts (total and unvisited)
"""

from dataclasses import dataclass, field
from typing import List

from sqlalchemy import text

from db.database_manager import DatabaseManager
from runner.logging_setup import get_logger

logger = get_logger("health_check")

CHECK_URL = "CHECK_TEST"


@dataclass
class HealthReport:
    """Counts of passed checks, errors and warnings."""

    ok: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.errors

    def passed(self, message: str) -> None:
        logger.info(message)
        self.ok += 1

    def failed(self, message: str) -> None:
        logger.error(message)
        self.errors.append(message)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def summary(self) -> str:
        return f"Summary: {self.ok} OK, {len(self.errors)} errors, {len(self.warnings)} warnings"


def run_health_check(db_manager: DatabaseManager) -> HealthReport:
    """
    Run all database checks.

    Args:
        db_manager: Connected database manager (config and connection are
            already known to be OK when this is reachable)

    Returns:
        HealthReport
    """
    report = HealthReport()
    report.passed("Configuration OK")
    report.passed("Database connection OK")

    # https://www.sqlite.org/pragma.html#pragma_integrity_check
    integrity = db_manager.integrity_check(3)
    if integrity != ["ok"]:
        report.failed("Database integrity failed, your database may be corrupt")
        for message in integrity:
            logger.error(f"  {message}")
    else:
        report.passed("Database integrity OK")

    with db_manager.get_session() as session:
        written = session.execute(
            text("INSERT INTO site(url, resolved) VALUES(:url, 'ok')"), {"url": CHECK_URL}
        ).rowcount
    if written != 1:
        report.failed("Database write failed")
    else:
        report.passed("Database write OK")

    read_back = _read_check_row(db_manager)
    if read_back != "ok":
        report.failed("Database read failed")
    else:
        report.passed("Database read OK")

    with db_manager.get_session() as session:
        deleted = session.execute(
            text("DELETE FROM site WHERE url = :url"), {"url": CHECK_URL}
        ).rowcount
    if deleted != 1 or _read_check_row(db_manager) is not None:
        report.failed("Database delete failed")
    else:
        report.passed("Database delete OK")

    with db_manager.get_session() as session:
        total = session.execute(text("SELECT COUNT(*) FROM site")).scalar_one()
        unvisited = session.execute(
            text("SELECT COUNT(*) FROM site WHERE handled = 0")
        ).scalar_one()

    if total == 0:
        report.failed("No sites in database")
    else:
        report.passed(f"{total} sites found in database")

    if unvisited == 0:
        report.warn("No unvisited sites in database")
    else:
        report.passed(f"{unvisited} unvisited sites found in database")

    return report


def _read_check_row(db_manager: DatabaseManager):
    with db_manager.get_session() as session:
        return session.execute(
            text("SELECT resolved FROM site WHERE url = :url"), {"url": CHECK_URL}
        ).scalar()
