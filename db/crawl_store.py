"""
Site queue and run bookkeeping for the crawl scheduler.

The CrawlStore is the only code that mutates site and run rows. Every
operation runs in its own session and commits immediately, so a single-row
transition is atomic and durable once the call returns.
"""

import enum
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update

from db.database_manager import DatabaseManager
from db.models import Run, Site
from runner.logging_setup import get_logger

logger = get_logger("crawl_store")

# Sites fetched per refill of the scheduler's prefetch buffer
DEFAULT_BATCH_SIZE = 100


class SiteOrder(str, enum.Enum):
    """Order in which unhandled sites are handed out."""

    SEQUENTIAL = "asc"
    RANDOM = "random"


class RunCounter(str, enum.Enum):
    """Aggregate counters kept on a run row."""

    SITE = "site_count"
    PAGE = "page_count"
    SKIPPED = "skipped_count"


@dataclass(frozen=True)
class QueuedSite:
    """A claimed-but-not-yet-crawled site."""

    id: int
    url: str


class CrawlStore:
    """Site/run state transitions over a DatabaseManager."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------

    def claim_batch(self, order: SiteOrder = SiteOrder.SEQUENTIAL,
                    limit: int = DEFAULT_BATCH_SIZE) -> List[QueuedSite]:
        """
        Fetch unhandled sites.

        Args:
            order: SEQUENTIAL (insertion order) or RANDOM
            limit: Maximum number of sites to return

        Returns:
            List of QueuedSite, empty when the queue is exhausted
        """
        stmt = select(Site.id, Site.url).where(Site.handled.is_(False))
        if SiteOrder(order) is SiteOrder.RANDOM:
            stmt = stmt.order_by(func.random())
        else:
            stmt = stmt.order_by(Site.id)
        stmt = stmt.limit(limit)

        with self.db.get_session() as session:
            rows = session.execute(stmt).all()

        logger.debug(f"Fetched {len(rows)} unhandled sites ({SiteOrder(order).value})")
        return [QueuedSite(id=row.id, url=row.url) for row in rows]

    def count_unhandled(self) -> int:
        """Number of sites not yet claimed."""
        with self.db.get_session() as session:
            return session.execute(
                select(func.count()).select_from(Site).where(Site.handled.is_(False))
            ).scalar_one()

    def count_sites(self) -> int:
        """Total number of sites."""
        with self.db.get_session() as session:
            return session.execute(select(func.count()).select_from(Site)).scalar_one()

    def mark_handled(self, site_id: int) -> None:
        self._update_site(site_id, handled=True)

    def mark_error(self, site_id: int) -> None:
        self._update_site(site_id, error=True)

    def set_resolved(self, site_id: int, resolved_url: str) -> None:
        self._update_site(site_id, resolved=resolved_url)

    def get_site(self, site_id: int) -> Optional[Site]:
        with self.db.get_session() as session:
            return session.get(Site, site_id)

    def reset_all(self) -> int:
        """
        Clear handled/error/resolved on every site (restart mode).

        Returns:
            Number of sites reset
        """
        with self.db.get_session() as session:
            result = session.execute(
                update(Site).values(handled=False, error=False, resolved=None)
            )
            count = result.rowcount

        logger.info(f"Reset crawl state of {count} sites")
        return count

    def _update_site(self, site_id: int, **values) -> None:
        with self.db.get_session() as session:
            session.execute(update(Site).where(Site.id == site_id).values(**values))

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def start_run(self, options: Dict[str, Any]) -> int:
        """
        Create a run record.

        Args:
            options: Effective configuration snapshot (JSON serialisable)

        Returns:
            New run id
        """
        with self.db.get_session() as session:
            run = Run(ts_start=func.now(), options=json.dumps(options))
            session.add(run)
            session.flush()
            run_id = run.id

        logger.debug(f"Started run {run_id}")
        return run_id

    def finish_run(self, run_id: int) -> None:
        self._update_run(run_id, ts_end=func.now())

    def mark_run_error(self, run_id: int) -> None:
        self._update_run(run_id, error=True)

    def increment_run_counter(self, run_id: int, counter: RunCounter) -> None:
        column = getattr(Run, RunCounter(counter).value)
        self._update_run(run_id, **{column.key: column + 1})

    def get_run(self, run_id: int) -> Optional[Run]:
        with self.db.get_session() as session:
            return session.get(Run, run_id)

    def _update_run(self, run_id: int, **values) -> None:
        with self.db.get_session() as session:
            session.execute(update(Run).where(Run.id == run_id).values(**values))
