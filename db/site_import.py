"""
Import a newline separated list of websites into the site table.

This script:
1. Optionally clears existing sites (--overwrite)
2. Adds a temporary unique index so duplicates are skipped by INSERT OR IGNORE
3. Streams the file and inserts lines in chunks, one transaction per chunk
4. Drops the temporary index and reclaims free pages

If the table already holds duplicate URLs the index cannot be built; rows are
then inserted only when no site with the same URL exists.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Union

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from db.database_manager import DatabaseManager
from runner.logging_setup import get_logger

logger = get_logger("site_import")

# Lines inserted per transaction
CHUNK_SIZE = 10_000

TEMP_UNIQUE_INDEX = "tmp_unique_site"

INSERT_SITE = text("INSERT OR IGNORE INTO site(url) VALUES (:url)")

INSERT_SITE_IF_MISSING = text(
    "INSERT INTO site(url) SELECT :url "
    "WHERE NOT EXISTS (SELECT 1 FROM site WHERE url = :url)"
)


@dataclass
class ImportResult:
    """Outcome of a bulk import."""

    read: int = 0
    inserted: int = 0

    @property
    def duplicates(self) -> int:
        return self.read - self.inserted


def read_sites(filepath: Union[str, Path]) -> Iterator[str]:
    """
    Yield one site per non-blank line.

    Any line ending (\\n, \\r\\n, \\r) is accepted.
    """
    with open(filepath, "r", encoding="utf-8", newline=None) as f:
        for line in f:
            site = line.strip()
            if site:
                yield site


def _insert_chunk(db_manager: DatabaseManager, chunk: List[str], statement=INSERT_SITE) -> int:
    with db_manager.get_session() as session:
        before = session.execute(text("SELECT COUNT(*) FROM site")).scalar_one()
        session.execute(statement, [{"url": url} for url in chunk])
        after = session.execute(text("SELECT COUNT(*) FROM site")).scalar_one()
    return after - before


def _create_unique_index(db_manager: DatabaseManager) -> bool:
    """Create the temporary unique index; False when existing rows already collide."""
    try:
        with db_manager.get_session() as session:
            session.execute(text(f"CREATE UNIQUE INDEX {TEMP_UNIQUE_INDEX} ON site(url)"))
    except IntegrityError:
        logger.warning(
            "Site table already contains duplicate URLs, "
            "importing without the temporary unique index"
        )
        return False
    return True


def import_sites(
    db_manager: DatabaseManager,
    filepath: Union[str, Path],
    overwrite: bool = False,
    chunk_size: int = CHUNK_SIZE,
) -> ImportResult:
    """
    Import sites from a text file.

    Args:
        db_manager: Connected database manager
        filepath: Newline separated list of sites
        overwrite: Delete all existing sites first
        chunk_size: Lines per insert transaction

    Returns:
        ImportResult with lines read and rows actually inserted

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not Path(filepath).exists():
        raise FileNotFoundError(f"Site list not found: {filepath}")

    if overwrite:
        with db_manager.get_session() as session:
            deleted = session.execute(text("DELETE FROM site")).rowcount
        logger.info(f"Deleted {deleted} existing sites")

    indexed = _create_unique_index(db_manager)
    statement = INSERT_SITE if indexed else INSERT_SITE_IF_MISSING

    logger.info("Importing sites...")

    result = ImportResult()
    chunk: List[str] = []

    try:
        for site in read_sites(filepath):
            chunk.append(site)

            if len(chunk) >= chunk_size:
                result.inserted += _insert_chunk(db_manager, chunk, statement)
                result.read += len(chunk)
                logger.info(f"Imported {result.read:,} sites...")
                chunk = []

        if chunk:
            result.inserted += _insert_chunk(db_manager, chunk, statement)
            result.read += len(chunk)

    finally:
        if indexed:
            with db_manager.get_session() as session:
                session.execute(text(f"DROP INDEX IF EXISTS {TEMP_UNIQUE_INDEX}"))
        db_manager.incremental_vacuum()

    logger.info(
        f"Done. Imported {result.inserted:,} sites "
        f"({result.read:,} read, {result.duplicates:,} duplicates skipped)."
    )

    return result
