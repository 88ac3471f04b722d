"""
Database Connection Manager for trackx-crawler
SQLAlchemy-based connection manager for the SQLite crawl database

Every new connection is configured for WAL journaling, incremental
auto-vacuum and an untrusted schema. An empty database is bootstrapped
from the schema SQL script on first connect.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from runner.config import DEFAULT_SCHEMA_PATH
from runner.logging_setup import get_logger

logger = get_logger("database_manager")

# Seconds a writer waits for the database lock before failing
BUSY_TIMEOUT_SECONDS = 30


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    """Configure every new SQLite connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA trusted_schema = OFF")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA auto_vacuum = INCREMENTAL")
    cursor.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_SECONDS * 1000}")
    cursor.close()


class DatabaseManager:
    """Manages the crawl database engine, sessions and schema bootstrap"""

    def __init__(
        self,
        db_path: Union[str, Path],
        schema_path: Union[str, Path] = DEFAULT_SCHEMA_PATH,
        echo: bool = False,
    ):
        self.db_path = Path(db_path)
        self.schema_path = Path(schema_path)

        self.engine: Optional[Engine] = None
        self.SessionLocal = None

        self._initialize_engine(echo)
        self._bootstrap_schema()

    def _initialize_engine(self, echo: bool):
        """Initialize the SQLAlchemy engine"""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                connect_args={
                    "check_same_thread": False,
                    "timeout": float(BUSY_TIMEOUT_SECONDS),
                },
                echo=echo,
            )
            event.listen(self.engine, "connect", _set_sqlite_pragmas)

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
                bind=self.engine
            )
            logger.debug(f"Database engine initialized for {self.db_path}")

        except Exception as e:
            logger.error(f"Failed to initialize database engine: {e}")
            raise

    def _tables_exist(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'run'")
            )
            return result.scalar() is not None

    def _bootstrap_schema(self):
        """Load the schema script into an empty database, then vacuum it"""
        if self._tables_exist():
            return

        logger.info("Database empty, initialising...")

        schema_sql = self.schema_path.read_text(encoding="utf-8")

        raw_conn = self.engine.raw_connection()
        try:
            # executescript commits any pending transaction first, so the
            # whole schema runs inside this explicit one
            raw_conn.driver_connection.executescript(f"BEGIN;\n{schema_sql}\nCOMMIT;")
        finally:
            raw_conn.close()

        self.vacuum()
        logger.info("Database initialised.")

    def vacuum(self):
        """Rebuild the database file (must run outside a transaction)"""
        with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.exec_driver_sql("VACUUM")

    def incremental_vacuum(self):
        """Release free pages left behind by large deletes"""
        with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.exec_driver_sql("PRAGMA incremental_vacuum")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions

        Usage:
            with db_manager.get_session() as session:
                result = session.execute(text("SELECT * FROM site"))

        Yields:
            Database session, committed on success and rolled back on error
        """
        session = self.SessionLocal()

        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def integrity_check(self, max_errors: int = 3) -> List[str]:
        """
        Run PRAGMA integrity_check

        Args:
            max_errors: Stop after this many problems

        Returns:
            List of messages, ["ok"] for a healthy database
        """
        with self.engine.connect() as conn:
            result = conn.exec_driver_sql(f"PRAGMA integrity_check({int(max_errors)})")
            return [row[0] for row in result.fetchall()]

    def close(self):
        """Close all database connections"""
        if self.engine:
            self.engine.dispose()
            logger.debug("Database engine closed")


def create_db_manager(config) -> DatabaseManager:
    """
    Create a DatabaseManager from a CrawlerConfig

    Args:
        config: runner.config.CrawlerConfig

    Returns:
        Connected, bootstrapped DatabaseManager
    """
    return DatabaseManager(config.db_path, config.db_sql_path)
