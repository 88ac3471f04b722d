"""
Pytest configuration and shared fixtures for crawler tests.

Provides a temporary SQLite crawl database, the crawl store and config
objects pointing at them.
"""

import pytest

from db.crawl_store import CrawlStore
from db.database_manager import DatabaseManager
from runner.config import DEFAULT_SCHEMA_PATH, CrawlerConfig, RunOptions


# Test markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    """Keep rotating log files out of the working tree."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))


# Database fixtures
@pytest.fixture(scope="function")
def db_manager(tmp_path):
    """Bootstrapped crawl database in a temporary file (WAL needs a real file)."""
    manager = DatabaseManager(tmp_path / "crawler.db")
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def store(db_manager):
    """Crawl store over the temporary database."""
    return CrawlStore(db_manager)


@pytest.fixture
def add_sites(store):
    """Insert sites and return their ids."""
    from db.models import Site

    def _add(*urls):
        with store.db.get_session() as session:
            sites = [Site(url=url) for url in urls]
            session.add_all(sites)
            session.flush()
            return [site.id for site in sites]

    return _add


@pytest.fixture
def crawler_config(tmp_path):
    """CrawlerConfig for the temporary database."""
    return CrawlerConfig(
        config_path=tmp_path / "crawler.config.json",
        db_path=tmp_path / "crawler.db",
        db_sql_path=DEFAULT_SCHEMA_PATH,
        api_endpoint="https://api.example.com/p1",
    )


@pytest.fixture
def run_options():
    return RunOptions(timeout=5)
